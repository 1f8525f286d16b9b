from sponsor_api.models.ledger import FINALIZE_HEADERS, PUBLIC_HEADERS, LedgerIntake
from sponsor_api.models.order import (
    LEGACY_BOOK_ID,
    ORDER_HEADERS,
    OrderLine,
    OrderStatus,
    Provider,
    is_paid,
)

__all__ = [
    "FINALIZE_HEADERS",
    "PUBLIC_HEADERS",
    "LedgerIntake",
    "LEGACY_BOOK_ID",
    "ORDER_HEADERS",
    "OrderLine",
    "OrderStatus",
    "Provider",
    "is_paid",
]
