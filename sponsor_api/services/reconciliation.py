"""Shared settlement path for every payment confirmation (PayPal webhook,
PayPal return, PayFast ITN, manual finalize)."""

from dataclasses import dataclass, field

from sponsor_api.core.exceptions import MissingHeaders
from sponsor_api.core.logging import bind_order_id, get_logger
from sponsor_api.services.catalogue import resolve_titles
from sponsor_api.services.ledger import PublicLedger
from sponsor_api.services.order_store import OrderStore
from sponsor_api.storage.base import Workbook
from sponsor_api.storage.table import Row

log = get_logger(__name__)


@dataclass
class Settlement:
    order_id: str
    email: str = ""
    book_ids: list[str] = field(default_factory=list)
    rows_marked: int = 0
    confirmed_titles: list[str] = field(default_factory=list)


async def finalize(workbook: Workbook, order_id: str, email: str, titles: list[str]) -> list[str]:
    """Propagate paid titles to the public ledger. Safe to repeat."""
    bind_order_id(order_id)
    ledger = await PublicLedger.open(workbook)
    return await ledger.confirm(email, titles)


async def settle_order(
    workbook: Workbook,
    order_id: str,
    txn_id: str,
    rows: list[Row] | None = None,
    store: OrderStore | None = None,
) -> Settlement:
    bind_order_id(order_id)
    store = store or await OrderStore.open(workbook)
    paid = await store.mark_paid(order_id, txn_id, rows=rows)
    result = Settlement(
        order_id=order_id,
        email=paid.email,
        book_ids=paid.book_ids,
        rows_marked=paid.rows_marked,
    )
    if not paid.rows_found:
        log.warning("settle_unknown_order", order_id=order_id)
    if paid.email and paid.book_ids:
        titles = await resolve_titles(workbook, paid.book_ids)
        try:
            result.confirmed_titles = await finalize(workbook, order_id, paid.email, titles)
        except MissingHeaders as exc:
            # Order rows are already Paid; the ledger can be confirmed later by finalize.
            log.error("ledger_confirm_failed", order_id=order_id, code=exc.code, details=exc.details)
    return result
