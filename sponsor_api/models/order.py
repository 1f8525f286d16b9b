from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

ORDER_HEADERS = [
    "Timestamp", "OrderID", "Package", "Plan", "Currency",
    "BookID", "Name", "Email", "Referral", "TeamMember",
    "Status", "Provider", "Total", "TxnID",
]

LEGACY_BOOK_ID = "LEGACY"


class Provider(str, Enum):
    PAYPAL = "paypal"
    PAYFAST = "payfast"
    EFT = "eft"


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"


def is_paid(value: Any) -> bool:
    """Older rows were written as ``PAID``; any casing counts."""
    return str(value or "").strip().lower() == OrderStatus.PAID.value.lower()


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class OrderLine(BaseModel):
    """One persisted order row (one per book). All fields optional so rows
    from older sheet layouts still load."""

    timestamp: str = Field(default_factory=utc_timestamp)
    order_id: str = ""
    package: str = ""
    plan: str = ""
    currency: str = ""
    book_id: str = ""
    name: str = ""
    email: str = ""
    referral: str = ""
    team_member: str = ""
    status: str = OrderStatus.PENDING.value
    provider: str = ""
    total: str = ""
    txn_id: str = ""

    def to_record(self) -> dict[str, str]:
        return {
            "Timestamp": self.timestamp,
            "OrderID": self.order_id,
            "Package": self.package,
            "Plan": self.plan,
            "Currency": self.currency,
            "BookID": self.book_id,
            "Name": self.name,
            "Email": self.email,
            "Referral": self.referral,
            "TeamMember": self.team_member,
            "Status": self.status,
            "Provider": self.provider,
            "Total": self.total,
            "TxnID": self.txn_id,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "OrderLine":
        def val(key: str) -> str:
            v = record.get(key)
            return "" if v is None else str(v).strip()

        return cls(
            timestamp=val("Timestamp"),
            order_id=val("OrderID"),
            package=val("Package"),
            plan=val("Plan"),
            currency=val("Currency"),
            book_id=val("BookID"),
            name=val("Name"),
            email=val("Email"),
            referral=val("Referral"),
            team_member=val("TeamMember"),
            status=val("Status"),
            provider=val("Provider"),
            total=val("Total"),
            txn_id=val("TxnID"),
        )

    @property
    def paid(self) -> bool:
        return is_paid(self.status)
