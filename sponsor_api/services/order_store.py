"""Order ledger: one row per book, keyed by OrderID.

Status only ever moves Pending -> Paid. Concurrent notifications for the
same order (webhook racing a browser return) may interleave; every writer
derives the same target state so repeated writes are harmless.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from sponsor_api.core.config import get_settings
from sponsor_api.core.logging import get_logger
from sponsor_api.models.order import ORDER_HEADERS, OrderLine, OrderStatus, is_paid
from sponsor_api.storage.base import Workbook
from sponsor_api.storage.table import Row, Table

log = get_logger(__name__)


@dataclass
class PaidOrder:
    order_id: str
    email: str = ""
    book_ids: list[str] = field(default_factory=list)
    rows_found: int = 0
    rows_marked: int = 0


def parse_amount(value: str) -> Decimal | None:
    try:
        return Decimal(str(value).replace(",", "").strip())
    except (InvalidOperation, ValueError):
        return None


class OrderStore:
    def __init__(self, table: Table) -> None:
        self.table = table

    @classmethod
    async def open(cls, workbook: Workbook) -> "OrderStore":
        return cls(await workbook.open(get_settings().sheet_orders, create=True))

    async def ensure_headers(self) -> None:
        added = await self.table.ensure_headers(ORDER_HEADERS)
        if added:
            log.info("order_headers_added", sheet=self.table.name, headers=added)

    async def append_lines(self, lines: list[OrderLine]) -> None:
        await self.ensure_headers()
        for line in lines:
            dropped = await self.table.append(line.to_record())
            if dropped:
                log.warning("order_fields_dropped", sheet=self.table.name, fields=dropped)

    async def find(self, order_id: str) -> list[Row]:
        order_id = (order_id or "").strip()
        if not order_id:
            return []
        return await self.table.find_all(lambda r: r.get("OrderID") == order_id)

    @staticmethod
    def expected_total(rows: list[Row]) -> Decimal | None:
        """Every row carries the whole-order total; the first readable one wins."""
        for row in rows:
            amount = parse_amount(row.get("Total"))
            if amount is not None:
                return amount
        return None

    async def mark_paid(self, order_id: str, txn_id: str, rows: list[Row] | None = None) -> PaidOrder:
        """Set Status=Paid on every row of the order that is not already paid
        and fill TxnID where it is blank. Returns sponsor email and book ids
        for the public ledger."""
        if rows is None:
            rows = await self.find(order_id)
        result = PaidOrder(order_id=order_id, rows_found=len(rows))
        txn_id = (txn_id or "").strip()
        for row in rows:
            line = OrderLine.from_record(row.values)
            if not result.email and line.email:
                result.email = line.email
            if line.book_id:
                result.book_ids.append(line.book_id)
            if not is_paid(row.get("Status")):
                if await self.table.update_cell(row, "Status", OrderStatus.PAID.value):
                    result.rows_marked += 1
            if txn_id and not row.get("TxnID"):
                await self.table.update_cell(row, "TxnID", txn_id)
        log.info(
            "order_marked_paid",
            order_id=order_id,
            rows_found=result.rows_found,
            rows_marked=result.rows_marked,
        )
        return result
