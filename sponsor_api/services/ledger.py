"""Public sponsorship ledger.

The sheet predates generated order ids, so rows are matched by book title
and sponsor email rather than by OrderID.
"""

from sponsor_api.core.config import get_settings
from sponsor_api.core.logging import get_logger
from sponsor_api.models.ledger import FINALIZE_HEADERS, PUBLIC_HEADERS, LedgerIntake
from sponsor_api.models.order import OrderStatus, is_paid, utc_timestamp
from sponsor_api.storage.base import Workbook
from sponsor_api.storage.table import Table

log = get_logger(__name__)


class PublicLedger:
    def __init__(self, table: Table) -> None:
        self.table = table

    @classmethod
    async def open(cls, workbook: Workbook) -> "PublicLedger":
        return cls(await workbook.open(get_settings().sheet_requests, create=True))

    async def append_intake(self, rows: list[LedgerIntake]) -> None:
        # Curated sheet: seed a header only when it is empty, never add columns.
        if not await self.table.header():
            await self.table.ensure_headers(PUBLIC_HEADERS)
        for intake in rows:
            await self.table.append(intake.to_record())

    async def confirm(self, email: str, titles: list[str]) -> list[str]:
        """Mark the first row per title matching ``email`` as Paid.

        Rows already paid keep their original confirmation date. Titles with
        no matching row are skipped.
        """
        await self.table.require(*FINALIZE_HEADERS)
        email = (email or "").strip().lower()
        if not email:
            return []
        rows = await self.table.rows()
        confirmed = []
        for title in titles:
            title = (title or "").strip()
            if not title:
                continue
            match = next(
                (r for r in rows if r.get("Book Title") == title and r.get("Sponsor Email").lower() == email),
                None,
            )
            if match is None:
                log.info("ledger_row_not_found", title=title)
                continue
            if is_paid(match.get("Status")):
                continue
            await self.table.update_cell(match, "Status", OrderStatus.PAID.value)
            await self.table.update_cell(match, "Date Confirmed", utc_timestamp())
            confirmed.append(title)
        if confirmed:
            log.info("ledger_confirmed", titles=confirmed)
        return confirmed
