import asyncio
from typing import Any

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sponsor_api.core.exceptions import MissingConfig, MissingTable
from sponsor_api.core.logging import get_logger
from sponsor_api.storage.base import TableBackend, Workbook

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

log = get_logger(__name__)


def column_letter(col: int) -> str:
    """1 -> A, 27 -> AA."""
    out = ""
    while col > 0:
        col, rem = divmod(col - 1, 26)
        out = chr(ord("A") + rem) + out
    return out


def _quote(name: str) -> str:
    return "'" + name.replace("'", "''") + "'"


class SheetsTable(TableBackend):
    """One tab of the spreadsheet.

    Reads are unformatted so locale number formats never reach the amount
    checks. Appended rows carry sponsor-supplied text and are written RAW;
    single-cell updates (status, txn id, confirmation date) stay
    USER_ENTERED so dates render as dates.
    """

    def __init__(self, values_api, spreadsheet_id: str, name: str) -> None:
        self._values = values_api
        self._spreadsheet_id = spreadsheet_id
        self.name = name

    async def get_values(self) -> list[list[Any]]:
        request = self._values.get(
            spreadsheetId=self._spreadsheet_id,
            range=_quote(self.name),
            valueRenderOption="UNFORMATTED_VALUE",
            dateTimeRenderOption="FORMATTED_STRING",
        )
        res = await asyncio.to_thread(request.execute)
        return res.get("values", [])

    async def append_row(self, values: list[Any]) -> None:
        request = self._values.append(
            spreadsheetId=self._spreadsheet_id,
            range=f"{_quote(self.name)}!A1",
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [["" if v is None else v for v in values]]},
        )
        await asyncio.to_thread(request.execute)

    async def set_cell(self, row: int, col: int, value: Any) -> None:
        request = self._values.update(
            spreadsheetId=self._spreadsheet_id,
            range=f"{_quote(self.name)}!{column_letter(col)}{row}",
            valueInputOption="USER_ENTERED",
            body={"values": [["" if value is None else value]]},
        )
        await asyncio.to_thread(request.execute)


class SheetsWorkbook(Workbook):
    """Google Sheets spreadsheet; each sheet (tab) is one table."""

    def __init__(self, spreadsheet_id: str, credentials_file: str) -> None:
        if not spreadsheet_id or not credentials_file:
            raise MissingConfig("SPREADSHEET_ID and GOOGLE_SERVICE_ACCOUNT_FILE are required for the sheets backend")
        credentials = service_account.Credentials.from_service_account_file(
            credentials_file, scopes=SHEETS_SCOPES
        )
        self.spreadsheet_id = spreadsheet_id
        self._service = build("sheets", "v4", credentials=credentials, cache_discovery=False)

    def _titles(self) -> set[str]:
        meta = self._service.spreadsheets().get(
            spreadsheetId=self.spreadsheet_id,
            fields="sheets.properties.title",
        ).execute()
        return {s["properties"]["title"] for s in meta.get("sheets", [])}

    def _add_sheet(self, name: str) -> None:
        try:
            self._service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"requests": [{"addSheet": {"properties": {"title": name}}}]},
            ).execute()
        except HttpError as exc:
            # Another request may have created it in the meantime.
            if name not in self._titles():
                raise
            log.info("sheet_already_created", sheet=name, status=getattr(exc, "status_code", None))
        else:
            log.info("sheet_created", sheet=name)

    async def backend(self, name: str, create: bool = False) -> SheetsTable:
        # The client library is blocking; keep it off the event loop.
        if name not in await asyncio.to_thread(self._titles):
            if not create:
                raise MissingTable(name)
            await asyncio.to_thread(self._add_sheet, name)
        return SheetsTable(self._service.spreadsheets().values(), self.spreadsheet_id, name)
