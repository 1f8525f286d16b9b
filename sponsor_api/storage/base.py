from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any

from sponsor_api.core.config import get_settings


class TableBackend(ABC):
    """Raw cell access to one sheet. Row and column numbers are 1-based and
    row 1 is the header row."""

    @abstractmethod
    async def get_values(self) -> list[list[Any]]:
        """Return every populated row, header included."""
        ...

    @abstractmethod
    async def append_row(self, values: list[Any]) -> None:
        """Append one row after the last populated row."""
        ...

    @abstractmethod
    async def set_cell(self, row: int, col: int, value: Any) -> None:
        """Overwrite a single cell."""
        ...


class Workbook(ABC):
    @abstractmethod
    async def backend(self, name: str, create: bool = False) -> TableBackend:
        """Return the backend for sheet ``name``; raise MissingTable if absent and not ``create``."""
        ...

    async def open(self, name: str, create: bool = False):
        from sponsor_api.storage.table import Table
        return Table(name, await self.backend(name, create=create))


@lru_cache
def get_workbook() -> Workbook:
    settings = get_settings()
    if settings.table_backend == "sheets":
        from sponsor_api.storage.sheets import SheetsWorkbook
        return SheetsWorkbook(settings.spreadsheet_id, settings.google_service_account_file)
    from sponsor_api.storage.memory import MemoryWorkbook
    return MemoryWorkbook()
