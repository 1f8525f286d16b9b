"""Header-addressed access to a sheet.

Columns are located by header name at the start of every operation, so
columns may be added or reordered by hand without breaking the service.
Fields whose header is absent are skipped rather than raising.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from sponsor_api.core.exceptions import MissingHeaders
from sponsor_api.storage.base import TableBackend


def _clean(value: Any) -> str:
    return "" if value is None else str(value).strip()


@dataclass
class Row:
    number: int  # sheet row number, header is row 1
    values: dict[str, Any]
    columns: dict[str, int] = field(repr=False, default_factory=dict)

    def get(self, name: str, default: str = "") -> str:
        if name not in self.values:
            return default
        return _clean(self.values[name])


class Table:
    def __init__(self, name: str, backend: TableBackend) -> None:
        self.name = name
        self._backend = backend

    async def header(self) -> list[str]:
        values = await self._backend.get_values()
        return [_clean(h) for h in values[0]] if values else []

    @staticmethod
    def _columns(header: Sequence[str]) -> dict[str, int]:
        cols: dict[str, int] = {}
        for i, name in enumerate(header):
            if name and name not in cols:
                cols[name] = i + 1
        return cols

    async def ensure_headers(self, headers: Iterable[str]) -> list[str]:
        """Seed an empty sheet with ``headers``; otherwise append only the
        missing ones after the last column. Returns the headers added."""
        headers = list(headers)
        current = await self.header()
        if not current:
            await self._backend.append_row(headers)
            return headers
        have = set(current)
        added = []
        next_col = len(current) + 1
        for name in headers:
            if name in have:
                continue
            await self._backend.set_cell(1, next_col, name)
            have.add(name)
            added.append(name)
            next_col += 1
        return added

    async def require(self, *names: str) -> dict[str, int]:
        cols = self._columns(await self.header())
        missing = [n for n in names if n not in cols]
        if missing:
            raise MissingHeaders(
                f'Missing expected headers in "{self.name}"',
                details={"table": self.name, "missing": missing},
            )
        return cols

    async def append(self, record: dict[str, Any]) -> list[str]:
        """Append ``record`` laid out by header name. Returns the fields that
        were dropped because the sheet has no such column."""
        header = await self.header()
        cols = self._columns(header)
        row: list[Any] = [""] * len(header)
        dropped = []
        for name, value in record.items():
            col = cols.get(name)
            if not col:
                dropped.append(name)
                continue
            row[col - 1] = "" if value is None else value
        await self._backend.append_row(row)
        return dropped

    async def rows(self) -> list[Row]:
        values = await self._backend.get_values()
        if not values:
            return []
        header = [_clean(h) for h in values[0]]
        cols = self._columns(header)
        out = []
        for offset, raw in enumerate(values[1:]):
            record = {name: (raw[col - 1] if col - 1 < len(raw) else "") for name, col in cols.items()}
            out.append(Row(number=offset + 2, values=record, columns=cols))
        return out

    async def find_all(self, predicate: Callable[[Row], bool]) -> list[Row]:
        return [r for r in await self.rows() if predicate(r)]

    async def update_cell(self, row: Row, name: str, value: Any) -> bool:
        """Write one field of ``row``; False when the column does not exist."""
        col = row.columns.get(name)
        if not col:
            return False
        await self._backend.set_cell(row.number, col, value)
        row.values[name] = value
        return True
