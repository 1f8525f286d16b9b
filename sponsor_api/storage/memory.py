import copy
from typing import Any

from sponsor_api.core.exceptions import MissingTable
from sponsor_api.storage.base import TableBackend, Workbook


class MemoryTable(TableBackend):
    def __init__(self, values: list[list[Any]] | None = None) -> None:
        self.values: list[list[Any]] = [list(r) for r in (values or [])]

    async def get_values(self) -> list[list[Any]]:
        return copy.deepcopy(self.values)

    async def append_row(self, values: list[Any]) -> None:
        self.values.append(list(values))

    async def set_cell(self, row: int, col: int, value: Any) -> None:
        while len(self.values) < row:
            self.values.append([])
        cells = self.values[row - 1]
        while len(cells) < col:
            cells.append("")
        cells[col - 1] = value


class MemoryWorkbook(Workbook):
    """In-process workbook for local runs and tests."""

    def __init__(self, sheets: dict[str, list[list[Any]]] | None = None) -> None:
        self.sheets: dict[str, MemoryTable] = {
            name: MemoryTable(values) for name, values in (sheets or {}).items()
        }

    async def backend(self, name: str, create: bool = False) -> MemoryTable:
        if name not in self.sheets:
            if not create:
                raise MissingTable(name)
            self.sheets[name] = MemoryTable()
        return self.sheets[name]

    def dump(self, name: str) -> list[list[Any]]:
        return copy.deepcopy(self.sheets[name].values) if name in self.sheets else []
