"""Read-only catalogue and team list."""

from typing import Any

from sponsor_api.core.config import get_settings
from sponsor_api.core.exceptions import AppError
from sponsor_api.core.logging import get_logger
from sponsor_api.models.order import LEGACY_BOOK_ID
from sponsor_api.storage.base import Workbook

log = get_logger(__name__)


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


async def title_map(workbook: Workbook) -> dict[str, str]:
    """BookID -> Book Title. Lookup failures degrade to an empty map."""
    name = get_settings().sheet_catalogue
    try:
        table = await workbook.open(name)
        rows = await table.rows()
    except AppError as exc:
        log.warning("catalogue_unavailable", sheet=name, error=exc.message)
        return {}
    out = {}
    for row in rows:
        book_id = row.get("BookID")
        if book_id:
            out[book_id] = row.get("Book Title")
    return out


def resolve_title(book_id: str, titles: dict[str, str]) -> str:
    if book_id == LEGACY_BOOK_ID:
        return LEGACY_BOOK_ID
    return titles.get(book_id, "")


async def resolve_titles(workbook: Workbook, book_ids: list[str]) -> list[str]:
    titles = await title_map(workbook)
    return [resolve_title(b, titles) for b in book_ids]


async def team_members(workbook: Workbook) -> list[dict[str, str]]:
    """Name and email from the first two columns of the payout sheet."""
    name = get_settings().sheet_team
    try:
        backend = await workbook.backend(name)
        values = await backend.get_values()
    except AppError as exc:
        log.warning("team_list_unavailable", sheet=name, error=exc.message)
        return []
    out = []
    for raw in values[1:]:
        member = _text(raw[0]) if len(raw) > 0 else ""
        email = _text(raw[1]) if len(raw) > 1 else ""
        if member and email:
            out.append({"name": member, "email": email})
    return out


async def catalogue_payload(workbook: Workbook) -> dict:
    """All catalogue columns per row, plus the team list for the referral picker."""
    backend = await workbook.backend(get_settings().sheet_catalogue)
    values = await backend.get_values()
    if len(values) < 2:
        return {"records": [], "teamList": []}
    headers = [_text(h) for h in values[0]]
    records = [
        {h: _text(raw[i]) if i < len(raw) else "" for i, h in enumerate(headers)}
        for raw in values[1:]
    ]
    return {"records": records, "teamList": await team_members(workbook)}
