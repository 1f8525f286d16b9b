from fastapi import APIRouter, Depends

from sponsor_api.services.catalogue import catalogue_payload
from sponsor_api.storage.base import Workbook, get_workbook

router = APIRouter()


@router.get("")
async def catalogue(workbook: Workbook = Depends(get_workbook)):
    """Public catalogue rows and the team list."""
    return await catalogue_payload(workbook)
