"""Shared FastAPI dependencies."""

import httpx
from fastapi import Depends, Header, Request

from sponsor_api.core.config import get_settings
from sponsor_api.core.security import check_admin_key
from sponsor_api.services.payfast import PayFastGateway
from sponsor_api.services.paypal import PayPalGateway
from sponsor_api.storage.base import Workbook, get_workbook


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Process-wide client created at startup."""
    return request.app.state.http


def get_paypal(
    http: httpx.AsyncClient = Depends(get_http_client),
    workbook: Workbook = Depends(get_workbook),
) -> PayPalGateway:
    return PayPalGateway(get_settings(), http, workbook)


def get_payfast(
    http: httpx.AsyncClient = Depends(get_http_client),
    workbook: Workbook = Depends(get_workbook),
) -> PayFastGateway:
    return PayFastGateway(get_settings(), http, workbook)


async def require_admin(x_admin_key: str | None = Header(None, alias="X-Admin-Key")) -> None:
    """Dependency: require the admin key when one is configured."""
    check_admin_key(x_admin_key)
