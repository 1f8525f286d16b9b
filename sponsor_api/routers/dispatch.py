"""Single-endpoint surface used by the existing sponsorship page: the request
kind is named by ``type`` (or ``mode``) in the query string or JSON body."""

import json
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from sponsor_api.core.config import get_settings
from sponsor_api.core.exceptions import InvalidOrder, UnknownRequestType
from sponsor_api.core.security import check_admin_key
from sponsor_api.deps import get_payfast, get_paypal
from sponsor_api.routers.orders import FinalizeRequest, finalize_order
from sponsor_api.routers.paypal import paypal_return
from sponsor_api.services import orders as orders_service
from sponsor_api.services.catalogue import catalogue_payload
from sponsor_api.services.orders import OrderRequest
from sponsor_api.services.payfast import PayFastGateway
from sponsor_api.services.paypal import PayPalGateway
from sponsor_api.storage.base import Workbook, get_workbook

router = APIRouter()


def _request_type(request: Request) -> str:
    return (request.query_params.get("type") or request.query_params.get("mode") or "").strip()


def _json_body(raw: bytes) -> dict:
    if not raw:
        return {}
    try:
        body = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return {}
    return body if isinstance(body, dict) else {}


@router.get("/")
async def dispatch_get(
    request: Request,
    workbook: Workbook = Depends(get_workbook),
    paypal: PayPalGateway = Depends(get_paypal),
):
    kind = _request_type(request)
    if kind.lower() == "json":
        return await catalogue_payload(workbook)
    if kind == "paypalReturn":
        q = request.query_params
        return await paypal_return(
            paypal,
            q.get("orderId", ""),
            q.get("token") or q.get("token_id") or "",
            q.get("ok", ""),
        )
    return {
        "ok": True,
        "service": get_settings().service_name,
        "ts": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/")
async def dispatch_post(
    request: Request,
    workbook: Workbook = Depends(get_workbook),
    paypal: PayPalGateway = Depends(get_paypal),
    payfast: PayFastGateway = Depends(get_payfast),
):
    raw = await request.body()
    kind = _request_type(request)
    if kind == "payfastItn":
        # Form-encoded; never parse as JSON.
        return await payfast.handle_notification(raw)
    body = _json_body(raw)
    kind = kind or str(body.get("type") or "")

    if kind == "createOrder":
        try:
            order = OrderRequest.model_validate(body)
        except ValidationError as exc:
            raise InvalidOrder("Invalid order payload", details={"errors": exc.errors(include_url=False, include_context=False)})
        return await orders_service.create_order(order, workbook, paypal, payfast, get_settings())

    if kind == "finalizeOrder":
        check_admin_key(request.headers.get("X-Admin-Key"))
        try:
            req = FinalizeRequest.model_validate(body)
        except ValidationError as exc:
            raise InvalidOrder("Invalid finalize payload", details={"errors": exc.errors(include_url=False, include_context=False)})
        return await finalize_order(req, workbook)

    if kind == "paypalWebhook":
        await paypal.handle_webhook(raw)
        return {"ok": True}

    raise UnknownRequestType(kind)
