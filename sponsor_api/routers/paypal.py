from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from starlette.status import HTTP_303_SEE_OTHER

from sponsor_api.core.config import get_settings
from sponsor_api.core.exceptions import AppError
from sponsor_api.core.logging import get_logger
from sponsor_api.deps import get_paypal
from sponsor_api.services.paypal import PayPalGateway

router = APIRouter()
log = get_logger(__name__)


async def paypal_return(
    paypal: PayPalGateway,
    order_id: str,
    token: str = "",
    ok: str = "",
):
    order_id = (order_id or "").strip()
    if not order_id:
        return HTMLResponse("<html><body>Missing order ID</body></html>")
    try:
        await paypal.handle_return(order_id, (token or "").strip(), unverified=ok == "1" and not token)
    except AppError as exc:
        # The sponsor has already paid (or been sent here by the fallback);
        # the order can be settled later by webhook or finalize.
        log.error("paypal_return_settle_failed", order_id=order_id, code=exc.code, error=exc.message)
    return RedirectResponse(get_settings().thankyou_url, status_code=HTTP_303_SEE_OTHER)


@router.post("/webhook")
async def paypal_webhook(request: Request, paypal: PayPalGateway = Depends(get_paypal)):
    """PayPal event -> mark order rows paid and confirm the public ledger."""
    await paypal.handle_webhook(await request.body())
    return {"ok": True}


@router.get("/return")
async def paypal_return_route(
    order_id: str = Query("", alias="orderId"),
    token: str = Query(""),
    ok: str = Query(""),
    paypal: PayPalGateway = Depends(get_paypal),
):
    """Browser return from PayPal: capture, settle, redirect to thank-you page."""
    return await paypal_return(paypal, order_id, token, ok)
