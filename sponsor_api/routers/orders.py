from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from sponsor_api.core.config import get_settings
from sponsor_api.core.exceptions import MissingOrderId
from sponsor_api.deps import get_payfast, get_paypal, require_admin
from sponsor_api.services import orders as orders_service
from sponsor_api.services.catalogue import resolve_titles
from sponsor_api.services.orders import OrderRequest
from sponsor_api.services.payfast import PayFastGateway
from sponsor_api.services.paypal import PayPalGateway
from sponsor_api.services.reconciliation import finalize
from sponsor_api.storage.base import Workbook, get_workbook

router = APIRouter()


class FinalizeMeta(BaseModel):
    email: str = ""
    books: list[str] = Field(default_factory=list)


class FinalizeRequest(BaseModel):
    order_id: str = Field(default="", alias="orderId")
    meta: FinalizeMeta = Field(default_factory=FinalizeMeta)


async def finalize_order(body: FinalizeRequest, workbook: Workbook) -> dict:
    order_id = body.order_id.strip()
    if not order_id:
        raise MissingOrderId("Missing orderId")
    titles = await resolve_titles(workbook, body.meta.books)
    await finalize(workbook, order_id, body.meta.email, titles)
    return {"ok": True, "orderId": order_id, "books": body.meta.books}


@router.post("")
async def create_order(
    body: OrderRequest,
    workbook: Workbook = Depends(get_workbook),
    paypal: PayPalGateway = Depends(get_paypal),
    payfast: PayFastGateway = Depends(get_payfast),
):
    """Record a Pending order and return the provider redirect (or EFT details)."""
    return await orders_service.create_order(body, workbook, paypal, payfast, get_settings())


@router.post("/finalize", dependencies=[Depends(require_admin)])
async def finalize_order_route(body: FinalizeRequest, workbook: Workbook = Depends(get_workbook)):
    """Admin: mark the public ledger rows for these books as Paid."""
    return await finalize_order(body, workbook)
