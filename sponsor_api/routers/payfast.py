from fastapi import APIRouter, Depends, Request

from sponsor_api.deps import get_payfast
from sponsor_api.services.payfast import PayFastGateway

router = APIRouter()


@router.post("/itn")
async def payfast_itn(request: Request, payfast: PayFastGateway = Depends(get_payfast)):
    """PayFast ITN: signed form body, validated and amount-checked before settling."""
    return await payfast.handle_notification(await request.body())
