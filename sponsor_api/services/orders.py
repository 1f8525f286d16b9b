"""Order creation: price, persist Pending rows, hand off to a provider."""

import re
import uuid

from pydantic import BaseModel, ConfigDict, Field

from sponsor_api.core.config import Settings
from sponsor_api.core.exceptions import InvalidOrder
from sponsor_api.core.logging import bind_order_id, get_logger
from sponsor_api.models.ledger import LedgerIntake
from sponsor_api.models.order import LEGACY_BOOK_ID, OrderLine, Provider, utc_timestamp
from sponsor_api.services import pricing
from sponsor_api.services.catalogue import resolve_title, title_map
from sponsor_api.services.ledger import PublicLedger
from sponsor_api.services.order_store import OrderStore
from sponsor_api.services.payfast import PayFastGateway
from sponsor_api.services.paypal import PayPalGateway
from sponsor_api.storage.base import Workbook

log = get_logger(__name__)

ONETIME_PLAN = "onetime"
PAYFAST_CURRENCY = "ZAR"


class OrderRequest(BaseModel):
    """createOrder payload as posted by the sponsorship page."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    package: str = "single"
    plan: str = ""
    currency: str = "USD"
    provider: str | None = None
    books: list[str] = Field(default_factory=list)
    name: str = ""
    email: str = ""
    referral: str = ""
    team_member: str = Field(default="", alias="teamMember")


def new_order_id(prefix: str = "QZ") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


def normalize_plan(plan: str | None) -> str:
    """'3 mo' -> '3mo', '' / 'One-Time' -> 'onetime'."""
    out = re.sub(r"[^0-9a-z]", "", (plan or "").lower())
    return out or ONETIME_PLAN


def choose_provider(provider: str | None, currency: str) -> Provider:
    raw = (provider or "").strip().lower()
    if not raw:
        return Provider.PAYFAST if currency == PAYFAST_CURRENCY else Provider.PAYPAL
    try:
        return Provider(raw)
    except ValueError:
        raise InvalidOrder(f"Unknown provider: {provider}")


def order_books(package: str, books: list[str]) -> list[str]:
    if package == pricing.LEGACY_PACKAGE:
        return [LEGACY_BOOK_ID]
    return [b.strip() for b in books if b and b.strip()]


def bank_details(settings: Settings, order_id: str) -> dict[str, str]:
    return {
        "accountName": settings.eft_account_name,
        "bankName": settings.eft_bank_name,
        "accountNumber": settings.eft_account_number,
        "branchCode": settings.eft_branch_code,
        "swift": settings.eft_swift,
        "reference": order_id,
    }


async def create_order(
    body: OrderRequest,
    workbook: Workbook,
    paypal: PayPalGateway,
    payfast: PayFastGateway,
    settings: Settings,
) -> dict:
    package = (body.package or "single").strip().lower()
    currency = (body.currency or "USD").strip().upper()
    name = body.name.strip()
    email = body.email.strip()
    referral = body.referral.strip()
    team_member = body.team_member.strip()
    plan = normalize_plan(body.plan)
    provider = choose_provider(body.provider, currency)
    if provider is Provider.PAYFAST:
        currency = PAYFAST_CURRENCY

    books = order_books(package, body.books)
    if not books:
        raise InvalidOrder("No books selected")

    qty = pricing.order_quantity(package, len(books))
    total = pricing.order_total(package, currency, qty)
    order_id = new_order_id(settings.order_id_prefix)
    bind_order_id(order_id)
    now = utc_timestamp()

    lines = [
        OrderLine(
            timestamp=now,
            order_id=order_id,
            package=package,
            plan=plan,
            currency=currency,
            book_id=book_id,
            name=name,
            email=email,
            referral=referral,
            team_member=team_member,
            provider=provider.value,
            total=pricing.format_amount(total),
        )
        for book_id in books
    ]
    store = await OrderStore.open(workbook)
    await store.append_lines(lines)

    titles = await title_map(workbook)
    ledger = await PublicLedger.open(workbook)
    await ledger.append_intake([
        LedgerIntake(
            timestamp=now,
            sponsor_name=name,
            sponsor_email=email,
            book_title=resolve_title(book_id, titles),
            referral=referral,
            team_member=team_member,
        )
        for book_id in books
    ])
    log.info(
        "order_created",
        order_id=order_id,
        provider=provider.value,
        package=package,
        currency=currency,
        books=len(books),
        total=str(total),
    )

    if provider is Provider.PAYPAL:
        url = await paypal.create_checkout(order_id, total, currency, qty)
        return {"ok": True, "provider": provider.value, "orderId": order_id, "redirectUrl": url}

    if provider is Provider.PAYFAST:
        url = payfast.build_redirect(order_id, total, qty, email)
        return {"ok": True, "provider": provider.value, "orderId": order_id, "redirectUrl": url}

    return {
        "ok": True,
        "provider": provider.value,
        "orderId": order_id,
        "message": "Please pay via EFT using the reference below.",
        "bank": bank_details(settings, order_id),
        "amount": pricing.format_amount(total),
        "currency": currency,
    }
