"""PayFast hosted payment page and ITN (instant transaction notification)."""

from decimal import Decimal
from urllib.parse import parse_qsl

import httpx

from sponsor_api.core.config import Settings
from sponsor_api.core.exceptions import AmountMismatch, BadSignature, MissingOrderId, ValidationFailed
from sponsor_api.core.logging import bind_order_id, get_logger
from sponsor_api.core.security import payfast_param_string, payfast_signature, verify_payfast_signature
from sponsor_api.services.order_store import OrderStore, parse_amount
from sponsor_api.services.pricing import format_amount
from sponsor_api.services.reconciliation import settle_order
from sponsor_api.storage.base import Workbook

log = get_logger(__name__)

ITN_PATH = "/v1/payfast/itn"
COMPLETE = "COMPLETE"
AMOUNT_TOLERANCE = Decimal("0.01")


def parse_itn(raw: bytes) -> dict[str, str]:
    return dict(parse_qsl(raw.decode("utf-8", errors="replace"), keep_blank_values=True))


class PayFastGateway:
    def __init__(self, settings: Settings, http: httpx.AsyncClient, workbook: Workbook) -> None:
        self.settings = settings
        self.http = http
        self.workbook = workbook

    @property
    def notify_url(self) -> str:
        return self.settings.public_base_url.rstrip("/") + ITN_PATH

    def redirect_params(self, order_id: str, total: Decimal, quantity: int, email: str) -> dict[str, str]:
        return {
            "merchant_id": self.settings.payfast_merchant_id,
            "merchant_key": self.settings.payfast_merchant_key,
            "return_url": self.settings.thankyou_url,
            "cancel_url": self.settings.cancel_url,
            "notify_url": self.notify_url,
            "amount": format_amount(total),
            "item_name": f"{self.settings.brand_name} Sponsorship x {quantity or 1}",
            "m_payment_id": order_id,
            "email_address": email or "",
        }

    def build_redirect(self, order_id: str, total: Decimal, quantity: int, email: str) -> str:
        """Signed URL of the hosted payment page. Blank values are left out
        of both the query and the signature."""
        params = self.redirect_params(order_id, total, quantity, email)
        query = payfast_param_string(params, skip_blank=True)
        signature = payfast_signature(params, self.settings.payfast_passphrase, skip_blank=True)
        return f"{self.settings.payfast_process_url}?{query}&signature={signature}"

    async def _validate(self, raw: bytes) -> None:
        """Ask PayFast to confirm the notification. A network failure is
        tolerated because the signature has already been checked."""
        try:
            resp = await self.http.post(
                self.settings.payfast_validate_url,
                content=raw,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as exc:
            log.error("payfast_itn_validate_error", error=str(exc))
            return
        if resp.text.strip().upper() != "VALID":
            log.warning("payfast_itn_invalid", status_code=resp.status_code, body=resp.text[:200])
            raise ValidationFailed()

    async def handle_notification(self, raw: bytes) -> dict:
        pairs = parse_itn(raw)
        given = pairs.pop("signature", "")
        if not given or not verify_payfast_signature(pairs, given, self.settings.payfast_passphrase):
            log.warning("payfast_itn_bad_signature", m_payment_id=pairs.get("m_payment_id"))
            raise BadSignature()

        await self._validate(raw)

        order_id = (pairs.get("m_payment_id") or "").strip()
        if not order_id:
            raise MissingOrderId()
        bind_order_id(order_id)
        status = (pairs.get("payment_status") or "").strip().upper()
        amount = parse_amount(pairs.get("amount_gross") or pairs.get("amount") or "0") or Decimal("0")

        store = await OrderStore.open(self.workbook)
        rows = await store.find(order_id)
        expected = store.expected_total(rows)
        if rows and expected is None:
            # Never settle an order whose price cannot be checked.
            log.warning("payfast_itn_total_unreadable", notified=str(amount))
            raise AmountMismatch(
                "order total unreadable",
                details={"expected": None, "notified": format_amount(amount)},
            )
        if expected is not None and abs(expected - amount) > AMOUNT_TOLERANCE:
            log.warning("payfast_itn_amount_mismatch", expected=str(expected), notified=str(amount))
            raise AmountMismatch(details={"expected": format_amount(expected), "notified": format_amount(amount)})

        if not rows:
            log.warning("payfast_itn_unknown_order", order_id=order_id)
            return {"ok": True}

        log.info("payfast_itn", payment_status=status, amount=str(amount))
        if status == COMPLETE:
            txn_id = pairs.get("pf_payment_id") or pairs.get("token") or ""
            await settle_order(self.workbook, order_id, txn_id, rows=rows, store=store)
        return {"ok": True}
