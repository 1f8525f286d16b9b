"""PayPal checkout: order creation, capture on return, and webhooks.

Known risks, kept deliberately until the trust model is settled:
  * create_checkout fails open. When PayPal cannot be reached the sponsor is
    sent straight to our return handler with ``ok=1`` and the order is marked
    paid without any money being captured.
  * Webhook bodies are not signature-verified, and the browser return trusts
    its query parameters.
Both paths are logged as warnings so they can be audited.
"""

import json
from decimal import Decimal
from typing import Any
from urllib.parse import quote

import httpx

from sponsor_api.core.config import Settings
from sponsor_api.core.exceptions import (
    AppError,
    MalformedWebhook,
    MissingConfig,
    MissingOrderId,
    ProviderApiError,
)
from sponsor_api.core.logging import bind_order_id, get_logger
from sponsor_api.services.pricing import format_amount
from sponsor_api.services.reconciliation import Settlement, settle_order
from sponsor_api.storage.base import Workbook

log = get_logger(__name__)

RETURN_PATH = "/v1/paypal/return"
CAPTURE_COMPLETED = "PAYMENT.CAPTURE.COMPLETED"


def _first(items: Any) -> dict:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def _payment_records(purchase_unit: dict) -> list:
    payments = purchase_unit.get("payments") or {}
    return payments.get("captures") or payments.get("authorizations") or []


def _capture_completed(event: dict, resource: dict) -> bool:
    event_type = str(event.get("event_type") or "").strip().upper()
    if event_type:
        return event_type == CAPTURE_COMPLETED
    return str(resource.get("status") or "").strip().upper() == "COMPLETED"


class PayPalGateway:
    def __init__(self, settings: Settings, http: httpx.AsyncClient, workbook: Workbook) -> None:
        self.settings = settings
        self.http = http
        self.workbook = workbook

    @property
    def api_base(self) -> str:
        return self.settings.paypal_api_base.rstrip("/")

    def return_url(self, order_id: str) -> str:
        base = self.settings.public_base_url.rstrip("/")
        return f"{base}{RETURN_PATH}?orderId={quote(order_id, safe='')}"

    async def _access_token(self) -> str:
        client_id = self.settings.paypal_client_id
        secret = self.settings.paypal_secret
        if not client_id or not secret:
            raise MissingConfig("PayPal client credentials are not configured")
        resp = await self.http.post(
            f"{self.api_base}/v1/oauth2/token",
            auth=(client_id, secret),
            data={"grant_type": "client_credentials"},
            headers={"Accept": "application/json"},
        )
        if not resp.is_success:
            log.error("paypal_api_error", path="/v1/oauth2/token", status_code=resp.status_code)
            raise ProviderApiError(f"PayPal API error: {resp.status_code}", details={"status_code": resp.status_code})
        token = resp.json().get("access_token")
        if not token:
            raise ProviderApiError("PayPal token response had no access_token")
        return token

    async def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        """Authenticated call to the REST API; raises on non-2xx."""
        token = await self._access_token()
        resp = await self.http.request(
            method,
            f"{self.api_base}{path}",
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
            json=payload,
        )
        if not resp.is_success:
            # Body may describe the failure; never echo it to the sponsor.
            log.error("paypal_api_error", path=path, status_code=resp.status_code, body=resp.text[:500])
            raise ProviderApiError(f"PayPal API error: {resp.status_code}", details={"status_code": resp.status_code})
        try:
            body = resp.json()
        except ValueError:
            return {}
        if not isinstance(body, dict):
            log.error("paypal_api_unexpected_body", path=path, body_type=type(body).__name__)
            raise ProviderApiError("PayPal returned an unexpected response body")
        return body

    async def create_checkout(self, order_id: str, total: Decimal, currency: str, quantity: int) -> str:
        """Return the PayPal approval URL, or the fail-open fallback URL."""
        return_url = self.return_url(order_id)
        data = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": order_id,
                    "description": f"{self.settings.brand_name} Sponsorship x {quantity or 1}",
                    "custom_id": order_id,
                    "amount": {"currency_code": currency, "value": format_amount(total)},
                }
            ],
            "application_context": {
                "brand_name": self.settings.brand_name,
                "return_url": return_url,
                "cancel_url": self.settings.cancel_url,
                "user_action": "PAY_NOW",
            },
        }
        try:
            res = await self._request("POST", "/v2/checkout/orders", data)
            for link in res.get("links") or []:
                if isinstance(link, dict) and link.get("rel") == "approve" and link.get("href"):
                    return link["href"]
            log.warning("paypal_checkout_no_approve_link", order_id=order_id)
        except (AppError, httpx.HTTPError, ValueError) as exc:
            log.warning("paypal_checkout_failed", order_id=order_id, error=str(exc))
        log.warning("paypal_checkout_fallback", order_id=order_id, risk="payment_not_captured")
        return return_url + "&ok=1"

    async def capture(self, token: str) -> str:
        """Capture an approved order; returns the capture id or "" on failure."""
        try:
            res = await self._request("POST", f"/v2/checkout/orders/{quote(token, safe='')}/capture")
        except (AppError, httpx.HTTPError, ValueError) as exc:
            log.error("paypal_capture_failed", error=str(exc))
            return ""
        capture = _first(_payment_records(_first(res.get("purchase_units"))))
        return str(capture.get("id") or "")

    async def handle_return(self, order_id: str, token: str = "", unverified: bool = False) -> Settlement:
        """Browser return. Marks the order paid whatever the capture outcome."""
        bind_order_id(order_id)
        if unverified:
            log.warning("paypal_return_unverified", order_id=order_id)
        capture_id = await self.capture(token) if token else ""
        return await settle_order(self.workbook, order_id, capture_id or token)

    async def handle_webhook(self, body: bytes) -> Settlement:
        try:
            event = json.loads(body.decode("utf-8")) if body else None
        except (UnicodeDecodeError, ValueError):
            raise MalformedWebhook("invalid JSON")
        if not isinstance(event, dict) or not isinstance(event.get("resource"), dict):
            raise MalformedWebhook()
        resource = event["resource"]
        purchase_unit = _first(resource.get("purchase_units"))
        if purchase_unit:
            order_id = str(purchase_unit.get("custom_id") or purchase_unit.get("reference_id") or "").strip()
            txn_id = str(_first(_payment_records(purchase_unit)).get("id") or "")
        else:
            # PAYMENT.CAPTURE.* events carry the capture itself as the resource.
            order_id = str(resource.get("custom_id") or "").strip()
            txn_id = str(resource.get("id") or "") if order_id else ""
            if order_id and not _capture_completed(event, resource):
                # Denied, refunded and reversed captures must never mark an order paid.
                log.info(
                    "paypal_webhook_ignored",
                    event_type=event.get("event_type"),
                    status=resource.get("status"),
                    order_id=order_id,
                )
                return Settlement(order_id=order_id)
        if not order_id:
            raise MissingOrderId()
        log.info("paypal_webhook", event_type=event.get("event_type"), order_id=order_id)
        return await settle_order(self.workbook, order_id, txn_id)
