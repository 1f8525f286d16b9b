import json
import os
from typing import AsyncGenerator
from urllib.parse import urlencode

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Test configuration; must be set before sponsor_api is imported.
os.environ.setdefault("TABLE_BACKEND", "memory")
os.environ.setdefault("PUBLIC_BASE_URL", "http://test")
os.environ.setdefault("THANKYOU_URL", "https://quzii.test/thank-you.html")
os.environ.setdefault("CANCEL_URL", "https://quzii.test/canceled.html")
os.environ.setdefault("PP_API_BASE", "https://api-m.sandbox.paypal.com")
os.environ.setdefault("PP_CLIENT_ID", "pp-client")
os.environ.setdefault("PP_SECRET", "pp-secret")
os.environ.setdefault("PF_MODE", "sandbox")
os.environ.setdefault("PF_MERCHANT_ID", "10000100")
os.environ.setdefault("PF_MERCHANT_KEY", "46f0cd694581a")
os.environ.setdefault("PF_PASSPHRASE", "jt7NOE43FZPn")

CATALOGUE = [
    ["BookID", "Book Title", "Author"],
    ["B1", "The Lion Who Wrote", "Ann Dube"],
    ["B2", "Owl at Night", "Ben Cole"],
    ["B3", "River Song", ""],
]

TEAM = [
    ["Name", "Email", "Payout"],
    ["Thandi", "thandi@example.com", "120"],
    ["", "orphan@example.com", ""],
]


class FakeProviders:
    """Stands in for the PayPal REST API and the PayFast validate endpoint."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.order_status = 201
        self.approve_href = "https://www.sandbox.paypal.com/checkoutnow?token=5O190127TN364715T"
        self.capture_status = 201
        self.capture_id = "CAP-7TT34"
        self.validate_body = "VALID"
        self.validate_down = False
        self.order_body = None
        self.capture_body = None

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def last(self, path: str) -> httpx.Request:
        return [r for r in self.requests if r.url.path == path][-1]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "A21AAtoken", "token_type": "Bearer"})
        if path == "/v2/checkout/orders":
            if self.order_body is not None:
                return httpx.Response(201, json=self.order_body)
            if self.order_status >= 300:
                return httpx.Response(self.order_status, json={"name": "INTERNAL_SERVER_ERROR"})
            links = [{"rel": "self", "href": "https://api-m.sandbox.paypal.com/v2/checkout/orders/5O190127TN364715T"}]
            if self.approve_href:
                links.append({"rel": "approve", "href": self.approve_href})
            return httpx.Response(self.order_status, json={"id": "5O190127TN364715T", "links": links})
        if path.endswith("/capture"):
            if self.capture_body is not None:
                return httpx.Response(201, json=self.capture_body)
            if self.capture_status >= 300:
                return httpx.Response(self.capture_status, json={"name": "UNPROCESSABLE_ENTITY"})
            return httpx.Response(
                self.capture_status,
                json={"purchase_units": [{"payments": {"captures": [{"id": self.capture_id}]}}]},
            )
        if path == "/eng/query/validate":
            if self.validate_down:
                raise httpx.ConnectError("validate endpoint unreachable", request=request)
            return httpx.Response(200, text=self.validate_body)
        return httpx.Response(404)


def _sign_itn(fields: dict[str, str], passphrase: str | None = None) -> bytes:
    from sponsor_api.core.config import get_settings
    from sponsor_api.core.security import payfast_signature
    phrase = get_settings().payfast_passphrase if passphrase is None else passphrase
    signed = dict(fields)
    signed["signature"] = payfast_signature(fields, phrase)
    return urlencode(signed).encode()


def _itn_fields(order_id: str, amount: str, status: str = "COMPLETE") -> dict[str, str]:
    return {
        "m_payment_id": order_id,
        "pf_payment_id": "1089250",
        "payment_status": status,
        "item_name": "QuziiWorld Sponsorship x 2",
        "amount_gross": amount,
        "amount_fee": "-2.30",
        "amount_net": str(float(amount) - 2.30),
        "name_first": "Lerato",
        "name_last": "",
        "email_address": "lerato@example.com",
        "merchant_id": "10000100",
    }


def _webhook_body(order_id: str, capture_id: str = "CAP-WH-1") -> bytes:
    return json.dumps({
        "id": "WH-58D329510W468432D",
        "event_type": "CHECKOUT.ORDER.COMPLETED",
        "resource": {
            "id": "5O190127TN364715T",
            "purchase_units": [
                {
                    "reference_id": order_id,
                    "custom_id": order_id,
                    "payments": {"captures": [{"id": capture_id, "status": "COMPLETED"}]},
                }
            ],
        },
    }).encode()


@pytest.fixture
def sign_itn():
    return _sign_itn


@pytest.fixture
def itn_fields():
    return _itn_fields


@pytest.fixture
def webhook_body():
    return _webhook_body


@pytest.fixture
def settings():
    from sponsor_api.core.config import get_settings
    return get_settings()


@pytest.fixture
def workbook():
    from sponsor_api.storage.memory import MemoryWorkbook
    return MemoryWorkbook({"Public_Catalogue": CATALOGUE, "VA Payout Summary": TEAM})


@pytest.fixture
def providers() -> FakeProviders:
    return FakeProviders()


@pytest_asyncio.fixture
async def http(providers) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(providers.handler)) as c:
        yield c


@pytest.fixture
def paypal(settings, http, workbook):
    from sponsor_api.services.paypal import PayPalGateway
    return PayPalGateway(settings, http, workbook)


@pytest.fixture
def payfast(settings, http, workbook):
    from sponsor_api.services.payfast import PayFastGateway
    return PayFastGateway(settings, http, workbook)


@pytest.fixture
def place_order(workbook, paypal, payfast, settings):
    """Create an order through the normal creation flow."""
    from sponsor_api.services.orders import OrderRequest, create_order

    async def _place(**fields) -> dict:
        body = {
            "package": "single",
            "currency": "USD",
            "books": ["B1", "B2"],
            "name": "Lerato Mokoena",
            "email": "Lerato@Example.com",
        }
        body.update(fields)
        return await create_order(OrderRequest.model_validate(body), workbook, paypal, payfast, settings)

    return _place


@pytest_asyncio.fixture
async def client(workbook, http) -> AsyncGenerator[AsyncClient, None]:
    from sponsor_api.deps import get_http_client
    from sponsor_api.main import app
    from sponsor_api.storage.base import get_workbook
    app.dependency_overrides[get_workbook] = lambda: workbook
    app.dependency_overrides[get_http_client] = lambda: http
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
