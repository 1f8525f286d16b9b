"""PayPal gateway: checkout creation, capture on return, and webhooks."""

import json

import pytest

from sponsor_api.core.exceptions import MalformedWebhook, MissingOrderId
from sponsor_api.services.paypal import PayPalGateway

pytestmark = pytest.mark.asyncio


async def _rows(workbook, sheet="Order Log"):
    table = await workbook.open(sheet)
    return await table.rows()


async def test_checkout_returns_approve_link(place_order, providers):
    res = await place_order(books=["B1", "B2"], currency="USD")
    assert res["redirectUrl"] == providers.approve_href
    assert providers.paths() == ["/v1/oauth2/token", "/v2/checkout/orders"]

    token_req = providers.last("/v1/oauth2/token")
    assert token_req.headers["Authorization"].startswith("Basic ")
    assert b"grant_type=client_credentials" in token_req.content

    order_req = providers.last("/v2/checkout/orders")
    assert order_req.headers["Authorization"] == "Bearer A21AAtoken"
    payload = json.loads(order_req.content)
    unit = payload["purchase_units"][0]
    assert payload["intent"] == "CAPTURE"
    assert unit["custom_id"] == res["orderId"]
    assert unit["reference_id"] == res["orderId"]
    assert unit["amount"] == {"currency_code": "USD", "value": "700.00"}
    assert unit["description"] == "QuziiWorld Sponsorship x 2"
    assert payload["application_context"]["return_url"] == f"http://test/v1/paypal/return?orderId={res['orderId']}"


async def test_checkout_falls_back_without_credentials(settings, http, workbook, providers):
    gateway = PayPalGateway(settings.model_copy(update={"paypal_client_id": ""}), http, workbook)
    url = await gateway.create_checkout("QZ-0000AAAA", 350, "USD", 1)
    assert url == "http://test/v1/paypal/return?orderId=QZ-0000AAAA&ok=1"
    assert providers.requests == []


async def test_checkout_falls_back_on_api_error(place_order, providers):
    providers.order_status = 500
    res = await place_order()
    assert res["ok"] is True
    assert res["redirectUrl"].endswith(f"orderId={res['orderId']}&ok=1")


async def test_checkout_falls_back_without_approve_link(place_order, providers):
    providers.approve_href = ""
    res = await place_order()
    assert res["redirectUrl"].endswith("&ok=1")


async def test_return_captures_and_settles(place_order, paypal, workbook, providers):
    res = await place_order(books=["B1", "B2"])
    settlement = await paypal.handle_return(res["orderId"], "5O190127TN364715T")

    assert providers.last("/v2/checkout/orders/5O190127TN364715T/capture").method == "POST"
    assert settlement.rows_marked == 2
    rows = await _rows(workbook)
    assert all(r.get("Status") == "Paid" for r in rows)
    assert all(r.get("TxnID") == "CAP-7TT34" for r in rows)

    ledger = await _rows(workbook, "Sponsorship Requests")
    assert all(r.get("Status") == "Paid" for r in ledger)
    assert all(r.get("Date Confirmed") for r in ledger)
    assert settlement.confirmed_titles == ["The Lion Who Wrote", "Owl at Night"]


async def test_return_with_failed_capture_still_marks_paid(place_order, paypal, workbook, providers):
    providers.capture_status = 422
    res = await place_order(books=["B1"])
    await paypal.handle_return(res["orderId"], "5O190127TN364715T")
    row = (await _rows(workbook))[0]
    assert row.get("Status") == "Paid"
    assert row.get("TxnID") == "5O190127TN364715T"


async def test_unverified_return_marks_paid_without_capture(place_order, paypal, workbook, providers):
    providers.order_status = 500
    res = await place_order(books=["B1"])
    providers.requests.clear()
    await paypal.handle_return(res["orderId"], "", unverified=True)
    assert providers.requests == []
    row = (await _rows(workbook))[0]
    assert row.get("Status") == "Paid"
    assert row.get("TxnID") == ""


async def test_webhook_marks_rows_and_confirms_ledger(place_order, paypal, workbook, webhook_body):
    res = await place_order(books=["B1", "B2"])
    settlement = await paypal.handle_webhook(webhook_body(res["orderId"]))
    assert settlement.email == "Lerato@Example.com"
    assert settlement.book_ids == ["B1", "B2"]
    rows = await _rows(workbook)
    assert {(r.get("Status"), r.get("TxnID")) for r in rows} == {("Paid", "CAP-WH-1")}
    ledger = await _rows(workbook, "Sponsorship Requests")
    assert [r.get("Status") for r in ledger] == ["Paid", "Paid"]


async def test_webhook_capture_resource_form(place_order, paypal, workbook):
    res = await place_order(books=["B3"])
    body = json.dumps({
        "event_type": "PAYMENT.CAPTURE.COMPLETED",
        "resource": {"id": "CAP-99", "custom_id": res["orderId"], "status": "COMPLETED"},
    }).encode()
    await paypal.handle_webhook(body)
    row = (await _rows(workbook))[0]
    assert (row.get("Status"), row.get("TxnID")) == ("Paid", "CAP-99")


async def test_webhook_without_resource_is_malformed(paypal, workbook):
    with pytest.raises(MalformedWebhook):
        await paypal.handle_webhook(json.dumps({"event_type": "PING"}).encode())
    with pytest.raises(MalformedWebhook):
        await paypal.handle_webhook(b"")
    assert "Order Log" not in workbook.sheets


async def test_webhook_invalid_json_is_malformed(paypal):
    with pytest.raises(MalformedWebhook) as exc:
        await paypal.handle_webhook(b"{not json")
    assert exc.value.message == "invalid JSON"


async def test_webhook_without_order_id(paypal):
    body = json.dumps({"resource": {"purchase_units": [{"payments": {"captures": [{"id": "X"}]}}]}}).encode()
    with pytest.raises(MissingOrderId):
        await paypal.handle_webhook(body)


async def test_webhook_for_unknown_order_writes_nothing(place_order, paypal, workbook, webhook_body):
    await place_order(books=["B1"])
    before = workbook.dump("Order Log")
    settlement = await paypal.handle_webhook(webhook_body("QZ-NOTFOUND"))
    assert settlement.rows_marked == 0
    assert workbook.dump("Order Log") == before


async def test_repeat_notifications_keep_first_txn_id(place_order, paypal, workbook, webhook_body):
    res = await place_order(books=["B1", "B2"])
    await paypal.handle_webhook(webhook_body(res["orderId"], "CAP-FIRST"))
    ledger_before = workbook.dump("Sponsorship Requests")
    again = await paypal.handle_webhook(webhook_body(res["orderId"], "CAP-SECOND"))
    assert again.rows_marked == 0
    assert again.confirmed_titles == []
    assert {r.get("TxnID") for r in await _rows(workbook)} == {"CAP-FIRST"}
    assert workbook.dump("Sponsorship Requests") == ledger_before


async def test_legacy_uppercase_paid_is_not_rewritten(place_order, paypal, workbook, webhook_body):
    res = await place_order(books=["B1"])
    table = await workbook.open("Order Log")
    row = (await table.rows())[0]
    await table.update_cell(row, "Status", "PAID")
    settlement = await paypal.handle_webhook(webhook_body(res["orderId"], "CAP-LATE"))
    assert settlement.rows_marked == 0
    row = (await _rows(workbook))[0]
    assert row.get("Status") == "PAID"
    assert row.get("TxnID") == "CAP-LATE"


def _capture_event(event_type: str, order_id: str, capture_id: str, status: str) -> bytes:
    return json.dumps({
        "event_type": event_type,
        "resource": {"id": capture_id, "custom_id": order_id, "status": status},
    }).encode()


@pytest.mark.parametrize(
    "event_type,status",
    [
        ("PAYMENT.CAPTURE.DENIED", "DENIED"),
        ("PAYMENT.CAPTURE.REFUNDED", "REFUNDED"),
        ("PAYMENT.CAPTURE.REVERSED", "REVERSED"),
        ("PAYMENT.CAPTURE.PENDING", "PENDING"),
    ],
)
async def test_unsuccessful_capture_events_write_nothing(place_order, paypal, workbook, event_type, status):
    res = await place_order(books=["B1", "B2"])
    orders_before = workbook.dump("Order Log")
    ledger_before = workbook.dump("Sponsorship Requests")
    settlement = await paypal.handle_webhook(_capture_event(event_type, res["orderId"], "CAP-X", status))
    assert settlement.order_id == res["orderId"]
    assert settlement.rows_marked == 0
    assert workbook.dump("Order Log") == orders_before
    assert workbook.dump("Sponsorship Requests") == ledger_before
    assert [r.get("Status") for r in await _rows(workbook)] == ["Pending", "Pending"]


async def test_refund_after_payment_keeps_original_txn_id(place_order, paypal, workbook):
    res = await place_order(books=["B1"])
    await paypal.handle_webhook(_capture_event("PAYMENT.CAPTURE.COMPLETED", res["orderId"], "CAP-1", "COMPLETED"))
    await paypal.handle_webhook(_capture_event("PAYMENT.CAPTURE.REFUNDED", res["orderId"], "REF-1", "REFUNDED"))
    row = (await _rows(workbook))[0]
    assert (row.get("Status"), row.get("TxnID")) == ("Paid", "CAP-1")


async def test_capture_resource_without_event_type_uses_status(place_order, paypal, workbook):
    res = await place_order(books=["B1"])
    denied = json.dumps({"resource": {"id": "CAP-D", "custom_id": res["orderId"], "status": "DENIED"}}).encode()
    await paypal.handle_webhook(denied)
    assert (await _rows(workbook))[0].get("Status") == "Pending"
    done = json.dumps({"resource": {"id": "CAP-C", "custom_id": res["orderId"], "status": "COMPLETED"}}).encode()
    await paypal.handle_webhook(done)
    assert (await _rows(workbook))[0].get("TxnID") == "CAP-C"


async def test_checkout_falls_back_on_non_object_body(place_order, providers):
    providers.order_body = ["not", "an", "object"]
    res = await place_order()
    assert res["ok"] is True
    assert res["redirectUrl"].endswith(f"orderId={res['orderId']}&ok=1")


async def test_capture_with_non_object_body_settles_with_token(place_order, paypal, workbook, providers):
    res = await place_order(books=["B1"])
    providers.capture_body = "unexpected"
    await paypal.handle_return(res["orderId"], "5O190127TN364715T")
    row = (await _rows(workbook))[0]
    assert (row.get("Status"), row.get("TxnID")) == ("Paid", "5O190127TN364715T")
