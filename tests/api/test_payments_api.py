import json
from decimal import Decimal

import httpx
import pytest

from domain.payment.entity import PaymentTransaction
from infrastructure.external.payments.checksum import encode_payload, hmac_sha256_hex, phonepe_checksum
from tests.conftest import PAYTM_CONFIG, PHONEPE_CONFIG, RAZORPAY_CONFIG


async def _transaction(uow_factory, order_id: int, txn_id: str, provider: str = "phonepe"):
    async with uow_factory() as uow:
        await uow.transaction_repository.create(
            PaymentTransaction(
                id=None, order_id=order_id, merchant_transaction_id=txn_id, provider=provider, amount=Decimal("1180.00")
            )
        )


async def _order_state(uow_factory, order_id: int):
    async with uow_factory(readonly=True) as uow:
        return await uow.order_repository.get_by_id(order_id)


@pytest.mark.asyncio
async def test_initiate_and_status(api_client, enable_gateway, make_order, gateway_stub, auth_headers):
    await enable_gateway("phonepe", PHONEPE_CONFIG)
    order = await make_order()
    gateway_stub.on(
        "/pg/v1/pay",
        lambda request: httpx.Response(
            200,
            json={"success": True, "data": {"instrumentResponse": {"redirectInfo": {"url": "https://pay.example/x"}}}},
        ),
    )
    gateway_stub.on(
        "/pg/v1/status",
        lambda request: httpx.Response(200, json={"success": True, "data": {"state": "PENDING"}}),
    )

    resp = await api_client.post(
        "/api/v1/payments/phonepe/initiate",
        json={"order_id": order.id, "amount": "1180.00"},
        headers=auth_headers(),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["redirect_url"] == "https://pay.example/x"

    status = await api_client.get(
        "/api/v1/payments/phonepe/status", params={"transaction_id": data["transaction_id"]}
    )
    assert status.status_code == 200
    assert status.json()["data"]["status"] == "pending"
    assert status.json()["data"]["amount"] == "1180.00"


@pytest.mark.asyncio
async def test_initiate_errors(api_client, enable_gateway, make_order):
    order = await make_order()

    missing_amount = await api_client.post("/api/v1/payments/phonepe/initiate", json={"order_id": order.id})
    assert missing_amount.status_code == 400
    assert missing_amount.json()["field"] == "amount"

    unsupported = await api_client.post(
        "/api/v1/payments/stripe/initiate", json={"order_id": order.id, "amount": "10.00"}
    )
    assert unsupported.status_code == 400

    not_configured = await api_client.post(
        "/api/v1/payments/paytm/initiate", json={"order_id": order.id, "amount": "10.00"}
    )
    assert not_configured.status_code == 503

    await enable_gateway("phonepe", PHONEPE_CONFIG, enabled=False)
    disabled = await api_client.post(
        "/api/v1/payments/phonepe/initiate", json={"order_id": order.id, "amount": "10.00"}
    )
    assert disabled.status_code == 400
    assert disabled.json()["type"] == "GatewayDisabled"


@pytest.mark.asyncio
async def test_initiate_is_rate_limited_per_provider(api_client, enable_gateway, make_order):
    await enable_gateway("phonepe", PHONEPE_CONFIG, enabled=False)
    order = await make_order()
    body = {"order_id": order.id, "amount": "10.00"}

    for _ in range(5):
        resp = await api_client.post("/api/v1/payments/phonepe/initiate", json=body)
        assert resp.status_code == 400

    limited = await api_client.post("/api/v1/payments/phonepe/initiate", json=body)
    assert limited.status_code == 429
    assert "Retry-After" in limited.headers

    other = await api_client.post("/api/v1/payments/paytm/initiate", json=body)
    assert other.status_code == 503


@pytest.mark.asyncio
async def test_phonepe_callback(api_client, uow_factory, enable_gateway, make_order):
    await enable_gateway("phonepe", PHONEPE_CONFIG)
    order = await make_order()
    await _transaction(uow_factory, order.id, "TXN_1_500")
    encoded = encode_payload({"data": {"merchantTransactionId": "TXN_1_500", "state": "COMPLETED", "transactionId": "T1"}})
    body = json.dumps({"response": encoded})

    tampered = await api_client.post(
        "/api/v1/payments/phonepe/callback",
        content=body,
        headers={"Content-Type": "application/json", "X-VERIFY": phonepe_checksum(encoded, "nope", "1")},
    )
    assert tampered.status_code == 400
    assert tampered.json()["type"] == "PaymentSignatureError"
    assert (await _order_state(uow_factory, order.id)).payment_status == "unpaid"

    resp = await api_client.post(
        "/api/v1/payments/phonepe/callback",
        content=body,
        headers={"Content-Type": "application/json", "X-VERIFY": phonepe_checksum(encoded, "salt-key-123", "1")},
    )
    assert resp.status_code == 200
    assert resp.json()["data"] == {"transaction_id": "TXN_1_500", "status": "success", "order_id": order.id}
    assert (await _order_state(uow_factory, order.id)).status == "confirmed"


@pytest.mark.asyncio
async def test_callback_with_undecodable_input_is_rejected(api_client, uow_factory, enable_gateway, make_order):
    await enable_gateway("phonepe", PHONEPE_CONFIG)
    await enable_gateway("paytm", PAYTM_CONFIG)
    order = await make_order()
    await _transaction(uow_factory, order.id, "TXN_1_501")
    encoded = encode_payload({"data": {"merchantTransactionId": "TXN_1_501", "state": "COMPLETED"}})

    phonepe = await api_client.post(
        "/api/v1/payments/phonepe/callback",
        content=json.dumps({"response": encoded}),
        headers={"Content-Type": "application/json", "X-VERIFY": b"\xe9abc###1"},
    )
    assert phonepe.status_code == 400
    assert phonepe.json()["type"] == "PaymentSignatureError"

    paytm = await api_client.post(
        "/api/v1/payments/paytm/callback",
        content=b"ORDERID=\xff\xfe&CHECKSUMHASH=abc",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert paytm.status_code == 400
    assert paytm.json()["type"] == "PaymentSignatureError"

    state = await _order_state(uow_factory, order.id)
    assert (state.status, state.payment_status) == ("pending", "unpaid")


@pytest.mark.asyncio
async def test_callback_for_unknown_transaction(api_client, enable_gateway):
    await enable_gateway("razorpay", RAZORPAY_CONFIG)
    body = json.dumps(
        {"event": "payment.captured", "payload": {"payment": {"entity": {"id": "pay_1", "order_id": "order_missing"}}}}
    ).encode()

    resp = await api_client.post(
        "/api/v1/payments/razorpay/webhook",
        content=body,
        headers={"X-Razorpay-Signature": hmac_sha256_hex("whsec_test", body)},
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_razorpay_verify(api_client, uow_factory, enable_gateway, make_order):
    await enable_gateway("razorpay", RAZORPAY_CONFIG)
    order = await make_order()
    await _transaction(uow_factory, order.id, "order_N9", provider="razorpay")

    bad = await api_client.post(
        "/api/v1/payments/razorpay/verify",
        json={"razorpay_order_id": "order_N9", "razorpay_payment_id": "pay_9", "razorpay_signature": "00"},
    )
    assert bad.status_code == 400

    non_ascii = await api_client.post(
        "/api/v1/payments/razorpay/verify",
        json={"razorpay_order_id": "order_N9", "razorpay_payment_id": "pay_9", "razorpay_signature": "\u00e9f00"},
    )
    assert non_ascii.status_code == 400

    good = await api_client.post(
        "/api/v1/payments/razorpay/verify",
        json={
            "razorpay_order_id": "order_N9",
            "razorpay_payment_id": "pay_9",
            "razorpay_signature": hmac_sha256_hex("rzp_secret", "order_N9|pay_9"),
        },
    )
    assert good.status_code == 200
    assert good.json()["data"]["status"] == "success"


@pytest.mark.asyncio
async def test_manual_update_requires_staff(api_client, auth_headers, make_order):
    order = await make_order()
    payload = {"order_id": order.id, "status": "failed", "failure_reason": "Bank declined"}

    denied = await api_client.post("/api/v1/payments/update", json=payload, headers=auth_headers())
    assert denied.status_code == 403

    resp = await api_client.post("/api/v1/payments/update", json=payload, headers=auth_headers("m-1", role="manager"))
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "payment_failed"
    assert data["payment_status"] == "failed"
