import base64
import hashlib
import json
from decimal import Decimal
from urllib.parse import urlencode

import httpx
import pytest

from application.dtos.payments import PaymentInitiation
from infrastructure.external.payments.checksum import (
    encode_payload,
    generate_paytm_signature,
    hmac_sha256_hex,
    phonepe_checksum,
)
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentRecoverableError,
    PaymentSignatureError,
)
from tests.conftest import PAYTM_CONFIG, PHONEPE_CONFIG, RAZORPAY_CONFIG


def _initiation(**overrides) -> PaymentInitiation:
    data = dict(
        order_id=7,
        merchant_transaction_id="TXN_7_1700000000000",
        amount=Decimal("1180.00"),
        user_id="user-1",
        customer_phone="9876543210",
        customer_email="asha@example.com",
        redirect_url="https://shop.example.com/payment/result",
        callback_url="https://api.example.com/api/v1/payments/phonepe/callback",
    )
    data.update(overrides)
    return PaymentInitiation(**data)


def test_factory_requires_credentials():
    from domain.payment.service import GatewayNotConfiguredException, UnsupportedProviderException
    from infrastructure.external.payments import get_payment_gateway

    with pytest.raises(GatewayNotConfiguredException) as exc:
        get_payment_gateway("razorpay", {"keyId": "rzp_test_key"})
    assert exc.value.details["missing"] == ["keySecret"]

    with pytest.raises(UnsupportedProviderException):
        get_payment_gateway("stripe", {})


@pytest.mark.asyncio
async def test_phonepe_initiate_signs_request(gateway_stub, gateway_factory):
    gateway_stub.on(
        "/pg/v1/pay",
        lambda request: httpx.Response(
            200,
            json={
                "success": True,
                "code": "PAYMENT_INITIATED",
                "data": {"instrumentResponse": {"redirectInfo": {"url": "https://mercury.phonepe.com/pay/abc"}}},
            },
        ),
    )
    client = gateway_factory("phonepe", PHONEPE_CONFIG)

    result = await client.initiate(_initiation())

    assert result.redirect_url == "https://mercury.phonepe.com/pay/abc"
    assert result.merchant_transaction_id == "TXN_7_1700000000000"
    request = gateway_stub.requests[0]
    encoded = json.loads(request.content)["request"]
    sent = json.loads(base64.b64decode(encoded))
    assert sent["amount"] == 118000
    assert sent["merchantId"] == "MERCHANTUAT"
    assert sent["paymentInstrument"] == {"type": "PAY_PAGE"}
    expected = hashlib.sha256(f"{encoded}/pg/v1/paysalt-key-123".encode()).hexdigest() + "###1"
    assert request.headers["X-VERIFY"] == expected


@pytest.mark.asyncio
async def test_phonepe_initiate_rejection_raises_provider_error(gateway_stub, gateway_factory):
    gateway_stub.on(
        "/pg/v1/pay",
        lambda request: httpx.Response(200, json={"success": False, "code": "BAD_REQUEST", "message": "Invalid"}),
    )
    client = gateway_factory("phonepe", PHONEPE_CONFIG)

    with pytest.raises(PaymentProviderError) as exc:
        await client.initiate(_initiation())
    assert exc.value.details["provider_code"] == "BAD_REQUEST"


@pytest.mark.asyncio
async def test_phonepe_status_check(gateway_stub, gateway_factory):
    gateway_stub.on(
        "/pg/v1/status",
        lambda request: httpx.Response(
            200,
            json={
                "success": True,
                "code": "PAYMENT_SUCCESS",
                "data": {"state": "COMPLETED", "transactionId": "T2311", "responseCode": "SUCCESS"},
            },
        ),
    )
    client = gateway_factory("phonepe", PHONEPE_CONFIG)

    result = await client.check_status("TXN_7_1")

    assert result.status == "success"
    assert result.gateway_transaction_id == "T2311"
    request = gateway_stub.requests[0]
    path = "/pg/v1/status/MERCHANTUAT/TXN_7_1"
    assert request.url.path.endswith(path)
    assert request.headers["X-VERIFY"] == phonepe_checksum(path, "salt-key-123", "1")
    assert request.headers["X-MERCHANT-ID"] == "MERCHANTUAT"


def test_phonepe_callback_verification(gateway_factory):
    client = gateway_factory("phonepe", PHONEPE_CONFIG)
    encoded = encode_payload(
        {
            "success": True,
            "code": "PAYMENT_ERROR",
            "data": {"merchantTransactionId": "TXN_7_1", "state": "FAILED", "responseCode": "ZM"},
        }
    )
    body = json.dumps({"response": encoded}).encode()

    result = client.parse_webhook({"x-verify": phonepe_checksum(encoded, "salt-key-123", "1")}, body)
    assert result.status == "failed"
    assert result.merchant_transaction_id == "TXN_7_1"
    assert result.response_code == "ZM"

    with pytest.raises(PaymentSignatureError):
        client.parse_webhook({"X-VERIFY": phonepe_checksum(encoded, "other-salt", "1")}, body)
    with pytest.raises(PaymentSignatureError):
        client.parse_webhook({}, b"not json")


@pytest.mark.asyncio
async def test_paytm_initiate_returns_payment_page(gateway_stub, gateway_factory):
    gateway_stub.on(
        "/theia/api/v1/initiateTransaction",
        lambda request: httpx.Response(
            200,
            json={"body": {"resultInfo": {"resultStatus": "S", "resultCode": "0000"}, "txnToken": "tok-1"}},
        ),
    )
    client = gateway_factory("paytm", PAYTM_CONFIG)

    result = await client.initiate(_initiation())

    assert result.checkout["txnToken"] == "tok-1"
    assert "showPaymentPage" in result.redirect_url
    sent = json.loads(gateway_stub.requests[0].content)
    assert sent["body"]["txnAmount"] == {"value": "1180.00", "currency": "INR"}
    assert sent["head"]["signature"]


def test_paytm_callback_checksum(gateway_factory):
    client = gateway_factory("paytm", PAYTM_CONFIG)
    fields = {
        "ORDERID": "TXN_7_1",
        "MID": "PAYTMMID01",
        "STATUS": "TXN_SUCCESS",
        "TXNID": "2026101611",
        "TXNAMOUNT": "1180.00",
        "RESPCODE": "01",
    }
    checksum = generate_paytm_signature(fields, PAYTM_CONFIG["merchantKey"])

    result = client.parse_webhook({}, urlencode({**fields, "CHECKSUMHASH": checksum}).encode())
    assert result.status == "success"
    assert result.gateway_transaction_id == "2026101611"

    tampered = urlencode({**fields, "TXNAMOUNT": "1.00", "CHECKSUMHASH": checksum}).encode()
    with pytest.raises(PaymentSignatureError):
        client.parse_webhook({}, tampered)


@pytest.mark.asyncio
async def test_razorpay_initiate_uses_basic_auth(gateway_stub, gateway_factory):
    gateway_stub.on(
        "/v1/orders",
        lambda request: httpx.Response(
            200, json={"id": "order_N1", "amount": 118000, "currency": "INR", "receipt": "receipt_7"}
        ),
    )
    client = gateway_factory("razorpay", RAZORPAY_CONFIG)

    result = await client.initiate(_initiation())

    assert result.merchant_transaction_id == "order_N1"
    assert result.checkout["keyId"] == "rzp_test_key"
    request = gateway_stub.requests[0]
    expected = base64.b64encode(b"rzp_test_key:rzp_secret").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert json.loads(request.content)["amount"] == 118000


def test_razorpay_webhook_and_checkout(gateway_factory):
    client = gateway_factory("razorpay", RAZORPAY_CONFIG)
    body = json.dumps(
        {
            "event": "payment.captured",
            "payload": {"payment": {"entity": {"id": "pay_1", "order_id": "order_N1"}}},
        }
    ).encode()

    result = client.parse_webhook({"X-Razorpay-Signature": hmac_sha256_hex("whsec_test", body)}, body)
    assert result.status == "success"
    assert result.merchant_transaction_id == "order_N1"

    with pytest.raises(PaymentSignatureError):
        client.parse_webhook({"X-Razorpay-Signature": "deadbeef"}, body)

    checkout = client.verify_checkout("order_N1", "pay_1", hmac_sha256_hex("rzp_secret", "order_N1|pay_1"))
    assert checkout.status == "success"
    with pytest.raises(PaymentSignatureError):
        client.verify_checkout("order_N1", "pay_1", "bad")


@pytest.mark.asyncio
async def test_connect_error_is_retried(gateway_stub, gateway_factory):
    calls = {"n": 0}

    def flaky(request):
        calls["n"] += 1
        if calls["n"] == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={"id": "order_N2"})

    gateway_stub.on("/v1/orders", flaky)
    client = gateway_factory("razorpay", RAZORPAY_CONFIG)

    result = await client.initiate(_initiation())

    assert result.merchant_transaction_id == "order_N2"
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_read_timeout_is_not_retried(gateway_stub, gateway_factory):
    calls = {"n": 0}

    def slow(request):
        calls["n"] += 1
        raise httpx.ReadTimeout("timed out", request=request)

    gateway_stub.on("/v1/orders", slow)
    client = gateway_factory("razorpay", RAZORPAY_CONFIG)

    with pytest.raises(PaymentRecoverableError):
        await client.initiate(_initiation())
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_server_error_is_recoverable(gateway_stub, gateway_factory):
    gateway_stub.on("/pg/v1/status", lambda request: httpx.Response(502, text="bad gateway"))
    client = gateway_factory("phonepe", PHONEPE_CONFIG)

    with pytest.raises(PaymentRecoverableError) as exc:
        await client.check_status("TXN_7_1")
    assert exc.value.details["provider_code"] == "502"
