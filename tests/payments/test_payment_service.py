import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from urllib.parse import urlencode

import httpx
import pytest

from application.dtos.payments import InitiatePaymentRequest, ManualPaymentUpdateRequest, RazorpayVerifyRequest
from application.services.commission_service import CommissionService
from application.services.payment_service import PaymentService
from domain.payment.entity import PaymentTransaction
from domain.payment.service import GatewayDisabledException, GatewayNotConfiguredException
from domain.security.policy import Subject
from infrastructure.external.payments.checksum import (
    encode_payload,
    generate_paytm_signature,
    hmac_sha256_hex,
    phonepe_checksum,
)
from infrastructure.external.payments.exceptions import PaymentSignatureError
from tests.conftest import PAYTM_CONFIG, PHONEPE_CONFIG, RAZORPAY_CONFIG


@pytest.fixture
def payment_service(uow_factory, gateway_factory, notifications):
    return PaymentService(
        uow_factory,
        gateway_factory,
        commission_service=CommissionService(uow_factory),
        notification_service=notifications,
    )


def _phonepe_callback(txn_id: str, state: str = "COMPLETED", salt: str = "salt-key-123"):
    encoded = encode_payload(
        {
            "success": state == "COMPLETED",
            "code": "PAYMENT_SUCCESS" if state == "COMPLETED" else "PAYMENT_ERROR",
            "data": {"merchantTransactionId": txn_id, "transactionId": "T2610161", "state": state, "responseCode": "SUCCESS"},
        }
    )
    headers = {"X-VERIFY": phonepe_checksum(encoded, salt, "1")}
    return headers, json.dumps({"response": encoded}).encode()


async def _transaction(uow_factory, order_id: int, txn_id: str, provider: str = "phonepe", age_minutes: int = 0):
    created = datetime.now(timezone.utc) - timedelta(minutes=age_minutes)
    async with uow_factory() as uow:
        return await uow.transaction_repository.create(
            PaymentTransaction(
                id=None,
                order_id=order_id,
                merchant_transaction_id=txn_id,
                provider=provider,
                amount=Decimal("1180.00"),
                created_at=created,
                updated_at=created,
            )
        )


async def _stored(uow_factory, order_id: int, txn_id: str):
    async with uow_factory(readonly=True) as uow:
        order = await uow.order_repository.get_by_id(order_id)
        txn = await uow.transaction_repository.get_by_transaction_id(txn_id)
    return order, txn


@pytest.mark.asyncio
async def test_initiate_persists_transaction(payment_service, uow_factory, enable_gateway, make_order, gateway_stub):
    await enable_gateway("phonepe", PHONEPE_CONFIG)
    order = await make_order()
    gateway_stub.on(
        "/pg/v1/pay",
        lambda request: httpx.Response(
            200,
            json={"success": True, "data": {"instrumentResponse": {"redirectInfo": {"url": "https://pay.example/x"}}}},
        ),
    )

    result = await payment_service.initiate(
        "PhonePe", InitiatePaymentRequest(order_id=order.id, amount=Decimal("1180.00")), Subject(user_id="user-1")
    )

    assert result.provider == "phonepe"
    assert result.redirect_url == "https://pay.example/x"
    assert result.transaction_id.startswith(f"TXN_{order.id}_")
    _, txn = await _stored(uow_factory, order.id, result.transaction_id)
    assert txn.status == "initiated"
    assert txn.amount == Decimal("1180.00")


@pytest.mark.asyncio
async def test_initiate_requires_enabled_and_configured_gateway(payment_service, enable_gateway, make_order):
    order = await make_order()
    request = InitiatePaymentRequest(order_id=order.id, amount=Decimal("1180.00"))

    with pytest.raises(GatewayNotConfiguredException):
        await payment_service.initiate("paytm", request)

    await enable_gateway("paytm", PAYTM_CONFIG, enabled=False)
    with pytest.raises(GatewayDisabledException):
        await payment_service.initiate("paytm", request)

    await enable_gateway("razorpay", {"keyId": "rzp_test_key"})
    with pytest.raises(GatewayNotConfiguredException) as exc:
        await payment_service.initiate("razorpay", request)
    assert exc.value.details["missing"] == ["keySecret"]


@pytest.mark.asyncio
async def test_success_callback_marks_order_paid(
    payment_service, uow_factory, enable_gateway, make_order, make_agent, email_sender, whatsapp_sender
):
    await enable_gateway("phonepe", PHONEPE_CONFIG)
    agent = await make_agent()
    order = await make_order(agent_id=agent.id)
    await _transaction(uow_factory, order.id, "TXN_1_100")

    headers, body = _phonepe_callback("TXN_1_100")
    ack = await payment_service.handle_callback("phonepe", headers, body)

    assert ack.status == "success"
    assert ack.order_id == order.id
    stored_order, txn = await _stored(uow_factory, order.id, "TXN_1_100")
    assert stored_order.status == "confirmed"
    assert stored_order.payment_status == "paid"
    assert txn.gateway_transaction_id == "T2610161"
    assert len(email_sender.sent) == 2
    assert len(whatsapp_sender.sent) == 2
    async with uow_factory(readonly=True) as uow:
        assert await uow.commission_repository.exists_for_order(order.id)

    # duplicate delivery refreshes the row only
    await payment_service.handle_callback("phonepe", headers, body)
    assert len(email_sender.sent) == 2


@pytest.mark.asyncio
async def test_tampered_callback_changes_nothing(payment_service, uow_factory, enable_gateway, make_order, email_sender):
    await enable_gateway("phonepe", PHONEPE_CONFIG)
    order = await make_order()
    await _transaction(uow_factory, order.id, "TXN_1_200")

    headers, body = _phonepe_callback("TXN_1_200", salt="wrong-salt")
    with pytest.raises(PaymentSignatureError):
        await payment_service.handle_callback("phonepe", headers, body)

    stored_order, txn = await _stored(uow_factory, order.id, "TXN_1_200")
    assert txn.status == "initiated"
    assert stored_order.payment_status == "unpaid"
    assert email_sender.sent == []


@pytest.mark.asyncio
async def test_failed_callback_on_disabled_gateway(payment_service, uow_factory, enable_gateway, make_order, email_sender):
    await enable_gateway("paytm", PAYTM_CONFIG, enabled=False)
    order = await make_order()
    await _transaction(uow_factory, order.id, "TXN_1_300", provider="paytm")

    fields = {"ORDERID": "TXN_1_300", "STATUS": "TXN_FAILURE", "RESPCODE": "227", "TXNID": "P1"}
    fields["CHECKSUMHASH"] = generate_paytm_signature(fields, PAYTM_CONFIG["merchantKey"])
    ack = await payment_service.handle_callback(
        "paytm", {"content-type": "application/x-www-form-urlencoded"}, urlencode(fields).encode()
    )

    assert ack.status == "failed"
    stored_order, txn = await _stored(uow_factory, order.id, "TXN_1_300")
    assert txn.response_code == "227"
    # order stays as it was; only the customer, manager and admin are told
    assert stored_order.status == "pending"
    assert {m.to for m in email_sender.sent} == {"asha@example.com", "manager@example.com", "admin@example.com"}


@pytest.mark.asyncio
async def test_razorpay_webhook_and_checkout_verification(payment_service, uow_factory, enable_gateway, make_order):
    await enable_gateway("razorpay", RAZORPAY_CONFIG)
    order = await make_order()
    await _transaction(uow_factory, order.id, "order_N1", provider="razorpay")

    body = json.dumps(
        {"event": "payment.failed", "payload": {"payment": {"entity": {"id": "pay_1", "order_id": "order_N1", "error_code": "BAD_REQUEST_ERROR"}}}}
    ).encode()
    ack = await payment_service.handle_callback(
        "razorpay", {"X-Razorpay-Signature": hmac_sha256_hex("whsec_test", body)}, body
    )
    assert ack.status == "failed"

    ack = await payment_service.verify_razorpay_checkout(
        RazorpayVerifyRequest(
            razorpay_order_id="order_N1",
            razorpay_payment_id="pay_2",
            razorpay_signature=hmac_sha256_hex("rzp_secret", "order_N1|pay_2"),
        )
    )
    assert ack.status == "success"
    stored_order, _ = await _stored(uow_factory, order.id, "order_N1")
    assert stored_order.payment_status == "paid"


@pytest.mark.asyncio
async def test_reconcile_stale_polls_open_transactions(payment_service, uow_factory, enable_gateway, make_order, gateway_stub):
    await enable_gateway("phonepe", PHONEPE_CONFIG)
    order = await make_order()
    await _transaction(uow_factory, order.id, "TXN_1_OLD", age_minutes=60)
    await _transaction(uow_factory, order.id, "TXN_1_BAD", age_minutes=45)
    await _transaction(uow_factory, order.id, "TXN_1_NEW")

    def status(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("TXN_1_BAD"):
            return httpx.Response(503, json={"code": "INTERNAL_SERVER_ERROR"})
        return httpx.Response(200, json={"success": True, "data": {"state": "COMPLETED", "transactionId": "T9"}})

    gateway_stub.on("/pg/v1/status", status)

    summary = await payment_service.reconcile_stale(min_age_minutes=15)

    assert summary == {"checked": 2, "changed": 1, "failed": 1}
    _, new_txn = await _stored(uow_factory, order.id, "TXN_1_NEW")
    assert new_txn.status == "initiated"
    stored_order, old_txn = await _stored(uow_factory, order.id, "TXN_1_OLD")
    assert old_txn.status == "success"
    assert stored_order.payment_status == "paid"


@pytest.mark.asyncio
async def test_manual_update(payment_service, uow_factory, make_order, make_agent, email_sender):
    agent = await make_agent()
    order = await make_order("1000.00", agent_id=agent.id)
    await _transaction(uow_factory, order.id, "TXN_1_400")

    updated = await payment_service.manual_update(
        ManualPaymentUpdateRequest(order_id=order.id, status="success", gateway="COD", transaction_id="TXN_1_400"),
        actor="manager-1",
    )

    assert updated.payment_status == "paid"
    assert updated.payment_method == "cod"
    _, txn = await _stored(uow_factory, order.id, "TXN_1_400")
    assert txn.status == "success"
    assert txn.gateway_response["manual_update"]["by"] == "manager-1"
    async with uow_factory(readonly=True) as uow:
        stored_agent = await uow.agent_repository.get_by_id(agent.id)
    assert stored_agent.points_balance == Decimal("1000.00")
    assert email_sender.sent

    refunded = await payment_service.manual_update(ManualPaymentUpdateRequest(order_id=order.id, status="refunded"))
    assert refunded.payment_status == "refunded"
    assert refunded.status == "confirmed"
