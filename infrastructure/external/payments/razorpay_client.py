"""
Razorpay Orders adapter (REST with basic auth).

Checkout happens client-side: initiate returns the options the Razorpay
checkout widget needs; completion arrives either as a signed webhook or as a
checkout verification call (order_id|payment_id signed with the key secret).
"""
from __future__ import annotations

import json
from typing import Any, Mapping, Optional

import httpx

from application.dtos.payments import GatewayResult, PaymentInitiation, PaymentInitiationResult
from core.settings import payment_settings
from domain.common.money import to_paise
from infrastructure.external.payments.base import BasePaymentClient, header_value
from infrastructure.external.payments.checksum import verify_razorpay_payment, verify_razorpay_webhook
from infrastructure.external.payments.exceptions import PaymentSignatureError


class RazorpayClient(BasePaymentClient):
    provider = "razorpay"

    def __init__(self, config: Mapping[str, Any], **kwargs) -> None:
        super().__init__(config, **kwargs)
        self.key_id: str = self.config["keyId"]
        self.key_secret: str = self.config["keySecret"]
        self.webhook_secret: Optional[str] = self.config.get("webhookSecret") or payment_settings.webhook.razorpay_secret
        self.base_url = (self.config.get("baseUrl") or payment_settings.razorpay.base_url).rstrip("/")

    @property
    def _auth(self) -> httpx.BasicAuth:
        return httpx.BasicAuth(self.key_id, self.key_secret)

    async def initiate(self, req: PaymentInitiation) -> PaymentInitiationResult:  # type: ignore[override]
        payload = {
            "amount": to_paise(req.amount),
            "currency": req.currency,
            "receipt": f"receipt_{req.order_id}",
            "notes": {
                "order_id": str(req.order_id),
                "customer_name": req.customer_name or "",
                "customer_email": req.customer_email or "",
                "customer_phone": req.customer_phone or "",
            },
        }
        data = await self._post_json(f"{self.base_url}/v1/orders", payload, auth=self._auth)
        if data.get("_http_status", 200) >= 400 or not data.get("id"):
            error = data.get("error") or {}
            raise self._provider_error(
                error.get("description") or "Failed to create Razorpay order",
                data,
                provider_code=error.get("code"),
            )

        razorpay_order_id = str(data["id"])
        self._log("razorpay_order_created", razorpay_order_id=razorpay_order_id, order_id=req.order_id)
        return PaymentInitiationResult(
            provider=self.provider,
            merchant_transaction_id=razorpay_order_id,
            checkout={
                "razorpayOrderId": razorpay_order_id,
                "amount": data.get("amount"),
                "currency": data.get("currency", req.currency),
                "keyId": self.key_id,
                "receipt": data.get("receipt"),
                "notes": data.get("notes"),
            },
            raw=data,
        )

    async def check_status(self, merchant_transaction_id: str) -> GatewayResult:  # type: ignore[override]
        data = await self._get_json(f"{self.base_url}/v1/orders/{merchant_transaction_id}", auth=self._auth)
        if data.get("_http_status", 200) >= 400:
            error = data.get("error") or {}
            raise self._provider_error(error.get("description") or "Razorpay status check failed", data, error.get("code"))
        return self._result(merchant_transaction_id, data.get("status"), payload=data)

    def parse_webhook(self, headers: Mapping[str, Any], body: bytes) -> GatewayResult:  # type: ignore[override]
        if not self.webhook_secret:
            raise PaymentSignatureError("Webhook secret not configured", provider=self.provider)
        signature = header_value(headers, "X-Razorpay-Signature")
        if not verify_razorpay_webhook(body or b"", signature, self.webhook_secret):
            raise PaymentSignatureError("Invalid X-Razorpay-Signature", provider=self.provider)

        try:
            event = json.loads(body)
        except ValueError as exc:
            raise PaymentSignatureError("Malformed webhook body", provider=self.provider) from exc
        entities = event.get("payload") or {}
        payment = (entities.get("payment") or {}).get("entity") or {}
        order = (entities.get("order") or {}).get("entity") or {}
        return self._result(
            payment.get("order_id") or order.get("id") or "",
            event.get("event"),
            gateway_transaction_id=payment.get("id"),
            response_code=payment.get("error_code"),
            payload=event,
        )

    def verify_checkout(self, razorpay_order_id: str, razorpay_payment_id: str, signature: str) -> GatewayResult:
        if not verify_razorpay_payment(razorpay_order_id, razorpay_payment_id, signature, self.key_secret):
            raise PaymentSignatureError("Invalid payment signature", provider=self.provider)
        return self._result(
            razorpay_order_id,
            "captured",
            gateway_transaction_id=razorpay_payment_id,
            payload={"razorpay_order_id": razorpay_order_id, "razorpay_payment_id": razorpay_payment_id},
        )
