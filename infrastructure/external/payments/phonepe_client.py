"""
PhonePe PG (pay page) adapter.

- 发起: POST {base}/pg/v1/pay, body {"request": base64(json)}, X-VERIFY = sha256(base64 + path + saltKey)###index
- 查询: GET {base}/pg/v1/status/{merchantId}/{txnId}, X-VERIFY = sha256(path + saltKey)###index
- 回调: {"response": base64(json)}, X-VERIFY = sha256(response + saltKey)###index
"""
from __future__ import annotations

import json
import time
from typing import Any, Mapping

from application.dtos.payments import GatewayResult, PaymentInitiation, PaymentInitiationResult
from core.settings import payment_settings
from domain.common.money import to_paise
from infrastructure.external.payments.base import BasePaymentClient, header_value
from infrastructure.external.payments.checksum import (
    decode_payload,
    encode_payload,
    phonepe_checksum,
    verify_phonepe_checksum,
)
from infrastructure.external.payments.exceptions import PaymentSignatureError


PAY_PATH = "/pg/v1/pay"
STATUS_PATH = "/pg/v1/status"


class PhonePeClient(BasePaymentClient):
    provider = "phonepe"

    def __init__(self, config: Mapping[str, Any], **kwargs) -> None:
        super().__init__(config, **kwargs)
        self.merchant_id: str = self.config["merchantId"]
        self.salt_key: str = self.config["saltKey"]
        self.salt_index: str = str(self.config.get("saltIndex") or "1")
        self.base_url: str = (self.config.get("baseUrl") or payment_settings.phonepe.base_url).rstrip("/")

    async def initiate(self, req: PaymentInitiation) -> PaymentInitiationResult:  # type: ignore[override]
        payload: dict[str, Any] = {
            "merchantId": self.merchant_id,
            "merchantTransactionId": req.merchant_transaction_id,
            "merchantUserId": req.user_id or f"USER_{req.order_id}_{int(time.time() * 1000)}",
            "amount": to_paise(req.amount),
            "redirectUrl": req.redirect_url,
            "redirectMode": "POST",
            "callbackUrl": req.callback_url,
            "paymentInstrument": {"type": "PAY_PAGE"},
        }
        if req.customer_phone:
            payload["mobileNumber"] = req.customer_phone

        encoded = encode_payload(payload)
        headers = {"X-VERIFY": phonepe_checksum(encoded, self.salt_key, self.salt_index, PAY_PATH)}
        data = await self._post_json(f"{self.base_url}{PAY_PATH}", {"request": encoded}, headers=headers)

        redirect_url = (
            ((data.get("data") or {}).get("instrumentResponse") or {}).get("redirectInfo") or {}
        ).get("url")
        if not data.get("success") or not redirect_url:
            self._log("phonepe_initiate_rejected", code=data.get("code"), transaction_id=req.merchant_transaction_id)
            raise self._provider_error(
                data.get("message") or "PhonePe payment initiation failed",
                data,
                provider_code=data.get("code"),
            )

        self._log("phonepe_initiated", transaction_id=req.merchant_transaction_id, order_id=req.order_id)
        return PaymentInitiationResult(
            provider=self.provider,
            merchant_transaction_id=req.merchant_transaction_id,
            redirect_url=redirect_url,
            raw=data,
        )

    async def check_status(self, merchant_transaction_id: str) -> GatewayResult:  # type: ignore[override]
        path = f"{STATUS_PATH}/{self.merchant_id}/{merchant_transaction_id}"
        headers = {
            "X-VERIFY": phonepe_checksum(path, self.salt_key, self.salt_index),
            "X-MERCHANT-ID": self.merchant_id,
        }
        data = await self._get_json(f"{self.base_url}{path}", headers=headers)
        body = data.get("data")
        if not isinstance(body, dict):
            raise self._provider_error(data.get("message") or "PhonePe status check failed", data, data.get("code"))
        return self._result(
            merchant_transaction_id,
            body.get("state"),
            gateway_transaction_id=body.get("transactionId"),
            response_code=body.get("responseCode"),
            payload=data,
        )

    def parse_webhook(self, headers: Mapping[str, Any], body: bytes) -> GatewayResult:  # type: ignore[override]
        try:
            envelope = json.loads(body or b"{}")
        except ValueError as exc:
            raise PaymentSignatureError("Malformed callback body", provider=self.provider) from exc
        encoded = envelope.get("response") if isinstance(envelope, dict) else None
        if not encoded:
            raise PaymentSignatureError("Missing response payload", provider=self.provider)

        received = header_value(headers, "X-VERIFY")
        if not verify_phonepe_checksum(encoded, received, self.salt_key, self.salt_index):
            raise PaymentSignatureError("Invalid X-VERIFY checksum", provider=self.provider)

        try:
            decoded = decode_payload(encoded)
        except ValueError as exc:
            raise PaymentSignatureError("Undecodable response payload", provider=self.provider) from exc
        data = decoded.get("data") or {}
        return self._result(
            data.get("merchantTransactionId") or "",
            data.get("state"),
            gateway_transaction_id=data.get("transactionId"),
            response_code=data.get("responseCode"),
            payload=decoded,
        )
