"""
Paytm (All-in-One) adapter: initiateTransaction + show payment page, order status, form callback.
"""
from __future__ import annotations

import json
from typing import Any, Mapping
from urllib.parse import parse_qsl, urlencode

from application.dtos.payments import GatewayResult, PaymentInitiation, PaymentInitiationResult
from core.settings import payment_settings
from domain.common.money import round_money
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.checksum import generate_paytm_signature, verify_paytm_signature
from infrastructure.external.payments.exceptions import PaymentSignatureError


class PaytmClient(BasePaymentClient):
    provider = "paytm"

    def __init__(self, config: Mapping[str, Any], **kwargs) -> None:
        super().__init__(config, **kwargs)
        self.merchant_id: str = self.config["merchantId"]
        self.merchant_key: str = self.config["merchantKey"]
        self.website_name: str = self.config["websiteName"]
        if (self.config.get("environment") or "staging").lower() == "production":
            base_url = payment_settings.paytm.production_url
        else:
            base_url = payment_settings.paytm.staging_url
        self.base_url = base_url.rstrip("/")

    def _signed(self, body: dict[str, Any]) -> dict[str, Any]:
        # signature is computed over the exact JSON string that is sent
        return {"body": body, "head": {"signature": generate_paytm_signature(json.dumps(body), self.merchant_key)}}

    def payment_page_url(self, order_id: str, txn_token: str) -> str:
        query = urlencode({"mid": self.merchant_id, "orderId": order_id, "txnToken": txn_token})
        return f"{self.base_url}/theia/api/v1/showPaymentPage?{query}"

    async def initiate(self, req: PaymentInitiation) -> PaymentInitiationResult:  # type: ignore[override]
        order_id = req.merchant_transaction_id
        body: dict[str, Any] = {
            "requestType": "Payment",
            "mid": self.merchant_id,
            "websiteName": self.website_name,
            "orderId": order_id,
            "callbackUrl": req.callback_url,
            "txnAmount": {"value": str(round_money(req.amount)), "currency": req.currency},
            "userInfo": {
                "custId": req.user_id or f"CUST_{req.order_id}",
                "email": req.customer_email,
                "mobile": req.customer_phone,
            },
        }
        query = urlencode({"mid": self.merchant_id, "orderId": order_id})
        payload = self._signed(body)
        data = await self._send(
            "POST",
            f"{self.base_url}/theia/api/v1/initiateTransaction?{query}",
            content=json.dumps(payload),
            headers=self._headers(),
        )

        resp_body = data.get("body") or {}
        result_info = resp_body.get("resultInfo") or {}
        txn_token = resp_body.get("txnToken")
        if result_info.get("resultStatus") != "S" or not txn_token:
            self._log("paytm_initiate_rejected", result_code=result_info.get("resultCode"), transaction_id=order_id)
            raise self._provider_error(
                result_info.get("resultMsg") or "Paytm payment initiation failed",
                data,
                provider_code=result_info.get("resultCode"),
            )

        self._log("paytm_initiated", transaction_id=order_id, order_id=req.order_id)
        return PaymentInitiationResult(
            provider=self.provider,
            merchant_transaction_id=order_id,
            redirect_url=self.payment_page_url(order_id, txn_token),
            checkout={"mid": self.merchant_id, "orderId": order_id, "txnToken": txn_token},
            raw=data,
        )

    async def check_status(self, merchant_transaction_id: str) -> GatewayResult:  # type: ignore[override]
        body = {"mid": self.merchant_id, "orderId": merchant_transaction_id}
        payload = self._signed(body)
        data = await self._send(
            "POST",
            f"{self.base_url}/v3/order/status",
            content=json.dumps(payload),
            headers=self._headers(),
        )
        resp_body = data.get("body") or {}
        result_info = resp_body.get("resultInfo") or {}
        if not result_info:
            raise self._provider_error("Paytm status check failed", data)
        return self._result(
            merchant_transaction_id,
            result_info.get("resultStatus"),
            gateway_transaction_id=resp_body.get("txnId"),
            response_code=result_info.get("resultCode"),
            payload=data,
        )

    def parse_webhook(self, headers: Mapping[str, Any], body: bytes) -> GatewayResult:  # type: ignore[override]
        try:
            text = (body or b"").decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PaymentSignatureError("Malformed callback body", provider=self.provider) from exc
        fields = dict(parse_qsl(text, keep_blank_values=True))
        checksum = fields.pop("CHECKSUMHASH", None)
        if not verify_paytm_signature(fields, self.merchant_key, checksum):
            raise PaymentSignatureError("Invalid CHECKSUMHASH", provider=self.provider)
        return self._result(
            fields.get("ORDERID") or "",
            fields.get("STATUS"),
            gateway_transaction_id=fields.get("TXNID"),
            response_code=fields.get("RESPCODE"),
            payload=fields,
        )
