"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Literal
from pydantic import BaseModel, Field, field_validator
from pydantic.types import condecimal


class InitiatePaymentRequest(BaseModel):
    """发起支付请求体"""
    order_id: Optional[int] = None
    amount: Optional[condecimal(gt=0, max_digits=12, decimal_places=2)] = None  # type: ignore[valid-type]
    customer_phone: Optional[str] = Field(None, max_length=20)
    customer_email: Optional[str] = Field(None, max_length=255)
    customer_name: Optional[str] = Field(None, max_length=255)


class PaymentInitiation(BaseModel):
    """Provider-neutral input handed to a gateway adapter."""
    order_id: int
    merchant_transaction_id: str
    amount: Decimal
    currency: str = "INR"
    user_id: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    redirect_url: Optional[str] = None
    callback_url: Optional[str] = None


class PaymentInitiationResult(BaseModel):
    provider: str
    merchant_transaction_id: str
    redirect_url: Optional[str] = None
    # Razorpay checkout options (order id, key id, amount in paise)
    checkout: Optional[dict[str, Any]] = None
    raw: dict[str, Any] = Field(default_factory=dict)


class GatewayResult(BaseModel):
    """A verified callback or a status-check answer, already mapped to the internal status."""
    provider: str
    merchant_transaction_id: str
    provider_state: Optional[str] = None
    status: Literal["success", "failed", "pending"]
    gateway_transaction_id: Optional[str] = None
    response_code: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)


class InitiatePaymentResponse(BaseModel):
    transaction_id: str
    provider: str
    redirect_url: Optional[str] = None
    checkout: Optional[dict[str, Any]] = None


class TransactionDTO(BaseModel):
    transaction_id: str
    order_id: int
    provider: str
    amount: Decimal
    status: str
    gateway_transaction_id: Optional[str] = None
    response_code: Optional[str] = None


class CallbackAck(BaseModel):
    transaction_id: str
    status: str
    order_id: Optional[int] = None


class RazorpayVerifyRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class ManualPaymentUpdateRequest(BaseModel):
    """后台手工更新支付状态"""
    order_id: int
    status: Literal["success", "failed", "refunded", "pending"]
    amount: Optional[condecimal(ge=0, max_digits=12, decimal_places=2)] = None  # type: ignore[valid-type]
    gateway: Optional[str] = None
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = Field(None, max_length=500)

    @field_validator("gateway")
    @classmethod
    def _lower_gateway(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v
