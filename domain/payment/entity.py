"""
支付领域实体 - 支付流水（网关交易记录）
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from domain.common.exceptions import DomainValidationException
from domain.common.money import round_money


class TransactionStatus(str, Enum):
    """支付流水状态枚举"""
    INITIATED = "initiated"   # 已向网关发起
    SUCCESS = "success"       # 支付成功
    FAILED = "failed"         # 支付失败
    PENDING = "pending"       # 网关处理中/未知


class PaymentProvider(str, Enum):
    PHONEPE = "phonepe"
    PAYTM = "paytm"
    RAZORPAY = "razorpay"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class PaymentTransaction:
    """
    支付流水

    业务规则：
    1. merchant_transaction_id 全局唯一
    2. 金额必须大于0
    3. 状态总是反映最近一次网关回调/查询的结果（不做状态机校验）
    """

    id: Optional[int]
    order_id: int
    merchant_transaction_id: str
    provider: str
    amount: Decimal
    status: str = TransactionStatus.INITIATED.value
    gateway_transaction_id: Optional[str] = None
    response_code: Optional[str] = None
    gateway_response: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.amount is None or Decimal(self.amount) <= 0:
            raise DomainValidationException(
                f"Payment amount must be greater than 0: {self.amount}",
                field="amount",
            )
        self.amount = round_money(self.amount)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        if self.gateway_response is None:
            self.gateway_response = {}

    def apply_gateway_result(
        self,
        status: str,
        *,
        gateway_transaction_id: Optional[str] = None,
        response_code: Optional[str] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> None:
        """Record the latest gateway verdict on this transaction."""
        self.status = TransactionStatus(status).value
        if gateway_transaction_id:
            self.gateway_transaction_id = gateway_transaction_id
        if response_code:
            self.response_code = response_code
        if payload is not None:
            self.gateway_response = payload
        self.updated_at = datetime.now(timezone.utc)

    @property
    def is_success(self) -> bool:
        return self.status == TransactionStatus.SUCCESS.value

    @property
    def is_open(self) -> bool:
        return self.status in (TransactionStatus.INITIATED.value, TransactionStatus.PENDING.value)
