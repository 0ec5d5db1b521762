"""
订单领域实体 - 订单聚合根
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from domain.common.exceptions import DomainValidationException
from domain.common.money import round_money
from domain.order.exceptions import OrderStateException


class OrderStatus(str, Enum):
    """订单状态枚举（非强制状态机，见 is_out_of_sequence）"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAYMENT_FAILED = "payment_failed"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    RETURNED = "returned"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentState(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class FulfilmentType(str, Enum):
    DELIVERY = "Delivery"
    PICKUP = "Pickup"


PRE_SHIPMENT_STATUSES = frozenset({
    OrderStatus.PENDING.value,
    OrderStatus.CONFIRMED.value,
    OrderStatus.PAYMENT_FAILED.value,
})

# Relative position in the usual lifecycle; cancelled is reachable from any pre-shipment state.
_STATUS_RANK = {
    OrderStatus.PENDING.value: 0,
    OrderStatus.CONFIRMED.value: 1,
    OrderStatus.PAYMENT_FAILED.value: 1,
    OrderStatus.SHIPPED.value: 2,
    OrderStatus.IN_TRANSIT.value: 3,
    OrderStatus.DELIVERED.value: 4,
    OrderStatus.RETURNED.value: 4,
    OrderStatus.COMPLETED.value: 5,
}


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class OrderItem:
    product_id: str
    quantity: int
    unit_price: Decimal
    name: Optional[str] = None
    gst_rate: Optional[Decimal] = None
    id: Optional[int] = None
    order_id: Optional[int] = None

    def __post_init__(self):
        if not self.product_id:
            raise DomainValidationException("Item product id is required", field="product_id")
        if self.quantity is None or int(self.quantity) < 1:
            raise DomainValidationException(
                f"Item quantity must be at least 1: {self.quantity}", field="quantity"
            )
        if self.unit_price is None or Decimal(self.unit_price) < 0:
            raise DomainValidationException(
                f"Item price must not be negative: {self.unit_price}", field="price"
            )
        self.quantity = int(self.quantity)

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.unit_price) * self.quantity


@dataclass
class OrderTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


@dataclass
class Order:
    """
    订单聚合根

    业务规则：
    1. 金额统一保留两位小数（四舍五入）
    2. 只有发货前的订单可以取消
    3. 其余状态字符串不做强制迁移校验，仅提示乱序
    """

    id: Optional[int]
    order_number: str
    customer_name: str
    status: str = OrderStatus.PENDING.value
    payment_status: str = PaymentState.UNPAID.value
    customer_id: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    subtotal: Decimal = field(default_factory=lambda: Decimal("0"))
    tax_amount: Decimal = field(default_factory=lambda: Decimal("0"))
    shipping_amount: Decimal = field(default_factory=lambda: Decimal("0"))
    total: Decimal = field(default_factory=lambda: Decimal("0"))
    currency: str = "INR"
    fulfilment_type: str = FulfilmentType.DELIVERY.value
    payment_method: Optional[str] = None
    delivery_address: Optional[str] = None
    notes: Optional[str] = None
    agent_id: Optional[int] = None
    created_by: Optional[str] = None
    shipping_info: dict[str, Any] = field(default_factory=dict)
    items: list[OrderItem] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.subtotal = round_money(self.subtotal)
        self.tax_amount = round_money(self.tax_amount)
        self.shipping_amount = round_money(self.shipping_amount)
        self.total = round_money(self.total)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        if self.shipping_info is None:
            self.shipping_info = {}

    def apply_totals(self, totals: OrderTotals) -> None:
        self.subtotal = round_money(totals.subtotal)
        self.tax_amount = round_money(totals.tax_amount)
        self.total = round_money(totals.total)

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)

    def set_status(self, new_status: str) -> str:
        """Set the status string and return the previous one."""
        previous = self.status
        self.status = new_status
        self._touch()
        return previous

    def is_out_of_sequence(self, new_status: str) -> bool:
        """True when moving backwards in the usual lifecycle (e.g. delivered -> shipped)."""
        if new_status == OrderStatus.CANCELLED.value:
            return self.status not in PRE_SHIPMENT_STATUSES
        old_rank = _STATUS_RANK.get(self.status)
        new_rank = _STATUS_RANK.get(new_status)
        if old_rank is None or new_rank is None:
            return False
        return new_rank < old_rank

    def mark_paid(self, payment_method: Optional[str] = None) -> str:
        previous = self.set_status(OrderStatus.CONFIRMED.value)
        self.payment_status = PaymentState.PAID.value
        if payment_method:
            self.payment_method = payment_method
        return previous

    def mark_payment_failed(self) -> str:
        previous = self.set_status(OrderStatus.PAYMENT_FAILED.value)
        self.payment_status = PaymentState.FAILED.value
        return previous

    def mark_refunded(self) -> None:
        self.payment_status = PaymentState.REFUNDED.value
        self._touch()

    def cancel(self) -> str:
        if self.status not in PRE_SHIPMENT_STATUSES:
            raise OrderStateException(self.id, self.status, OrderStatus.CANCELLED.value)
        return self.set_status(OrderStatus.CANCELLED.value)

    def is_owned_by(self, user_id: Optional[str]) -> bool:
        return bool(user_id) and self.customer_id == str(user_id)
