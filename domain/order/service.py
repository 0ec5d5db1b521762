"""
订单领域服务 - 价格计算与订单号生成
"""
from __future__ import annotations

import random
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from domain.common.money import round_money, to_decimal
from .entity import OrderItem, OrderTotals
from .exceptions import OrderNotFoundException, OrderStateException

__all__ = [
    "compute_totals",
    "generate_order_number",
    "OrderNotFoundException",
    "OrderStateException",
]


def compute_totals(items: Iterable[OrderItem], default_gst_rate: Decimal = Decimal("0")) -> OrderTotals:
    """
    Compute totals for GST-inclusive item prices.

    total    = sum(price * qty)
    subtotal = sum(price / (1 + rate/100) * qty)
    tax      = max(0, total - subtotal)

    Values are accumulated unrounded and each result is rounded half-up to 2 places.
    """
    subtotal = Decimal("0")
    total = Decimal("0")
    for item in items:
        price = to_decimal(item.unit_price)
        rate = to_decimal(item.gst_rate) if item.gst_rate is not None else to_decimal(default_gst_rate)
        total += price * item.quantity
        base = price / (Decimal("1") + rate / Decimal("100"))
        subtotal += base * item.quantity
    tax = max(Decimal("0"), total - subtotal)
    return OrderTotals(
        subtotal=round_money(subtotal),
        tax_amount=round_money(tax),
        total=round_money(total),
    )


def generate_order_number(now: Optional[datetime] = None) -> str:
    """TB-YYYYMMDD-NNNNNN (last six digits of the epoch millis)."""
    now = now or datetime.now(timezone.utc)
    millis = int(now.timestamp() * 1000) + random.randint(0, 999)
    return f"TB-{now:%Y%m%d}-{str(millis)[-6:]}"
