"""
销售代理领域服务 - 佣金计算与推荐码生成
"""
from __future__ import annotations

import random
import re
import string
from decimal import Decimal
from typing import Optional

from domain.common.money import round_money, to_decimal
from .entity import CommissionRate, CommissionType
from .exceptions import (
    AgentNotFoundException,
    AgentNotApprovedException,
    InsufficientPointsException,
    RedemptionNotFoundException,
    RedemptionStateException,
)

__all__ = [
    "calculate_commission_points",
    "generate_referral_code",
    "AgentNotFoundException",
    "AgentNotApprovedException",
    "InsufficientPointsException",
    "RedemptionNotFoundException",
    "RedemptionStateException",
]

_REFERRAL_ALPHABET = string.ascii_uppercase + string.digits


def calculate_commission_points(order_total, rate: CommissionRate) -> Decimal:
    """
    fixed_per_rupee: total * value
    percentage:      total * value / 100
    unknown type:    0

    Rounded half-up to 2 decimals.
    """
    total = to_decimal(order_total)
    value = to_decimal(rate.value)
    if rate.type == CommissionType.PERCENTAGE.value:
        points = total * value / Decimal("100")
    elif rate.type == CommissionType.FIXED_PER_RUPEE.value:
        points = total * value
    else:
        points = Decimal("0")
    return round_money(points)


def generate_referral_code(email: Optional[str], user_id: str, rng: Optional[random.Random] = None) -> str:
    """BASE-XXXX where BASE is the alphanumeric email local part (max 8 chars)."""
    rng = rng or random.SystemRandom()
    source = (email or user_id or "").split("@")[0]
    base = re.sub(r"[^a-zA-Z0-9]", "", source)[:8] or "AGENT"
    suffix = "".join(rng.choice(_REFERRAL_ALPHABET) for _ in range(4))
    return f"{base.upper()}-{suffix}"
