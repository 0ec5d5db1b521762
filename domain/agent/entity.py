"""
销售代理领域实体 - 代理、佣金记录与积分兑换
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from domain.common.exceptions import DomainValidationException
from domain.common.money import round_money, to_decimal
from domain.agent.exceptions import RedemptionStateException


class AgentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CommissionType(str, Enum):
    FIXED_PER_RUPEE = "fixed_per_rupee"
    PERCENTAGE = "percentage"


class RedemptionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class SalesAgent:
    """
    销售代理

    积分余额只通过仓储的原子增减修改，实体上的值仅为读取快照。
    """

    id: Optional[int]
    user_id: str
    referral_code: str
    status: str = AgentStatus.PENDING.value
    points_balance: Decimal = field(default_factory=lambda: Decimal("0"))
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.points_balance = round_money(self.points_balance or 0)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    @property
    def is_approved(self) -> bool:
        return self.status == AgentStatus.APPROVED.value

    def set_status(self, status: str) -> None:
        if status not in (AgentStatus.APPROVED.value, AgentStatus.REJECTED.value, AgentStatus.PENDING.value):
            raise DomainValidationException(f"Invalid agent status: {status}", field="status")
        self.status = status
        self.updated_at = datetime.now(timezone.utc)


@dataclass(frozen=True)
class CommissionRate:
    """Commission rate configuration: {type, value}."""

    type: str
    value: Decimal

    @classmethod
    def from_setting(cls, raw: Optional[dict[str, Any]]) -> "CommissionRate":
        if not raw:
            return DEFAULT_COMMISSION_RATE
        rate_type = str(raw.get("type") or CommissionType.FIXED_PER_RUPEE.value)
        value = raw.get("value")
        if value is None:
            value = DEFAULT_COMMISSION_RATE.value
        return cls(type=rate_type, value=to_decimal(value))

    def snapshot(self) -> dict[str, Any]:
        return {"type": self.type, "value": float(self.value)}


DEFAULT_COMMISSION_RATE = CommissionRate(type=CommissionType.FIXED_PER_RUPEE.value, value=Decimal("1.0"))


@dataclass
class CommissionRecord:
    """Append-only audit row; never updated after insert."""

    id: Optional[int]
    agent_id: int
    order_id: int
    order_total: Decimal
    points_awarded: Decimal
    rate_snapshot: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.order_total = round_money(self.order_total)
        self.points_awarded = round_money(self.points_awarded)
        self.created_at = _ensure_utc(self.created_at)


@dataclass
class RedemptionRequest:
    id: Optional[int]
    agent_id: int
    points: Decimal
    status: str = RedemptionStatus.PENDING.value
    bank_details: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    requested_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    processed_by: Optional[str] = None

    def __post_init__(self):
        if self.points is None or to_decimal(self.points) <= 0:
            raise DomainValidationException("Invalid points", field="points")
        self.points = round_money(self.points)
        self.requested_at = _ensure_utc(self.requested_at)
        self.processed_at = _ensure_utc(self.processed_at)

    def review(self, approve: bool, reviewer: str, notes: Optional[str] = None) -> None:
        if self.status != RedemptionStatus.PENDING.value:
            raise RedemptionStateException(self.id, self.status, "review")
        self.status = RedemptionStatus.APPROVED.value if approve else RedemptionStatus.REJECTED.value
        self.processed_by = reviewer
        if notes:
            self.notes = notes

    def mark_processed(self, processor: str) -> None:
        if self.status != RedemptionStatus.APPROVED.value:
            raise RedemptionStateException(self.id, self.status, "process")
        self.status = RedemptionStatus.PROCESSED.value
        self.processed_by = processor
        self.processed_at = datetime.now(timezone.utc)
