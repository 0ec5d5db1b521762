"""
销售代理 / 佣金 / 兑换 DTO
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import ConfigDict, Field

from application.dtos.common import DTOBase


class SalesAgentDTO(DTOBase):
    id: int
    user_id: str
    referral_code: str
    status: str
    points_balance: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CommissionRecordDTO(DTOBase):
    id: int
    agent_id: int
    order_id: int
    order_total: Decimal
    points_awarded: Decimal
    rate_snapshot: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AgentProfileDTO(DTOBase):
    agent: SalesAgentDTO
    commissions: list[CommissionRecordDTO] = Field(default_factory=list)


class AgentStatusUpdateDTO(DTOBase):
    status: Literal["pending", "approved", "rejected"]


class RedemptionCreateDTO(DTOBase):
    # 数值校验（>0、余额）在服务层完成，返回 400
    points: Decimal = Field(..., max_digits=14, decimal_places=2)
    bank_details: Optional[dict[str, Any]] = None
    notes: Optional[str] = Field(None, max_length=1000)


class RedemptionReviewDTO(DTOBase):
    approve: bool
    notes: Optional[str] = Field(None, max_length=1000)


class RedemptionDTO(DTOBase):
    id: int
    agent_id: int
    points: Decimal
    status: str
    bank_details: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    requested_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    processed_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
