"""
后台配置 DTO
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import Field

from application.dtos.common import DTOBase


class PaymentSettingsUpdateDTO(DTOBase):
    method_id: str = Field(..., min_length=1, max_length=32)
    updates: dict[str, Any] = Field(default_factory=dict)


class DedupeResultDTO(DTOBase):
    key: str
    removed: int
    kept_id: Optional[int] = None


class CommissionSettingsDTO(DTOBase):
    type: Literal["fixed_per_rupee", "percentage"]
    value: Decimal = Field(..., ge=0)
