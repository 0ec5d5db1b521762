"""
配置项领域实体 - 键值配置（键不唯一，读取时取最新一条）
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


PAYMENT_KEY_PREFIX = "payment_"
COMMISSION_SETTING_KEY = "sales_agent_commission"


def payment_setting_key(method_id: str) -> str:
    return f"{PAYMENT_KEY_PREFIX}{method_id}"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class SettingEntry:
    id: Optional[int]
    key: str
    value: Any = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    def replace_value(self, value: Any) -> None:
        self.value = value
        self.updated_at = datetime.now(timezone.utc)
