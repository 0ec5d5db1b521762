"""
支付领域事件

事务提交之后由应用服务发布，通知扇出据此选择模板。
actor 为空表示由网关回调/轮询产生，否则为后台手工操作人。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class PaymentEvent:
    order_id: int
    provider: str
    transaction_id: Optional[str] = None
    actor: Optional[str] = None
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_manual(self) -> bool:
        return self.actor is not None


@dataclass
class PaymentSucceeded(PaymentEvent):
    pass


@dataclass
class PaymentFailed(PaymentEvent):
    # provider response code or back-office reason
    reason: Optional[str] = None


@dataclass
class PaymentRefunded(PaymentEvent):
    amount: str = ""
