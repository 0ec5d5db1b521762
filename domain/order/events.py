"""
Order domain events.

Dataclass events record order lifecycle facts consumed by the notification
fan-out. Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class OrderEvent:
    order_id: int
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class OrderPlaced(OrderEvent):
    agent_id: Optional[int] = None


@dataclass
class ShipmentUpdated(OrderEvent):
    shipping_status: str = ""
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    estimated_delivery: Optional[str] = None


@dataclass
class OrderCancelled(OrderEvent):
    reason: Optional[str] = None
