"""
订单相关 DTO
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import ConfigDict, Field

from application.dtos.common import DTOBase


class OrderItemIn(DTOBase):
    product_id: str = Field(..., min_length=1, max_length=64)
    name: Optional[str] = Field(None, max_length=255)
    quantity: int = Field(..., ge=1)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="GST 含税单价")
    gst_rate: Optional[Decimal] = Field(None, ge=0, le=100)


class OrderCreateDTO(DTOBase):
    """客户下单"""
    customer_name: Optional[str] = Field(None, max_length=255)
    customer_email: Optional[str] = Field(None, max_length=255)
    customer_phone: Optional[str] = Field(None, max_length=20)
    items: list[OrderItemIn] = Field(default_factory=list)
    fulfilment_type: Literal["Delivery", "Pickup"] = "Delivery"
    payment_method: Optional[str] = Field(None, max_length=32)
    delivery_address: Optional[str] = Field(None, max_length=1000)
    shipping_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = Field(None, max_length=2000)
    referral_code: Optional[str] = Field(None, max_length=32, description="推荐代理的推荐码")


class AgentCustomerIn(DTOBase):
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    mobile: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=1000)


class AgentOrderCreateDTO(DTOBase):
    """代理代客下单"""
    customer: AgentCustomerIn
    items: list[OrderItemIn] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=2000)
    type: Literal["Delivery", "Pickup"] = "Delivery"


class OrderItemDTO(DTOBase):
    product_id: str
    name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    gst_rate: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)


class OrderDTO(DTOBase):
    id: int
    order_number: str
    status: str
    payment_status: str
    payment_method: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    total: Decimal
    currency: str
    fulfilment_type: str
    delivery_address: Optional[str] = None
    notes: Optional[str] = None
    agent_id: Optional[int] = None
    shipping_info: dict[str, Any] = Field(default_factory=dict)
    items: list[OrderItemDTO] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ShippingUpdateDTO(DTOBase):
    order_id: int
    status: Literal["pending", "shipped", "in_transit", "delivered", "returned"]
    tracking_number: Optional[str] = Field(None, max_length=100)
    carrier: str = Field("Unknown", max_length=100)
    estimated_delivery: Optional[str] = Field(None, max_length=64)
    delivery_address: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=2000)


class CommissionAwardDTO(DTOBase):
    order_id: int
    awarded: bool
    points: Decimal = Decimal("0")
    agent_id: Optional[int] = None
    reason: Optional[str] = None


class OrderCancelDTO(DTOBase):
    reason: Optional[str] = Field(None, max_length=500)
