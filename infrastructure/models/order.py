"""
订单数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, JSON,
    Index, ForeignKey
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class OrderModel(Base):
    """
    订单数据库模型

    所有业务规则都在 domain.order.entity.Order 中
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), unique=True, nullable=False, comment="订单号 TB-YYYYMMDD-NNNNNN")

    # 客户信息
    customer_id = Column(String(64), nullable=True, index=True, comment="下单用户ID")
    customer_name = Column(String(200), nullable=False, comment="客户姓名")
    customer_email = Column(String(255), nullable=True, comment="客户邮箱")
    customer_phone = Column(String(32), nullable=True, comment="客户手机号")

    # 状态（字符串，不做数据库层约束）
    status = Column(String(32), nullable=False, default="pending", index=True, comment="订单状态")
    payment_status = Column(String(32), nullable=False, default="unpaid", comment="支付状态")
    payment_method = Column(String(50), nullable=True, comment="支付方式")

    # 金额（GST 含税价）
    subtotal = Column(Numeric(precision=12, scale=2), nullable=False, default=0, comment="不含税小计")
    tax_amount = Column(Numeric(precision=12, scale=2), nullable=False, default=0, comment="GST 税额")
    shipping_amount = Column(Numeric(precision=12, scale=2), nullable=False, default=0, comment="运费")
    total = Column(Numeric(precision=12, scale=2), nullable=False, default=0, comment="订单总额")
    currency = Column(String(3), nullable=False, default="INR", comment="货币代码")

    # 履约
    fulfilment_type = Column(String(20), nullable=False, default="Delivery", comment="Delivery/Pickup")
    delivery_address = Column(Text, nullable=True, comment="收货地址")
    notes = Column(Text, nullable=True, comment="备注")
    shipping_info = Column(JSON, nullable=True, comment="物流信息")

    # 代理归属
    agent_id = Column(Integer, ForeignKey("sales_agents.id"), nullable=True, index=True, comment="推荐代理ID")
    created_by = Column(String(64), nullable=True, comment="创建人用户ID")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )

    __table_args__ = (
        Index("ix_orders_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<OrderModel(id={self.id}, order_number='{self.order_number}', status='{self.status}')>"


class OrderItemModel(Base):
    """订单明细"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="订单ID"
    )
    product_id = Column(String(64), nullable=False, comment="商品ID")
    name = Column(String(255), nullable=True, comment="商品名称")
    quantity = Column(Integer, nullable=False, comment="数量")
    unit_price = Column(Numeric(precision=12, scale=2), nullable=False, comment="含税单价")
    gst_rate = Column(Numeric(precision=5, scale=2), nullable=True, comment="GST 税率(%)")

    order = relationship("OrderModel", back_populates="items")

    def __repr__(self):
        return f"<OrderItemModel(order_id={self.order_id}, product_id='{self.product_id}', quantity={self.quantity})>"
