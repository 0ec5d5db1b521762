"""
支付流水数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, JSON,
    Index, ForeignKey
)
from datetime import datetime, timezone

from .base import Base


class PaymentTransactionModel(Base):
    """
    支付流水数据库模型

    所有业务规则都在 domain.payment.entity.PaymentTransaction 中
    """
    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True, comment="订单ID")

    # 商户交易号（PhonePe/Paytm 为 TXN_{orderId}_{ms}，Razorpay 为 order_xxx）
    transaction_id = Column(String(100), unique=True, nullable=False, comment="商户交易号")
    provider = Column(String(32), nullable=False, index=True, comment="支付网关: phonepe/paytm/razorpay")
    gateway_transaction_id = Column(String(200), nullable=True, comment="网关交易号")

    amount = Column(Numeric(precision=12, scale=2), nullable=False, comment="支付金额")
    status = Column(
        String(20),
        nullable=False,
        default="initiated",
        index=True,
        comment="状态: initiated/success/failed/pending"
    )
    response_code = Column(String(64), nullable=True, comment="网关响应码")
    gateway_response = Column(JSON, nullable=True, comment="网关原始响应")

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

    __table_args__ = (
        Index("ix_payment_transactions_status_created", "status", "created_at"),
    )

    def __repr__(self):
        return (
            f"<PaymentTransactionModel(id={self.id}, transaction_id='{self.transaction_id}', "
            f"provider='{self.provider}', amount={self.amount}, status='{self.status}')>"
        )
