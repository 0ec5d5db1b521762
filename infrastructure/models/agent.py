"""
销售代理相关数据库模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, JSON,
    Index, ForeignKey
)
from datetime import datetime, timezone

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SalesAgentModel(Base):
    __tablename__ = "sales_agents"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), unique=True, nullable=False, comment="用户ID")
    referral_code = Column(String(32), unique=True, nullable=False, comment="推荐码")
    status = Column(String(20), nullable=False, default="pending", index=True, comment="pending/approved/rejected")
    # 仅通过原子 UPDATE 修改
    points_balance = Column(Numeric(precision=14, scale=2), nullable=False, default=0, comment="积分余额")

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False, comment="更新时间")

    def __repr__(self):
        return f"<SalesAgentModel(id={self.id}, user_id='{self.user_id}', status='{self.status}')>"


class CommissionRecordModel(Base):
    """佣金记录（只追加）"""
    __tablename__ = "agent_commissions"

    id = Column(Integer, primary_key=True, index=True)
    agent_id = Column(Integer, ForeignKey("sales_agents.id"), nullable=False, index=True, comment="代理ID")
    # 每个订单至多一条佣金
    order_id = Column(Integer, ForeignKey("orders.id"), unique=True, nullable=False, comment="订单ID")
    order_total = Column(Numeric(precision=12, scale=2), nullable=False, comment="订单总额")
    rate_snapshot = Column(JSON, nullable=False, comment="计算时的佣金配置快照")
    points_awarded = Column(Numeric(precision=14, scale=2), nullable=False, comment="发放积分")
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, comment="创建时间")

    def __repr__(self):
        return f"<CommissionRecordModel(agent_id={self.agent_id}, order_id={self.order_id}, points={self.points_awarded})>"


class RedemptionRequestModel(Base):
    __tablename__ = "agent_redemption_requests"

    id = Column(Integer, primary_key=True, index=True)
    agent_id = Column(Integer, ForeignKey("sales_agents.id"), nullable=False, index=True, comment="代理ID")
    points = Column(Numeric(precision=14, scale=2), nullable=False, comment="兑换积分")
    status = Column(String(20), nullable=False, default="pending", comment="pending/approved/rejected/processed")
    bank_details = Column(JSON, nullable=True, comment="收款信息")
    notes = Column(Text, nullable=True, comment="备注")
    requested_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, comment="申请时间")
    processed_at = Column(DateTime(timezone=True), nullable=True, comment="处理时间")
    processed_by = Column(String(64), nullable=True, comment="处理人")

    __table_args__ = (
        Index("ix_redemptions_agent_requested", "agent_id", "requested_at"),
    )
