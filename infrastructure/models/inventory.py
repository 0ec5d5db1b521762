"""
库存数据库模型
"""
from sqlalchemy import Column, Integer, String, DateTime, Text
from datetime import datetime, timezone

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InventoryModel(Base):
    __tablename__ = "inventory"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(String(64), unique=True, nullable=False, comment="商品ID")
    quantity = Column(Integer, nullable=False, default=0, comment="当前库存")
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False, comment="更新时间")


class StockMovementModel(Base):
    """库存流水（只追加）"""
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(String(64), nullable=False, index=True, comment="商品ID")
    change = Column(Integer, nullable=False, comment="变动数量（出库为负）")
    quantity_after = Column(Integer, nullable=False, comment="变动后库存")
    reference_type = Column(String(32), nullable=False, comment="来源类型")
    reference_id = Column(String(64), nullable=True, comment="来源ID")
    notes = Column(Text, nullable=True, comment="备注")
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, comment="创建时间")
