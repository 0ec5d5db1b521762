"""
配置项数据库模型（key 不唯一）
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON
from datetime import datetime, timezone

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SettingModel(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), nullable=False, index=True, comment="配置键")
    value = Column(JSON, nullable=True, comment="配置值")
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False, comment="更新时间")

    def __repr__(self):
        return f"<SettingModel(id={self.id}, key='{self.key}')>"
