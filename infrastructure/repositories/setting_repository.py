"""
配置项仓储实现

key 允许重复；"最新"按 updated_at desc, created_at desc, id desc 决定。
"""
from datetime import datetime, timezone
from typing import Optional, List, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.settings.entity import SettingEntry
from domain.settings.repository import SettingRepository
from domain.common.exceptions import ResourceNotFoundException
from infrastructure.models.setting import SettingModel
from core.logging_config import get_logger


logger = get_logger(__name__)

_LATEST_FIRST = (SettingModel.updated_at.desc(), SettingModel.created_at.desc(), SettingModel.id.desc())


class SQLAlchemySettingRepository(SettingRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: SettingModel) -> SettingEntry:
        return SettingEntry(
            id=model.id,
            key=model.key,
            value=model.value,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def get_latest(self, key: str) -> Optional[SettingEntry]:
        result = await self.session.execute(
            select(SettingModel).where(SettingModel.key == key).order_by(*_LATEST_FIRST).limit(1)
        )
        db_setting = result.scalars().first()
        return self._to_entity(db_setting) if db_setting else None

    async def list_by_key(self, key: str) -> List[SettingEntry]:
        result = await self.session.execute(
            select(SettingModel).where(SettingModel.key == key).order_by(*_LATEST_FIRST)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_latest_by_prefix(self, prefix: str) -> List[SettingEntry]:
        result = await self.session.execute(
            select(SettingModel).where(SettingModel.key.like(f"{prefix}%")).order_by(*_LATEST_FIRST)
        )
        latest: dict[str, SettingEntry] = {}
        for model in result.scalars().all():
            # 已按最新优先排序，每个 key 只保留第一条
            if model.key not in latest:
                latest[model.key] = self._to_entity(model)
        return list(latest.values())

    async def save(self, entry: SettingEntry) -> SettingEntry:
        now = datetime.now(timezone.utc)
        if entry.id is None:
            db_setting = SettingModel(key=entry.key, value=entry.value, created_at=now, updated_at=now)
            self.session.add(db_setting)
        else:
            result = await self.session.execute(select(SettingModel).where(SettingModel.id == entry.id))
            db_setting = result.scalar_one_or_none()
            if not db_setting:
                raise ResourceNotFoundException("Setting", entry.id)
            db_setting.value = entry.value
            db_setting.updated_at = now
        await self.session.flush()
        await self.session.refresh(db_setting)
        logger.info("setting_saved", key=db_setting.key, setting_id=db_setting.id)
        return self._to_entity(db_setting)

    async def delete_ids(self, ids: Sequence[int]) -> int:
        if not ids:
            return 0
        result = await self.session.execute(
            delete(SettingModel).where(SettingModel.id.in_(list(ids))).execution_options(synchronize_session=False)
        )
        logger.info("settings_deleted", ids=list(ids), count=result.rowcount)
        return result.rowcount or 0
