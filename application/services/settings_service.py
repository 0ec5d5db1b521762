"""
后台配置服务 - 支付网关配置与佣金费率

读取时一律取 key 的最新一行；写入时更新最新一行（不存在则插入），
历史重复行通过 dedupe 清理。
"""
from __future__ import annotations

from typing import Any, Callable, Optional

from application.dtos.settings import CommissionSettingsDTO, DedupeResultDTO, PaymentSettingsUpdateDTO
from core.logging_config import get_logger
from domain.agent.entity import CommissionRate
from domain.common.exceptions import DomainValidationException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.settings.entity import (
    COMMISSION_SETTING_KEY,
    PAYMENT_KEY_PREFIX,
    SettingEntry,
    payment_setting_key,
)
from domain.settings.gateway import DEFAULT_PAYMENT_METHODS, SECRET_FIELDS, mask_method, merge_method


logger = get_logger(__name__)


def _is_masked(key: str, value: Any) -> bool:
    """Echoed mask of a secret field."""
    return key in SECRET_FIELDS and isinstance(value, str) and value.startswith("*")


def apply_updates(current: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Shallow merge; config is merged key by key and masked values echoed back by the UI are ignored."""
    merged = dict(current)
    for name, value in updates.items():
        if name == "config" and isinstance(value, dict):
            config = dict(merged.get("config") or {})
            for key, item in value.items():
                if _is_masked(key, item):
                    continue
                config[key] = item
            merged["config"] = config
        elif name != "id":
            merged[name] = value
    return merged


class SettingsService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def get_payment_settings(self) -> dict[str, dict[str, Any]]:
        async with self._uow_factory(readonly=True) as uow:
            rows = await uow.setting_repository.list_latest_by_prefix(PAYMENT_KEY_PREFIX)
        stored = {row.key[len(PAYMENT_KEY_PREFIX):]: row.value for row in rows}
        method_ids = list(DEFAULT_PAYMENT_METHODS) + sorted(k for k in stored if k not in DEFAULT_PAYMENT_METHODS)
        return {method_id: mask_method(merge_method(method_id, stored.get(method_id))) for method_id in method_ids}

    async def update_payment_settings(self, dto: PaymentSettingsUpdateDTO, actor: Optional[str] = None) -> dict[str, Any]:
        method_id = dto.method_id.strip().lower()
        if not method_id:
            raise DomainValidationException("method_id is required", field="method_id")
        key = payment_setting_key(method_id)

        async with self._uow_factory() as uow:
            latest = await uow.setting_repository.get_latest(key)
            current = merge_method(method_id, latest.value if latest else None)
            value = apply_updates(current, dto.updates)
            value["id"] = method_id
            if latest is None:
                saved = await uow.setting_repository.save(SettingEntry(id=None, key=key, value=value))
            else:
                latest.replace_value(value)
                saved = await uow.setting_repository.save(latest)

        logger.info(
            "payment_settings_updated",
            method_id=method_id,
            setting_id=saved.id,
            fields=sorted(dto.updates),
            actor=actor,
        )
        return mask_method(saved.value)

    async def dedupe(self, key: str) -> DedupeResultDTO:
        """保留最新一行，删除同 key 的其余行"""
        if not key:
            raise DomainValidationException("key is required", field="key")
        async with self._uow_factory() as uow:
            rows = await uow.setting_repository.list_by_key(key)
            if not rows:
                return DedupeResultDTO(key=key, removed=0, kept_id=None)
            kept, duplicates = rows[0], rows[1:]
            removed = await uow.setting_repository.delete_ids([row.id for row in duplicates])
        logger.info("settings_deduped", key=key, removed=removed, kept_id=kept.id)
        return DedupeResultDTO(key=key, removed=removed, kept_id=kept.id)

    async def get_commission_settings(self) -> CommissionSettingsDTO:
        async with self._uow_factory(readonly=True) as uow:
            entry = await uow.setting_repository.get_latest(COMMISSION_SETTING_KEY)
        rate = CommissionRate.from_setting(entry.value if entry else None)
        return CommissionSettingsDTO(type=rate.type, value=rate.value)

    async def update_commission_settings(self, dto: CommissionSettingsDTO, actor: Optional[str] = None) -> CommissionSettingsDTO:
        value = CommissionRate(type=dto.type, value=dto.value).snapshot()
        async with self._uow_factory() as uow:
            latest = await uow.setting_repository.get_latest(COMMISSION_SETTING_KEY)
            if latest is None:
                await uow.setting_repository.save(SettingEntry(id=None, key=COMMISSION_SETTING_KEY, value=value))
            else:
                latest.replace_value(value)
                await uow.setting_repository.save(latest)
        logger.info("commission_settings_updated", rate_type=dto.type, value=str(dto.value), actor=actor)
        return dto
