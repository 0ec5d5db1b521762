"""
佣金应用服务 - 按订单为推荐代理发放积分

规则：
1. 每个订单最多发放一次（commission 表 order_id 唯一）
2. 佣金记录与余额递增在同一事务内；余额使用 SQL 原子递增
3. 下单/回调链路中为尽力而为（award_safely），失败只记日志
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dtos.orders import CommissionAwardDTO
from core.logging_config import get_logger
from domain.agent.entity import CommissionRate, CommissionRecord
from domain.agent.service import calculate_commission_points
from domain.common.exceptions import ConflictException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import OrderStatus
from domain.order.exceptions import OrderNotFoundException, OrderStateException
from domain.settings.entity import COMMISSION_SETTING_KEY


logger = get_logger(__name__)

AWARDABLE_STATUSES = frozenset({OrderStatus.COMPLETED.value, OrderStatus.DELIVERED.value})


class CommissionService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def get_rate(self) -> CommissionRate:
        async with self._uow_factory(readonly=True) as uow:
            entry = await uow.setting_repository.get_latest(COMMISSION_SETTING_KEY)
        return CommissionRate.from_setting(entry.value if entry else None)

    async def award_for_order(self, order_id: int) -> CommissionAwardDTO:
        """发放佣金；无代理或已发放时返回 awarded=False。"""
        try:
            async with self._uow_factory() as uow:
                order = await uow.order_repository.get_by_id(order_id, with_items=False)
                if order is None:
                    raise OrderNotFoundException(order_id)
                if order.agent_id is None:
                    return CommissionAwardDTO(order_id=order_id, awarded=False, reason="no_agent")
                if await uow.commission_repository.exists_for_order(order_id):
                    return CommissionAwardDTO(
                        order_id=order_id, awarded=False, agent_id=order.agent_id, reason="already_awarded"
                    )

                entry = await uow.setting_repository.get_latest(COMMISSION_SETTING_KEY)
                rate = CommissionRate.from_setting(entry.value if entry else None)
                points = calculate_commission_points(order.total, rate)

                await uow.commission_repository.create(
                    CommissionRecord(
                        id=None,
                        agent_id=order.agent_id,
                        order_id=order_id,
                        order_total=order.total,
                        points_awarded=points,
                        rate_snapshot=rate.snapshot(),
                    )
                )
                if points > 0:
                    await uow.agent_repository.increment_points(order.agent_id, points)
                agent_id = order.agent_id
        except ConflictException:
            # a concurrent award for the same order won the unique constraint
            return CommissionAwardDTO(order_id=order_id, awarded=False, reason="already_awarded")

        logger.info("commission_awarded", order_id=order_id, agent_id=agent_id, points=str(points), rate_type=rate.type)
        return CommissionAwardDTO(order_id=order_id, awarded=True, points=points, agent_id=agent_id)

    async def award_completed_order(self, order_id: int) -> CommissionAwardDTO:
        """显式发放：订单须为 completed 或 delivered。"""
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id, with_items=False)
        if order is None:
            raise OrderNotFoundException(order_id)
        if order.status not in AWARDABLE_STATUSES:
            raise OrderStateException(order_id, order.status, "commission_award")
        return await self.award_for_order(order_id)

    async def award_safely(self, order_id: int) -> Optional[CommissionAwardDTO]:
        try:
            return await self.award_for_order(order_id)
        except Exception as exc:
            logger.warning("commission_award_failed", order_id=order_id, error=str(exc))
            return None
