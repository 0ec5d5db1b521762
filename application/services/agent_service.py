"""
销售代理应用服务 - 申请、审核、个人资料与积分兑换
"""
from __future__ import annotations

from typing import Callable, List, Optional

from application.dtos.agents import (
    AgentProfileDTO,
    CommissionRecordDTO,
    RedemptionCreateDTO,
    RedemptionDTO,
    RedemptionReviewDTO,
    SalesAgentDTO,
)
from core.logging_config import get_logger
from domain.agent.entity import RedemptionRequest, SalesAgent
from domain.agent.exceptions import (
    AgentNotApprovedException,
    AgentNotFoundException,
    InsufficientPointsException,
    RedemptionNotFoundException,
)
from domain.agent.service import generate_referral_code
from domain.common.exceptions import ConflictException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.common.money import to_decimal
from domain.security.policy import Subject


logger = get_logger(__name__)

# 推荐码唯一约束冲突时的重试次数
_REFERRAL_CODE_ATTEMPTS = 5


class AgentService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def apply(self, subject: Subject) -> SalesAgentDTO:
        """申请成为销售代理；重复申请返回已有记录。"""
        async with self._uow_factory(readonly=True) as uow:
            existing = await uow.agent_repository.get_by_user_id(subject.user_id)
        if existing is not None:
            logger.info("agent_apply_existing", agent_id=existing.id, status=existing.status)
            return SalesAgentDTO.model_validate(existing)

        for _ in range(_REFERRAL_CODE_ATTEMPTS):
            try:
                async with self._uow_factory() as uow:
                    agent = await uow.agent_repository.create(
                        SalesAgent(
                            id=None,
                            user_id=subject.user_id,
                            referral_code=generate_referral_code(subject.email, subject.user_id),
                        )
                    )
                logger.info("agent_applied", agent_id=agent.id, user_id=subject.user_id)
                return SalesAgentDTO.model_validate(agent)
            except ConflictException:
                # 并发申请：另一请求已写入该用户
                async with self._uow_factory(readonly=True) as uow:
                    existing = await uow.agent_repository.get_by_user_id(subject.user_id)
                if existing is not None:
                    return SalesAgentDTO.model_validate(existing)
        raise ConflictException("Could not allocate a referral code", details={"user_id": subject.user_id})

    async def _require_agent(self, uow: AbstractUnitOfWork, subject: Subject) -> SalesAgent:
        agent = await uow.agent_repository.get_by_user_id(subject.user_id)
        if agent is None:
            raise AgentNotFoundException(subject.user_id)
        return agent

    async def me(self, subject: Subject) -> AgentProfileDTO:
        async with self._uow_factory(readonly=True) as uow:
            agent = await self._require_agent(uow, subject)
            commissions = await uow.commission_repository.list_by_agent(agent.id)
        return AgentProfileDTO(
            agent=SalesAgentDTO.model_validate(agent),
            commissions=[CommissionRecordDTO.model_validate(c) for c in commissions],
        )

    # ------------------------------------------------------------------ admin

    async def list_agents(self, status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[SalesAgentDTO]:
        async with self._uow_factory(readonly=True) as uow:
            agents = await uow.agent_repository.list(status=status, skip=skip, limit=limit)
        return [SalesAgentDTO.model_validate(a) for a in agents]

    async def set_status(self, agent_id: int, status: str, actor: Optional[str] = None) -> SalesAgentDTO:
        async with self._uow_factory() as uow:
            agent = await uow.agent_repository.get_by_id(agent_id)
            if agent is None:
                raise AgentNotFoundException(agent_id)
            previous = agent.status
            agent.set_status(status)
            agent = await uow.agent_repository.update(agent)
        logger.info("agent_status_changed", agent_id=agent_id, previous=previous, status=status, actor=actor)
        return SalesAgentDTO.model_validate(agent)

    # ------------------------------------------------------------------ redemptions

    async def list_redemptions(self, subject: Subject) -> List[RedemptionDTO]:
        async with self._uow_factory(readonly=True) as uow:
            agent = await self._require_agent(uow, subject)
            requests = await uow.redemption_repository.list_by_agent(agent.id)
        return [RedemptionDTO.model_validate(r) for r in requests]

    async def create_redemption(self, subject: Subject, dto: RedemptionCreateDTO) -> RedemptionDTO:
        """创建兑换申请：积分 > 0，代理已审核，且不超过当前余额（扣减在处理时进行）"""
        async with self._uow_factory() as uow:
            agent = await self._require_agent(uow, subject)
            if not agent.is_approved:
                raise AgentNotApprovedException(agent.status)
            request = RedemptionRequest(
                id=None,
                agent_id=agent.id,
                points=dto.points,
                bank_details=dto.bank_details,
                notes=dto.notes,
            )
            if request.points > agent.points_balance:
                raise InsufficientPointsException(request.points, agent.points_balance)
            created = await uow.redemption_repository.create(request)
        logger.info("redemption_created", redemption_id=created.id, agent_id=agent.id, points=str(created.points))
        return RedemptionDTO.model_validate(created)

    async def review_redemption(self, redemption_id: int, dto: RedemptionReviewDTO, reviewer: str) -> RedemptionDTO:
        async with self._uow_factory() as uow:
            request = await uow.redemption_repository.get_by_id(redemption_id)
            if request is None:
                raise RedemptionNotFoundException(redemption_id)
            request.review(dto.approve, reviewer, dto.notes)
            updated = await uow.redemption_repository.update(request)
        logger.info("redemption_reviewed", redemption_id=redemption_id, status=updated.status, reviewer=reviewer)
        return RedemptionDTO.model_validate(updated)

    async def process_redemption(self, redemption_id: int, processor: str) -> RedemptionDTO:
        """处理已批准的兑换：带余额保护的原子扣减，成功后标记 processed"""
        async with self._uow_factory() as uow:
            request = await uow.redemption_repository.get_by_id(redemption_id)
            if request is None:
                raise RedemptionNotFoundException(redemption_id)
            request.mark_processed(processor)
            if not await uow.agent_repository.try_deduct_points(request.agent_id, to_decimal(request.points)):
                agent = await uow.agent_repository.get_by_id(request.agent_id)
                raise InsufficientPointsException(
                    request.points, agent.points_balance if agent else None
                )
            updated = await uow.redemption_repository.update(request)
        logger.info(
            "redemption_processed",
            redemption_id=redemption_id,
            agent_id=updated.agent_id,
            points=str(updated.points),
            processor=processor,
        )
        return RedemptionDTO.model_validate(updated)
