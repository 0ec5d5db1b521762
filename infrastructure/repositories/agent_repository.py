"""
销售代理/佣金/兑换仓储实现

积分余额从不做读-改-写：增加用单条 UPDATE 自增，扣减用带余额条件的 UPDATE。
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.agent.entity import SalesAgent, CommissionRecord, RedemptionRequest
from domain.agent.repository import (
    SalesAgentRepository,
    CommissionRepository,
    RedemptionRepository,
)
from domain.agent.exceptions import AgentNotFoundException, RedemptionNotFoundException
from domain.common.exceptions import ConflictException
from infrastructure.models.agent import (
    SalesAgentModel,
    CommissionRecordModel,
    RedemptionRequestModel,
)
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemySalesAgentRepository(SalesAgentRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: SalesAgentModel) -> SalesAgent:
        return SalesAgent(
            id=model.id,
            user_id=model.user_id,
            referral_code=model.referral_code,
            status=model.status,
            points_balance=Decimal(str(model.points_balance or 0)),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: SalesAgent) -> SalesAgentModel:
        return SalesAgentModel(
            id=entity.id,
            user_id=entity.user_id,
            referral_code=entity.referral_code,
            status=entity.status,
            points_balance=entity.points_balance,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    async def create(self, agent: SalesAgent) -> SalesAgent:
        try:
            db_agent = self._to_model(agent)
            self.session.add(db_agent)
            await self.session.flush()
            await self.session.refresh(db_agent)
        except IntegrityError as e:
            logger.warning("sales_agent_create_conflict", user_id=agent.user_id, error=str(e.orig))
            raise ConflictException("Sales agent already exists", details={"user_id": agent.user_id}) from e
        logger.info("sales_agent_created", agent_id=db_agent.id, user_id=db_agent.user_id)
        return self._to_entity(db_agent)

    async def get_by_id(self, agent_id: int) -> Optional[SalesAgent]:
        result = await self.session.execute(select(SalesAgentModel).where(SalesAgentModel.id == agent_id))
        db_agent = result.scalar_one_or_none()
        return self._to_entity(db_agent) if db_agent else None

    async def get_by_user_id(self, user_id: str) -> Optional[SalesAgent]:
        result = await self.session.execute(
            select(SalesAgentModel).where(SalesAgentModel.user_id == str(user_id))
        )
        db_agent = result.scalar_one_or_none()
        return self._to_entity(db_agent) if db_agent else None

    async def get_by_referral_code(self, referral_code: str) -> Optional[SalesAgent]:
        result = await self.session.execute(
            select(SalesAgentModel).where(SalesAgentModel.referral_code == referral_code.strip().upper())
        )
        db_agent = result.scalar_one_or_none()
        return self._to_entity(db_agent) if db_agent else None

    async def list(self, status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[SalesAgent]:
        query = select(SalesAgentModel)
        if status:
            query = query.where(SalesAgentModel.status == status)
        query = query.order_by(SalesAgentModel.created_at.desc(), SalesAgentModel.id.desc()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def update(self, agent: SalesAgent) -> SalesAgent:
        result = await self.session.execute(select(SalesAgentModel).where(SalesAgentModel.id == agent.id))
        db_agent = result.scalar_one_or_none()
        if not db_agent:
            raise AgentNotFoundException(agent.id)
        db_agent.status = agent.status
        db_agent.updated_at = agent.updated_at or datetime.now(timezone.utc)
        await self.session.flush()
        await self.session.refresh(db_agent)
        logger.info("sales_agent_updated", agent_id=db_agent.id, status=db_agent.status)
        return self._to_entity(db_agent)

    async def increment_points(self, agent_id: int, points: Decimal) -> None:
        result = await self.session.execute(
            update(SalesAgentModel)
            .where(SalesAgentModel.id == agent_id)
            .values(
                points_balance=SalesAgentModel.points_balance + points,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise AgentNotFoundException(agent_id)
        logger.info("agent_points_incremented", agent_id=agent_id, points=str(points))

    async def try_deduct_points(self, agent_id: int, points: Decimal) -> bool:
        result = await self.session.execute(
            update(SalesAgentModel)
            .where(SalesAgentModel.id == agent_id, SalesAgentModel.points_balance >= points)
            .values(
                points_balance=SalesAgentModel.points_balance - points,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        deducted = result.rowcount == 1
        logger.info("agent_points_deduct", agent_id=agent_id, points=str(points), deducted=deducted)
        return deducted


class SQLAlchemyCommissionRepository(CommissionRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: CommissionRecordModel) -> CommissionRecord:
        return CommissionRecord(
            id=model.id,
            agent_id=model.agent_id,
            order_id=model.order_id,
            order_total=Decimal(str(model.order_total)),
            points_awarded=Decimal(str(model.points_awarded)),
            rate_snapshot=model.rate_snapshot or {},
            created_at=model.created_at,
        )

    async def exists_for_order(self, order_id: int) -> bool:
        result = await self.session.execute(
            select(CommissionRecordModel.id).where(CommissionRecordModel.order_id == order_id)
        )
        return result.scalar_one_or_none() is not None

    async def create(self, record: CommissionRecord) -> CommissionRecord:
        db_record = CommissionRecordModel(
            agent_id=record.agent_id,
            order_id=record.order_id,
            order_total=record.order_total,
            rate_snapshot=record.rate_snapshot,
            points_awarded=record.points_awarded,
            created_at=record.created_at,
        )
        try:
            self.session.add(db_record)
            await self.session.flush()
        except IntegrityError as e:
            logger.warning("commission_duplicate", order_id=record.order_id, agent_id=record.agent_id)
            raise ConflictException(
                "Commission already awarded for this order",
                details={"order_id": record.order_id},
            ) from e
        await self.session.refresh(db_record)
        return self._to_entity(db_record)

    async def list_by_agent(self, agent_id: int, skip: int = 0, limit: int = 50) -> List[CommissionRecord]:
        result = await self.session.execute(
            select(CommissionRecordModel)
            .where(CommissionRecordModel.agent_id == agent_id)
            .order_by(CommissionRecordModel.created_at.desc(), CommissionRecordModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]


class SQLAlchemyRedemptionRepository(RedemptionRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: RedemptionRequestModel) -> RedemptionRequest:
        return RedemptionRequest(
            id=model.id,
            agent_id=model.agent_id,
            points=Decimal(str(model.points)),
            status=model.status,
            bank_details=model.bank_details,
            notes=model.notes,
            requested_at=model.requested_at,
            processed_at=model.processed_at,
            processed_by=model.processed_by,
        )

    async def create(self, request: RedemptionRequest) -> RedemptionRequest:
        db_request = RedemptionRequestModel(
            agent_id=request.agent_id,
            points=request.points,
            status=request.status,
            bank_details=request.bank_details,
            notes=request.notes,
            requested_at=request.requested_at or datetime.now(timezone.utc),
        )
        self.session.add(db_request)
        await self.session.flush()
        await self.session.refresh(db_request)
        logger.info("redemption_requested", redemption_id=db_request.id, agent_id=db_request.agent_id)
        return self._to_entity(db_request)

    async def get_by_id(self, redemption_id: int) -> Optional[RedemptionRequest]:
        result = await self.session.execute(
            select(RedemptionRequestModel).where(RedemptionRequestModel.id == redemption_id)
        )
        db_request = result.scalar_one_or_none()
        return self._to_entity(db_request) if db_request else None

    async def list_by_agent(self, agent_id: int) -> List[RedemptionRequest]:
        result = await self.session.execute(
            select(RedemptionRequestModel)
            .where(RedemptionRequestModel.agent_id == agent_id)
            .order_by(RedemptionRequestModel.requested_at.desc(), RedemptionRequestModel.id.desc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def update(self, request: RedemptionRequest) -> RedemptionRequest:
        result = await self.session.execute(
            select(RedemptionRequestModel).where(RedemptionRequestModel.id == request.id)
        )
        db_request = result.scalar_one_or_none()
        if not db_request:
            raise RedemptionNotFoundException(request.id)
        db_request.status = request.status
        db_request.notes = request.notes
        db_request.processed_at = request.processed_at
        db_request.processed_by = request.processed_by
        await self.session.flush()
        await self.session.refresh(db_request)
        logger.info("redemption_updated", redemption_id=db_request.id, status=db_request.status)
        return self._to_entity(db_request)
