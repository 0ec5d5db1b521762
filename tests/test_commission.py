import asyncio
import functools
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from domain.agent.entity import CommissionRate, SalesAgent
from domain.agent.service import calculate_commission_points
from domain.order.exceptions import OrderStateException
from domain.settings.entity import COMMISSION_SETTING_KEY
from infrastructure.models import Base
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


def test_percentage_rate():
    rate = CommissionRate(type="percentage", value=Decimal("5"))
    assert calculate_commission_points(Decimal("1000"), rate) == Decimal("50.00")


def test_fixed_per_rupee_rate():
    rate = CommissionRate(type="fixed_per_rupee", value=Decimal("0.5"))
    assert calculate_commission_points("1180.25", rate) == Decimal("590.13")


def test_unknown_rate_type_awards_nothing():
    assert calculate_commission_points(1000, CommissionRate(type="bonus", value=Decimal("9"))) == Decimal("0.00")


def test_missing_setting_uses_default_rate():
    rate = CommissionRate.from_setting(None)
    assert rate.type == "fixed_per_rupee"
    assert rate.value == Decimal("1.0")
    assert CommissionRate.from_setting({"type": "percentage"}).value == Decimal("1.0")


@pytest.mark.asyncio
async def test_award_once_per_order(uow_factory, make_agent, make_order, seed_setting):
    from application.services.commission_service import CommissionService

    await seed_setting(COMMISSION_SETTING_KEY, {"type": "percentage", "value": 5})
    agent = await make_agent()
    order = await make_order("1000.00", agent_id=agent.id, status="completed")
    service = CommissionService(uow_factory)

    first = await service.award_for_order(order.id)
    assert first.awarded is True
    assert first.points == Decimal("50.00")

    second = await service.award_for_order(order.id)
    assert second.awarded is False
    assert second.reason == "already_awarded"

    async with uow_factory(readonly=True) as uow:
        stored = await uow.agent_repository.get_by_id(agent.id)
        records = await uow.commission_repository.list_by_agent(agent.id)
    assert stored.points_balance == Decimal("50.00")
    assert len(records) == 1
    assert records[0].rate_snapshot == {"type": "percentage", "value": 5.0}


@pytest.mark.asyncio
async def test_order_without_agent_is_skipped(uow_factory, make_order):
    from application.services.commission_service import CommissionService

    order = await make_order()
    result = await CommissionService(uow_factory).award_for_order(order.id)
    assert result.awarded is False
    assert result.reason == "no_agent"


@pytest.mark.asyncio
async def test_explicit_award_requires_completed_order(uow_factory, make_agent, make_order):
    from application.services.commission_service import CommissionService

    agent = await make_agent()
    order = await make_order(agent_id=agent.id, status="shipped")
    service = CommissionService(uow_factory)

    with pytest.raises(OrderStateException):
        await service.award_completed_order(order.id)
    assert await service.award_safely(10_000) is None


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'commission.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = functools.partial(
        SQLAlchemyUnitOfWork,
        session_factory=async_sessionmaker(bind=engine, expire_on_commit=False),
    )
    try:
        async with factory() as uow:
            agent = await uow.agent_repository.create(
                SalesAgent(id=None, user_id="agent-user", referral_code="AGENT-0001", status="approved")
            )

        async def award(points: str):
            async with factory() as uow:
                await uow.agent_repository.increment_points(agent.id, Decimal(points))

        await asyncio.gather(*(award("12.50") for _ in range(8)))

        async with factory(readonly=True) as uow:
            stored = await uow.agent_repository.get_by_id(agent.id)
        assert stored.points_balance == Decimal("100.00")
    finally:
        await engine.dispose()
