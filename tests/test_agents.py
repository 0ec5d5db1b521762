import random
import re
from decimal import Decimal

import pytest

from application.dtos.agents import RedemptionCreateDTO, RedemptionReviewDTO
from application.services.agent_service import AgentService
from domain.agent.exceptions import (
    AgentNotApprovedException,
    InsufficientPointsException,
    RedemptionStateException,
)
from domain.agent.service import generate_referral_code
from domain.common.exceptions import DomainValidationException
from domain.security.policy import Subject


def test_referral_code_uses_email_local_part():
    code = generate_referral_code("asha.rao+shop@example.com", "user-1", rng=random.Random(7))
    assert re.fullmatch(r"ASHARAOS-[A-Z0-9]{4}", code)
    assert generate_referral_code(None, "---", rng=random.Random(7)).startswith("AGENT-")


async def _credit(uow_factory, agent_id: int, points: str) -> None:
    async with uow_factory() as uow:
        await uow.agent_repository.increment_points(agent_id, Decimal(points))


@pytest.mark.asyncio
async def test_apply_is_idempotent(uow_factory):
    service = AgentService(uow_factory)
    subject = Subject(user_id="user-7", email="ravi@example.com")

    first = await service.apply(subject)
    second = await service.apply(subject)

    assert first.id == second.id
    assert first.status == "pending"
    assert first.referral_code.startswith("RAVI-")


@pytest.mark.asyncio
async def test_admin_approves_agent(uow_factory):
    service = AgentService(uow_factory)
    applied = await service.apply(Subject(user_id="user-7"))

    approved = await service.set_status(applied.id, "approved", actor="admin-1")
    assert approved.status == "approved"
    assert [a.id for a in await service.list_agents(status="approved")] == [applied.id]


@pytest.mark.asyncio
async def test_pending_agent_cannot_redeem(uow_factory, make_agent):
    await make_agent(status="pending")
    service = AgentService(uow_factory)

    with pytest.raises(AgentNotApprovedException):
        await service.create_redemption(Subject(user_id="agent-user", role="sales_agent"), RedemptionCreateDTO(points=10))


@pytest.mark.asyncio
async def test_redemption_lifecycle(uow_factory, make_agent):
    agent = await make_agent()
    await _credit(uow_factory, agent.id, "150.00")
    service = AgentService(uow_factory)
    subject = Subject(user_id="agent-user", role="sales_agent")

    request = await service.create_redemption(subject, RedemptionCreateDTO(points=Decimal("100"), bank_details={"ifsc": "HDFC0001"}))
    assert request.status == "pending"

    reviewed = await service.review_redemption(request.id, RedemptionReviewDTO(approve=True), reviewer="admin-1")
    assert reviewed.status == "approved"

    processed = await service.process_redemption(request.id, processor="admin-1")
    assert processed.status == "processed"
    assert processed.processed_at is not None

    profile = await service.me(subject)
    assert profile.agent.points_balance == Decimal("50.00")

    with pytest.raises(RedemptionStateException):
        await service.process_redemption(request.id, processor="admin-1")


@pytest.mark.asyncio
async def test_redemption_checks_balance(uow_factory, make_agent):
    agent = await make_agent()
    await _credit(uow_factory, agent.id, "20.00")
    service = AgentService(uow_factory)
    subject = Subject(user_id="agent-user", role="sales_agent")

    with pytest.raises(InsufficientPointsException):
        await service.create_redemption(subject, RedemptionCreateDTO(points=Decimal("25")))
    with pytest.raises(DomainValidationException):
        await service.create_redemption(subject, RedemptionCreateDTO(points=Decimal("0")))

    # balance drops between approval and processing
    request = await service.create_redemption(subject, RedemptionCreateDTO(points=Decimal("20")))
    await service.review_redemption(request.id, RedemptionReviewDTO(approve=True), reviewer="admin-1")
    async with uow_factory() as uow:
        assert await uow.agent_repository.try_deduct_points(agent.id, Decimal("5"))

    with pytest.raises(InsufficientPointsException):
        await service.process_redemption(request.id, processor="admin-1")
    async with uow_factory(readonly=True) as uow:
        stored = await uow.redemption_repository.get_by_id(request.id)
    assert stored.status == "approved"
