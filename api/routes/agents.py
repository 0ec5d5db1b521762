"""
销售代理API路由 - 申请、个人资料、代客下单与积分兑换
"""
from typing import List

from fastapi import APIRouter, Depends

from api.dependencies import (
    get_agent_service,
    get_current_subject,
    get_order_service,
    rate_limit,
    require,
)
from application.dtos.agents import AgentProfileDTO, RedemptionCreateDTO, RedemptionDTO, SalesAgentDTO
from application.dtos.orders import AgentOrderCreateDTO, OrderDTO
from application.services.agent_service import AgentService
from application.services.order_service import OrderService
from core.response import Response as ApiResponse, success_response
from domain.security.policy import Action, Subject


router = APIRouter(prefix="/agents", tags=["Sales Agents"])


@router.post("/apply", summary="申请成为销售代理", response_model=ApiResponse[SalesAgentDTO])
async def apply(
    subject: Subject = Depends(require(Action.AGENT_APPLY)),
    service: AgentService = Depends(get_agent_service),
):
    """每个用户一条申请；重复申请返回已有记录"""
    agent = await service.apply(subject)
    return success_response(data=agent)


@router.get("/me", summary="代理资料与佣金记录", response_model=ApiResponse[AgentProfileDTO])
async def me(
    subject: Subject = Depends(get_current_subject),
    service: AgentService = Depends(get_agent_service),
):
    profile = await service.me(subject)
    return success_response(data=profile)


@router.post(
    "/orders",
    summary="代理代客下单",
    response_model=ApiResponse[OrderDTO],
    dependencies=[Depends(rate_limit("agent_order_create", "order_create_limit"))],
)
async def create_agent_order(
    payload: AgentOrderCreateDTO,
    subject: Subject = Depends(require(Action.AGENT_ORDER_CREATE)),
    service: OrderService = Depends(get_order_service),
):
    """
    仅限已审核代理

    - **customer**: 需提供 email 或 mobile
    - **items**: 至少一项
    """
    order = await service.create_agent_order(subject, payload)
    return success_response(data=order, message="Order created")


@router.get("/redemptions", summary="我的兑换申请", response_model=ApiResponse[List[RedemptionDTO]])
async def list_redemptions(
    subject: Subject = Depends(require(Action.AGENT_REDEEM)),
    service: AgentService = Depends(get_agent_service),
):
    requests = await service.list_redemptions(subject)
    return success_response(data=requests)


@router.post("/redemptions", summary="创建兑换申请", response_model=ApiResponse[RedemptionDTO])
async def create_redemption(
    payload: RedemptionCreateDTO,
    subject: Subject = Depends(require(Action.AGENT_REDEEM)),
    service: AgentService = Depends(get_agent_service),
):
    request = await service.create_redemption(subject, payload)
    return success_response(data=request, message="Redemption requested")
