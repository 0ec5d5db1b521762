"""
后台管理API路由 - 销售代理、兑换审核、支付网关配置与佣金费率
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_agent_service, get_settings_service, require
from application.dtos.agents import (
    AgentStatusUpdateDTO,
    RedemptionDTO,
    RedemptionReviewDTO,
    SalesAgentDTO,
)
from application.dtos.settings import CommissionSettingsDTO, DedupeResultDTO, PaymentSettingsUpdateDTO
from application.services.agent_service import AgentService
from application.services.settings_service import SettingsService
from core.response import Response as ApiResponse, success_response
from domain.security.policy import Action, Subject


router = APIRouter(prefix="/admin", tags=["Admin"])


# ------------------------------------------------------------------ sales agents

@router.get("/sales-agents", summary="代理列表", response_model=ApiResponse[List[SalesAgentDTO]])
async def list_sales_agents(
    status: Optional[str] = Query(None, pattern="^(pending|approved|rejected)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    subject: Subject = Depends(require(Action.AGENT_MANAGE)),
    service: AgentService = Depends(get_agent_service),
):
    agents = await service.list_agents(status=status, skip=skip, limit=limit)
    return success_response(data=agents)


@router.put("/sales-agents/{agent_id}", summary="审核代理", response_model=ApiResponse[SalesAgentDTO])
async def update_sales_agent(
    agent_id: int,
    payload: AgentStatusUpdateDTO,
    subject: Subject = Depends(require(Action.AGENT_MANAGE)),
    service: AgentService = Depends(get_agent_service),
):
    agent = await service.set_status(agent_id, payload.status, actor=subject.user_id)
    return success_response(data=agent)


# ------------------------------------------------------------------ redemptions

@router.post("/redemptions/{redemption_id}/review", summary="审核兑换申请", response_model=ApiResponse[RedemptionDTO])
async def review_redemption(
    redemption_id: int,
    payload: RedemptionReviewDTO,
    subject: Subject = Depends(require(Action.REDEMPTION_MANAGE)),
    service: AgentService = Depends(get_agent_service),
):
    request = await service.review_redemption(redemption_id, payload, reviewer=subject.user_id)
    return success_response(data=request)


@router.post("/redemptions/{redemption_id}/process", summary="处理兑换（扣减积分）", response_model=ApiResponse[RedemptionDTO])
async def process_redemption(
    redemption_id: int,
    subject: Subject = Depends(require(Action.REDEMPTION_MANAGE)),
    service: AgentService = Depends(get_agent_service),
):
    """仅处理 approved 状态；余额不足返回 400"""
    request = await service.process_redemption(redemption_id, processor=subject.user_id)
    return success_response(data=request)


# ------------------------------------------------------------------ settings

@router.get("/payment-settings", summary="支付网关配置", response_model=ApiResponse[Dict[str, Dict[str, Any]]])
async def get_payment_settings(
    subject: Subject = Depends(require(Action.SETTINGS_READ)),
    service: SettingsService = Depends(get_settings_service),
):
    """默认配置合并每个 key 的最新一行；密钥类字段脱敏"""
    data = await service.get_payment_settings()
    return success_response(data=data)


@router.put("/payment-settings", summary="更新支付网关配置", response_model=ApiResponse[Dict[str, Any]])
async def update_payment_settings(
    payload: PaymentSettingsUpdateDTO,
    subject: Subject = Depends(require(Action.SETTINGS_WRITE)),
    service: SettingsService = Depends(get_settings_service),
):
    data = await service.update_payment_settings(payload, actor=subject.user_id)
    return success_response(data=data, message="Payment settings updated")


@router.post("/payment-settings/dedupe", summary="清理重复配置行", response_model=ApiResponse[DedupeResultDTO])
async def dedupe_payment_settings(
    key: str = Query(..., min_length=1, max_length=100),
    subject: Subject = Depends(require(Action.SETTINGS_WRITE)),
    service: SettingsService = Depends(get_settings_service),
):
    result = await service.dedupe(key)
    return success_response(data=result)


@router.get("/commission-settings", summary="佣金费率", response_model=ApiResponse[CommissionSettingsDTO])
async def get_commission_settings(
    subject: Subject = Depends(require(Action.SETTINGS_READ)),
    service: SettingsService = Depends(get_settings_service),
):
    rate = await service.get_commission_settings()
    return success_response(data=rate)


@router.put("/commission-settings", summary="更新佣金费率", response_model=ApiResponse[CommissionSettingsDTO])
async def update_commission_settings(
    payload: CommissionSettingsDTO,
    subject: Subject = Depends(require(Action.SETTINGS_WRITE)),
    service: SettingsService = Depends(get_settings_service),
):
    rate = await service.update_commission_settings(payload, actor=subject.user_id)
    return success_response(data=rate, message="Commission settings updated")
