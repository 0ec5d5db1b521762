"""
订单API路由 - 客户下单、查询、取消与佣金发放
"""
from typing import Optional

from fastapi import APIRouter, Depends

from api.dependencies import get_order_service, rate_limit, require
from application.dtos.orders import CommissionAwardDTO, OrderCancelDTO, OrderCreateDTO, OrderDTO
from application.services.order_service import OrderService
from core.response import Response as ApiResponse, success_response
from domain.security.policy import Action, Subject


router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post(
    "",
    summary="客户下单",
    response_model=ApiResponse[OrderDTO],
    dependencies=[Depends(rate_limit("order_create", "order_create_limit"))],
)
async def create_order(
    payload: OrderCreateDTO,
    subject: Subject = Depends(require(Action.ORDER_CREATE)),
    service: OrderService = Depends(get_order_service),
):
    """
    创建订单

    - **customer_name / customer_email / customer_phone**: 必填
    - **items**: 至少一项，价格为 GST 含税价
    - **referral_code**: 可选，已审核代理的推荐码
    """
    order = await service.create_order(subject, payload)
    return success_response(data=order, message="Order created")


@router.get("/{order_id}", summary="获取订单", response_model=ApiResponse[OrderDTO])
async def get_order(
    order_id: int,
    subject: Subject = Depends(require(Action.ORDER_READ)),
    service: OrderService = Depends(get_order_service),
):
    order = await service.get_order(subject, order_id)
    return success_response(data=order)


@router.post("/{order_id}/cancel", summary="取消订单", response_model=ApiResponse[OrderDTO])
async def cancel_order(
    order_id: int,
    payload: Optional[OrderCancelDTO] = None,
    subject: Subject = Depends(require(Action.ORDER_CANCEL)),
    service: OrderService = Depends(get_order_service),
):
    """仅 pending / confirmed / payment_failed 状态可取消"""
    order = await service.cancel_order(subject, order_id, reason=payload.reason if payload else None)
    return success_response(data=order, message="Order cancelled")


@router.post("/{order_id}/commission", summary="发放订单佣金", response_model=ApiResponse[CommissionAwardDTO])
async def award_commission(
    order_id: int,
    subject: Subject = Depends(require(Action.COMMISSION_AWARD)),
    service: OrderService = Depends(get_order_service),
):
    """订单须为 completed 或 delivered；无代理或已发放时返回 awarded=false"""
    result = await service.award_commission(order_id)
    return success_response(data=result)
