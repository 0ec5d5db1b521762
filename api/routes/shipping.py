"""
发货API路由 - 后台更新物流状态并通知客户
"""
from fastapi import APIRouter, Depends

from api.dependencies import get_order_service, rate_limit, require
from application.dtos.orders import OrderDTO, ShippingUpdateDTO
from application.services.order_service import OrderService
from core.response import Response as ApiResponse, success_response
from domain.security.policy import Action, Subject


router = APIRouter(prefix="/shipping", tags=["Shipping"])


@router.post(
    "/update",
    summary="更新物流状态",
    response_model=ApiResponse[OrderDTO],
    dependencies=[Depends(rate_limit("back_office", "back_office_limit", per_ip=True))],
)
async def update_shipping(
    payload: ShippingUpdateDTO,
    subject: Subject = Depends(require(Action.SHIPPING_UPDATE)),
    service: OrderService = Depends(get_order_service),
):
    """shipped / in_transit / delivered / returned 会同步写入订单状态"""
    order = await service.update_shipping(payload, actor=subject.user_id)
    return success_response(data=order, message="Shipping updated")
