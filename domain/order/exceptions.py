"""订单相关业务异常"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException, ConflictException
from shared.codes import BusinessCode


class OrderNotFoundException(BusinessException):
    def __init__(self, order_id: Optional[int] = None):
        super().__init__(
            code=BusinessCode.ORDER_NOT_FOUND,
            message="Order not found",
            error_type="OrderNotFound",
            details={"order_id": order_id} if order_id is not None else None,
        )


class OrderStateException(BusinessException):
    def __init__(self, order_id: Optional[int], current: str, requested: str):
        super().__init__(
            code=BusinessCode.ORDER_STATE_ERROR,
            message=f"Order in status '{current}' cannot move to '{requested}'",
            error_type="OrderStateError",
            details={"order_id": order_id, "current": current, "requested": requested},
            field="status",
        )


class OrderNumberConflictException(ConflictException):
    def __init__(self, order_number: str):
        super().__init__("Order number already in use", details={"order_number": order_number})
