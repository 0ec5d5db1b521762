"""Sales-agent program business exceptions."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode


class AgentNotFoundException(BusinessException):
    def __init__(self, identifier: Any = None):
        super().__init__(
            code=BusinessCode.AGENT_NOT_FOUND,
            message="Not a sales agent",
            error_type="AgentNotFound",
            details={"id": identifier} if identifier is not None else None,
        )


class AgentNotApprovedException(BusinessException):
    def __init__(self, status: str):
        super().__init__(
            code=BusinessCode.AGENT_NOT_APPROVED,
            message="Agent not approved",
            error_type="AgentNotApproved",
            details={"status": status},
        )


class InsufficientPointsException(BusinessException):
    def __init__(self, requested: Decimal, available: Optional[Decimal] = None):
        details: dict[str, Any] = {"requested": str(requested)}
        if available is not None:
            details["available"] = str(available)
        super().__init__(
            code=BusinessCode.INSUFFICIENT_POINTS,
            message="Insufficient points",
            error_type="InsufficientPoints",
            details=details,
            field="points",
        )


class RedemptionNotFoundException(BusinessException):
    def __init__(self, redemption_id: Any):
        super().__init__(
            code=BusinessCode.REDEMPTION_NOT_FOUND,
            message="Redemption request not found",
            error_type="RedemptionNotFound",
            details={"id": redemption_id},
        )


class RedemptionStateException(BusinessException):
    def __init__(self, redemption_id: Any, current: str, operation: str):
        super().__init__(
            code=BusinessCode.REDEMPTION_STATE_ERROR,
            message=f"Cannot {operation} a redemption request in status '{current}'",
            error_type="RedemptionStateError",
            details={"id": redemption_id, "status": current, "operation": operation},
            field="status",
        )
