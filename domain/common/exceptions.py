"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Any, Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_ERROR,
            message=message,
            error_type="ValidationError",
            details=details,
            field=field,
        )


class PermissionDeniedException(BusinessException):
    def __init__(self, message: str = "You do not have permission to perform this action", *, action: Optional[str] = None):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message=message,
            error_type="Forbidden",
            details={"action": action} if action else None,
        )


class ResourceNotFoundException(BusinessException):
    def __init__(self, resource: str, identifier: Any = None, *, code: int = BusinessCode.NOT_FOUND):
        super().__init__(
            code=code,
            message=f"{resource} not found",
            error_type=f"{resource.replace(' ', '')}NotFound",
            details={"id": identifier} if identifier is not None else None,
        )


class ConflictException(BusinessException):
    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.CONFLICT,
            message=message,
            error_type="Conflict",
            details=details,
        )


class ConfigurationException(BusinessException):
    """Missing or unusable server-side configuration (mapped to 503)."""

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.CONFIGURATION_ERROR,
            message=message,
            error_type="ConfigurationError",
            details=details,
        )
