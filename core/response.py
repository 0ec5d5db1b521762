"""
统一响应格式定义
"""
from typing import Any, Optional, Generic, TypeVar
from pydantic import BaseModel, Field, field_serializer
from datetime import datetime, timezone
from shared.codes import BusinessCode


T = TypeVar("T")


class Response(BaseModel, Generic[T]):
    """统一成功响应模型"""
    code: int
    message: str
    data: Optional[T] = None


class ErrorResponse(BaseModel):
    """统一错误响应模型：{error, code, type, details?, field?, correlation_id, timestamp}"""
    error: str
    code: int
    type: str
    details: Optional[Any] = None
    field: Optional[str] = None
    correlation_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer('timestamp')
    def serialize_timestamp(self, timestamp: datetime) -> str:
        """序列化时间戳为 UTC ISO8601，统一使用 Z 结尾"""
        ts = timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        else:
            ts = ts.astimezone(timezone.utc)
        s = ts.isoformat()
        return s.replace("+00:00", "Z")


class PaginatedData(BaseModel, Generic[T]):
    """分页数据模型"""
    items: list[T]
    total: int
    skip: int
    limit: int


def success_response(
    data: Any = None,
    message: str = "Success",
    code: int = BusinessCode.SUCCESS
) -> Response:
    """
    创建成功响应

    Args:
        data: 返回数据
        message: 成功消息
        code: 业务状态码

    Returns:
        Response: 统一响应对象
    """
    return Response(code=code, message=message, data=data)


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Any = None,
    field: Optional[str] = None,
    correlation_id: Optional[str] = None
) -> ErrorResponse:
    """
    创建错误响应

    Args:
        code: 业务状态码
        message: 错误消息
        error_type: 错误类型
        details: 错误详情
        field: 错误字段
        correlation_id: 关联ID（与日志中的 correlation_id 一致）
    """
    return ErrorResponse(
        error=message,
        code=code,
        type=error_type,
        details=details,
        field=field,
        correlation_id=correlation_id,
    )
