"""
Correlation ID 中间件
从请求头读取或生成追踪ID，通过 structlog contextvars 绑定到每一行日志，
并回写到响应头；出站 HTTP 调用从同一上下文读取后透传。
"""
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

import structlog


correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
client_ip_var: ContextVar[Optional[str]] = ContextVar("client_ip", default=None)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Correlation ID 追踪中间件

    功能：
    1. 依次读取 X-Correlation-ID / X-Request-ID，缺失时生成 UUID
    2. 写入 request.state 与 contextvars，供日志与异常处理器使用
    3. 在响应头中返回 X-Correlation-ID
    """

    HEADER_NAME = "X-Correlation-ID"
    FALLBACK_HEADER = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        correlation_id = (
            request.headers.get(self.HEADER_NAME)
            or request.headers.get(self.FALLBACK_HEADER)
            or str(uuid.uuid4())
        )
        client_ip = get_request_ip(request)

        request.state.correlation_id = correlation_id
        request.state.client_ip = client_ip
        correlation_id_var.set(correlation_id)
        client_ip_var.set(client_ip)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            client_ip=client_ip,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = correlation_id
        return response


def get_request_ip(request: Request) -> str:
    """获取客户端真实IP（优先代理头）"""
    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def get_correlation_id() -> Optional[str]:
    """当前请求的 correlation id；不在请求上下文中时为 None"""
    return correlation_id_var.get()


def get_client_ip() -> Optional[str]:
    return client_ip_var.get()
