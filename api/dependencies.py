"""
API依赖项 - 认证、授权、限流与服务装配
"""
from functools import lru_cache
from typing import Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from application.services.agent_service import AgentService
from application.services.commission_service import CommissionService
from application.services.notification_service import NotificationService
from application.services.order_service import OrderService
from application.services.payment_service import PaymentService
from application.services.settings_service import SettingsService
from application.services.token_service import TokenService
from api.middleware.correlation import get_request_ip
from core.config import settings
from core.exceptions import RateLimitException, UnauthorizedException
from core.logging_config import get_logger
from domain.common.exceptions import PermissionDeniedException
from domain.security.policy import Action, Subject, authorize
from infrastructure.external.notifications import build_email_sender, build_whatsapp_sender
from infrastructure.external.payments import get_payment_gateway
from infrastructure.rate_limit import get_rate_limiter
from infrastructure.tasks import TaskDispatcher, celery_app
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


logger = get_logger(__name__)

# HTTP Bearer for direct API calls
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token issued by the identity provider",
    auto_error=False,
)


# ------------------------------------------------------------------ auth

def get_token_service() -> TokenService:
    return TokenService()


async def get_optional_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[Subject]:
    """有令牌时校验并返回主体；无令牌时返回 None"""
    if credentials is None or not credentials.credentials:
        return None
    subject = tokens.verify(credentials.credentials)
    structlog.contextvars.bind_contextvars(user_id=subject.user_id, role=subject.role)
    return subject


async def get_current_subject(subject: Optional[Subject] = Depends(get_optional_subject)) -> Subject:
    """获取当前调用主体（必须认证）"""
    if subject is None:
        raise UnauthorizedException("Authentication required")
    return subject


def require(action: Action):
    """按中心授权策略校验角色权限（资源级所有权由服务层校验）"""

    async def _dependency(subject: Subject = Depends(get_current_subject)) -> Subject:
        if not authorize(subject, action):
            logger.info("authorization_denied", action=action.value, role=subject.role)
            raise PermissionDeniedException(action=action.value)
        return subject

    return _dependency


# ------------------------------------------------------------------ rate limiting

def rate_limit(bucket: str, limit_setting: str, *, per_ip: bool = False, include_provider: bool = False):
    """
    固定窗口限流依赖，在处理函数执行前抛出 429

    Args:
        bucket: 限流桶名
        limit_setting: settings.rate_limit 中的限额字段名
        per_ip: 始终按 IP 计数（否则优先按用户）
        include_provider: 桶名附加路径参数 provider
    """

    async def _dependency(
        request: Request,
        subject: Optional[Subject] = Depends(get_optional_subject),
    ) -> None:
        cfg = settings.rate_limit
        if not cfg.enabled:
            return
        name = bucket
        if include_provider:
            name = f"{bucket}:{request.path_params.get('provider', '')}".rstrip(":")
        if subject is not None and not per_ip:
            identity = f"user:{subject.user_id}"
        else:
            identity = f"ip:{get_request_ip(request)}"
        decision = await get_rate_limiter().hit(f"{name}:{identity}", getattr(cfg, limit_setting), cfg.window_seconds)
        if not decision.allowed:
            logger.warning("rate_limited", bucket=name, identity=identity, count=decision.count, limit=decision.limit)
            raise RateLimitException(retry_after=decision.retry_after)

    return _dependency


# ------------------------------------------------------------------ services

@lru_cache
def get_notification_service() -> NotificationService:
    return NotificationService(
        email_sender=build_email_sender(),
        whatsapp_sender=build_whatsapp_sender(),
    )


def get_commission_service() -> CommissionService:
    return CommissionService(uow_factory=SQLAlchemyUnitOfWork)


def get_order_service(
    notifications: NotificationService = Depends(get_notification_service),
    commissions: CommissionService = Depends(get_commission_service),
) -> OrderService:
    return OrderService(
        uow_factory=SQLAlchemyUnitOfWork,
        commission_service=commissions,
        notification_service=notifications,
    )


def get_payment_service(
    notifications: NotificationService = Depends(get_notification_service),
    commissions: CommissionService = Depends(get_commission_service),
) -> PaymentService:
    # gateway adapters are injected here, keeping application free of infrastructure imports
    return PaymentService(
        uow_factory=SQLAlchemyUnitOfWork,
        gateway_factory=get_payment_gateway,
        commission_service=commissions,
        notification_service=notifications,
    )


def get_agent_service() -> AgentService:
    return AgentService(uow_factory=SQLAlchemyUnitOfWork)


def get_settings_service() -> SettingsService:
    return SettingsService(uow_factory=SQLAlchemyUnitOfWork)


def get_task_dispatcher() -> Optional[TaskDispatcher]:
    """未配置 broker 时返回 None，延迟轮询随之跳过"""
    if not celery_app.conf.broker_url:
        return None
    return TaskDispatcher()
