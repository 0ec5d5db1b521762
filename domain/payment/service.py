"""
支付领域服务 - 网关状态映射、交易号生成与支付相关业务异常
"""
from __future__ import annotations

import time
from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode, PROVIDER_STATUS_TO_INTERNAL
from .entity import PaymentProvider, TransactionStatus


SUPPORTED_PROVIDERS = frozenset(p.value for p in PaymentProvider)


class TransactionNotFoundException(BusinessException):
    """支付流水不存在"""
    def __init__(self, transaction_id: str):
        super().__init__(
            code=PaymentCode.TRANSACTION_NOT_FOUND,
            message="Transaction not found",
            error_type="TransactionNotFound",
            details={"transaction_id": transaction_id},
        )


class UnsupportedProviderException(BusinessException):
    def __init__(self, provider: str):
        super().__init__(
            code=PaymentCode.UNSUPPORTED_PROVIDER,
            message=f"Unsupported payment provider: {provider}",
            error_type="UnsupportedProvider",
            details={"provider": provider},
            field="provider",
        )


class GatewayDisabledException(BusinessException):
    def __init__(self, provider: str):
        super().__init__(
            code=PaymentCode.GATEWAY_DISABLED,
            message=f"{provider} payments are disabled",
            error_type="GatewayDisabled",
            details={"provider": provider},
        )


class GatewayNotConfiguredException(BusinessException):
    def __init__(self, provider: str, missing: Optional[list[str]] = None):
        super().__init__(
            code=PaymentCode.GATEWAY_NOT_CONFIGURED,
            message=f"{provider} gateway is not configured",
            error_type="GatewayNotConfigured",
            details={"provider": provider, "missing": missing or []},
        )


class InvalidPaymentRequestException(BusinessException):
    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(
            code=BusinessCode.PARAM_MISSING,
            message=message,
            error_type="ValidationError",
            field=field,
        )


def ensure_supported_provider(provider: str) -> str:
    name = (provider or "").lower()
    if name not in SUPPORTED_PROVIDERS:
        raise UnsupportedProviderException(provider)
    return name


def map_provider_state(provider: str, provider_state: Optional[str]) -> str:
    """Map a provider-specific state to success/failed/pending; anything unknown is pending."""
    mapping = PROVIDER_STATUS_TO_INTERNAL.get(provider, {})
    return mapping.get(provider_state or "", TransactionStatus.PENDING.value)


def generate_transaction_id(order_id: int, now_ms: Optional[int] = None) -> str:
    """TXN_{orderId}_{epochMillis}"""
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"TXN_{order_id}_{millis}"
