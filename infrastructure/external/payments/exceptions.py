"""
Gateway adapter errors mapped to BusinessException variants.

- PaymentProviderError: the provider answered and refused (500, details carry its response)
- PaymentRecoverableError: the provider could not be reached or answered 5xx (503)
- PaymentSignatureError: callback/webhook signature mismatch (400, nothing is written)
"""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


def _details(provider: str, provider_code: Optional[str], extra: Optional[dict]) -> dict:
    details = {"provider": provider}
    if provider_code:
        details["provider_code"] = provider_code
    if extra:
        details.update(extra)
    return details


class PaymentProviderError(BusinessException):
    def __init__(self, message: str, *, provider: str, provider_code: str | None = None, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.PROVIDER_ERROR,
            message=message,
            error_type="PaymentProviderError",
            details=_details(provider, provider_code, details),
        )


class PaymentRecoverableError(BusinessException):
    def __init__(self, message: str, *, provider: str, provider_code: str | None = None, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.PROVIDER_RECOVERABLE,
            message=message,
            error_type="PaymentRecoverableError",
            details=_details(provider, provider_code, details),
        )


class PaymentSignatureError(BusinessException):
    def __init__(self, message: str = "Invalid signature", *, provider: str, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="PaymentSignatureError",
            details=_details(provider, None, details),
        )
