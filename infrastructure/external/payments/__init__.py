"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

import httpx

from application.ports.payment_gateway import PaymentGateway
from domain.payment.service import ensure_supported_provider


def get_payment_gateway(
    provider: str,
    config: Mapping[str, Any],
    *,
    http_client: Optional[httpx.AsyncClient] = None,
) -> PaymentGateway:
    """Build an adapter from the stored gateway config (the `config` object of a payment setting)."""
    name = ensure_supported_provider(provider)
    if name == "phonepe":
        from .phonepe_client import PhonePeClient
        return PhonePeClient(config, http_client=http_client)
    if name == "paytm":
        from .paytm_client import PaytmClient
        return PaytmClient(config, http_client=http_client)
    from .razorpay_client import RazorpayClient
    return RazorpayClient(config, http_client=http_client)
