"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol, runtime_checkable

from application.dtos.payments import (
    GatewayResult,
    PaymentInitiation,
    PaymentInitiationResult,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for third-party payment providers.

    Implementations should be async and side-effect free beyond IO.
    `parse_webhook` must raise before returning anything when the signature
    does not verify.
    """

    provider: str

    async def initiate(self, req: PaymentInitiation) -> PaymentInitiationResult: ...

    async def check_status(self, merchant_transaction_id: str) -> GatewayResult: ...

    def parse_webhook(self, headers: Mapping[str, Any], body: bytes) -> GatewayResult: ...

    async def aclose(self) -> None: ...


# (provider, stored gateway config) -> adapter
GatewayFactory = Callable[[str, Mapping[str, Any]], PaymentGateway]
