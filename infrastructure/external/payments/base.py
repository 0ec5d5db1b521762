"""
Base payment client implementing shared concerns: http, retry, logging, mapping.

Concrete providers should subclass and implement provider-specific logic.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx
import structlog
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.logging_config import get_logger
from core.settings import payment_settings
from application.dtos.payments import GatewayResult, PaymentInitiation, PaymentInitiationResult
from domain.payment.service import GatewayNotConfiguredException, map_provider_state
from domain.settings.gateway import missing_config_fields
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentRecoverableError,
)


logger = get_logger(__name__)

# Only failures before the request left the process are retried; a read
# timeout may mean the provider already created the order.
_RETRYABLE = (httpx.ConnectError, httpx.ConnectTimeout)


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        config: Mapping[str, Any],
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
    ) -> None:
        missing = missing_config_fields(self.provider, config)
        if missing:
            raise GatewayNotConfiguredException(self.provider, missing)
        self.config = dict(config)
        self._timeouts_cfg = timeouts or payment_settings.timeouts.model_dump()
        self._retry_cfg = retry or {"max": payment_settings.retry.max, "base": payment_settings.retry.base_backoff}
        self._client: Optional[httpx.AsyncClient] = http_client
        self._owns_client = http_client is None

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._timeouts_cfg["connect"],
            read=self._timeouts_cfg["read"],
            write=self._timeouts_cfg["write"],
            timeout=self._timeouts_cfg["total"],
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeouts)
        return self._client

    async def aclose(self) -> None:
        """Close underlying HTTP client if created here."""
        if self._client is not None and self._owns_client:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _retry(self, fn: Callable[[], Awaitable[Any]]):
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg["base"], min=0.1, max=2.0),
            retry=retry_if_exception_type(_RETRYABLE),
            reraise=True,
        ):
            with attempt:
                return await fn()

    def _headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        correlation_id = structlog.contextvars.get_contextvars().get("correlation_id")
        if correlation_id:
            headers["X-Correlation-ID"] = str(correlation_id)
        if extra:
            headers.update(extra)
        return headers

    async def _send(self, method: str, url: str, **kwargs) -> dict[str, Any]:
        """Send one request; map transport failures and non-JSON answers to payment errors."""
        async def _once() -> httpx.Response:
            return await self.client.request(method, url, **kwargs)

        try:
            resp = await self._retry(_once)
        except httpx.TimeoutException as exc:
            raise PaymentRecoverableError(f"{self.provider} timeout", provider=self.provider) from exc
        except httpx.TransportError as exc:
            raise PaymentRecoverableError(f"{self.provider} unreachable: {exc}", provider=self.provider) from exc

        try:
            data = resp.json()
        except ValueError:
            data = {"raw": resp.text[:500]}
        if resp.status_code >= 500:
            self._log("gateway_http_error", status_code=resp.status_code)
            raise PaymentRecoverableError(
                f"{self.provider} returned {resp.status_code}",
                provider=self.provider,
                provider_code=str(resp.status_code),
            )
        if not isinstance(data, dict):
            data = {"data": data}
        data.setdefault("_http_status", resp.status_code)
        return data

    async def _post_json(self, url: str, payload: Any, headers: Optional[dict[str, str]] = None, **kwargs) -> dict[str, Any]:
        return await self._send("POST", url, json=payload, headers=self._headers(headers), **kwargs)

    async def _get_json(self, url: str, headers: Optional[dict[str, str]] = None, **kwargs) -> dict[str, Any]:
        return await self._send("GET", url, headers=self._headers(headers), **kwargs)

    def _provider_error(self, message: str, data: Mapping[str, Any], provider_code: Optional[str] = None) -> PaymentProviderError:
        details = {k: v for k, v in data.items() if k != "_http_status"}
        return PaymentProviderError(message, provider=self.provider, provider_code=provider_code, details={"response": details})

    async def initiate(self, req: PaymentInitiation) -> PaymentInitiationResult:
        raise NotImplementedError

    async def check_status(self, merchant_transaction_id: str) -> GatewayResult:
        raise NotImplementedError

    def parse_webhook(self, headers: Mapping[str, Any], body: bytes) -> GatewayResult:
        raise NotImplementedError

    # Helpers
    def _result(
        self,
        merchant_transaction_id: str,
        provider_state: Optional[str],
        *,
        gateway_transaction_id: Optional[str] = None,
        response_code: Optional[str] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> GatewayResult:
        return GatewayResult(
            provider=self.provider,
            merchant_transaction_id=merchant_transaction_id,
            provider_state=provider_state,
            status=map_provider_state(self.provider, provider_state),
            gateway_transaction_id=gateway_transaction_id,
            response_code=response_code,
            payload=payload or {},
        )

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )


def header_value(headers: Mapping[str, Any], name: str) -> Optional[str]:
    """Case-insensitive header lookup for plain dicts and starlette Headers."""
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, val in headers.items():
            if key.lower() == lowered:
                return val
    return value
