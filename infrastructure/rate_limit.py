"""
固定窗口限流器

- memory: 进程内计数（重启清零，多实例之间不共享）
- redis:  INCR + EXPIRE，多实例共享

key 形如 ``{bucket}:user:{id}`` 或 ``{bucket}:ip:{ip}``。
"""
from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from core.config import RateLimitSettings, settings
from core.logging_config import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int
    limit: int
    retry_after: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class RateLimiter(Protocol):
    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision: ...


class MemoryRateLimiter:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = asyncio.Lock()

    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        now = self._clock()
        async with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= window_seconds:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)
            if len(self._windows) > 10_000:
                self._evict(now, window_seconds)
        retry_after = max(1, math.ceil(started + window_seconds - now))
        return RateLimitDecision(allowed=count <= limit, count=count, limit=limit, retry_after=retry_after)

    def _evict(self, now: float, window_seconds: int) -> None:
        expired = [k for k, (started, _) in self._windows.items() if now - started >= window_seconds]
        for k in expired:
            self._windows.pop(k, None)

    def reset(self) -> None:
        self._windows.clear()


class RedisRateLimiter:
    def __init__(self, client_provider):
        # client_provider: async () -> RedisClient
        self._client_provider = client_provider

    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        client = await self._client_provider()
        count, ttl = await client.incr_window(f"ratelimit:{key}", window_seconds)
        return RateLimitDecision(allowed=count <= limit, count=count, limit=limit, retry_after=max(1, ttl))


_limiter: Optional[RateLimiter] = None


def build_rate_limiter(cfg: Optional[RateLimitSettings] = None) -> RateLimiter:
    cfg = cfg or settings.rate_limit
    if cfg.backend == "redis":
        from infrastructure.external.cache import get_redis_client

        logger.info("rate_limiter_backend", backend="redis")
        return RedisRateLimiter(get_redis_client)
    if cfg.backend != "memory":
        logger.warning("rate_limiter_backend_unknown", backend=cfg.backend)
    return MemoryRateLimiter()


def get_rate_limiter() -> RateLimiter:
    global _limiter
    if _limiter is None:
        _limiter = build_rate_limiter()
    return _limiter


def set_rate_limiter(limiter: Optional[RateLimiter]) -> None:
    """替换全局限流器（测试或启动时注入）"""
    global _limiter
    _limiter = limiter
