"""
Redis客户端 - 命名空间隔离的计数器与健康检查

仅在 settings.redis.url 配置后初始化；限流 redis 后端与健康检查使用。
"""
from __future__ import annotations

import asyncio
import socket
from typing import Optional, Tuple

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from core.config import settings
from core.logging_config import get_logger

logger = get_logger(__name__)


class RedisClient:
    """
    Redis 客户端封装

    特性:
    - 命名空间隔离（key 前缀）
    - 固定窗口计数：INCR 与 EXPIRE 在同一事务管道内执行
    """

    def __init__(self, client: aioredis.Redis, namespace: str = ""):
        self._client = client
        self._namespace = namespace.strip(":")

    def _format_key(self, key: str) -> str:
        """格式化键名，添加命名空间前缀"""
        if not self._namespace:
            return key
        return f"{self._namespace}:{key}"

    async def incr_window(self, key: str, window_seconds: int) -> Tuple[int, int]:
        """
        计数器自增；首次写入时设置过期时间。

        Returns:
            (当前计数, 剩余秒数)
        """
        formatted_key = self._format_key(key)
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(formatted_key)
            pipe.expire(formatted_key, window_seconds, nx=True)
            pipe.ttl(formatted_key)
            count, _, ttl = await pipe.execute()
        return int(count), int(ttl) if ttl and ttl > 0 else window_seconds

    async def delete(self, *keys: str) -> int:
        formatted_keys = [self._format_key(k) for k in keys]
        try:
            return await self._client.delete(*formatted_keys)
        except RedisError as e:
            logger.error("redis_delete_failed", error=str(e))
            return 0

    async def health_check(self) -> bool:
        """健康检查"""
        try:
            return bool(await self._client.ping())
        except Exception as e:
            logger.error("redis_health_check_failed", error=str(e))
            return False

    @property
    def client(self) -> aioredis.Redis:
        """获取原始Redis客户端（谨慎使用）"""
        return self._client


# ============= 全局实例管理 =============

_redis_client: Optional[aioredis.Redis] = None
_cache_instance: Optional[RedisClient] = None
_lock = asyncio.Lock()


async def init_redis_client(namespace: Optional[str] = None, **kwargs) -> RedisClient:
    """初始化全局Redis客户端（幂等）"""
    global _redis_client, _cache_instance

    if _cache_instance is not None:
        return _cache_instance

    async with _lock:
        if _cache_instance is not None:
            return _cache_instance

        cfg = settings.redis
        if not cfg.url:
            raise RuntimeError("REDIS__URL 未配置，无法初始化Redis客户端")

        # 构建跨平台 keepalive 选项（若可用）
        keepalive_opts = {}
        if hasattr(socket, "TCP_KEEPIDLE") and hasattr(socket, "TCP_KEEPINTVL") and hasattr(socket, "TCP_KEEPCNT"):
            keepalive_opts = {
                socket.TCP_KEEPIDLE: 1,
                socket.TCP_KEEPINTVL: 1,
                socket.TCP_KEEPCNT: 3,
            }

        try:
            client = aioredis.from_url(
                cfg.url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=cfg.max_connections,
                socket_keepalive=True,
                socket_keepalive_options=keepalive_opts,
                **kwargs,
            )
            await client.ping()
        except Exception as e:
            logger.error("redis_init_failed", error=str(e))
            raise

        _redis_client = client
        _cache_instance = RedisClient(client=client, namespace=namespace or cfg.namespace)
        logger.info("redis_initialized", namespace=namespace or cfg.namespace)
        return _cache_instance


async def get_redis_client() -> RedisClient:
    """获取全局Redis客户端实例"""
    if _cache_instance is None:
        return await init_redis_client()
    return _cache_instance


def redis_configured() -> bool:
    return bool(settings.redis.url)


async def shutdown_redis_client() -> None:
    """关闭Redis连接"""
    global _redis_client, _cache_instance

    if _redis_client is not None:
        try:
            await _redis_client.aclose()
            logger.info("redis_closed")
        except Exception as e:
            logger.error("redis_close_failed", error=str(e))
        finally:
            _redis_client = None
            _cache_instance = None


__all__ = [
    "RedisClient",
    "init_redis_client",
    "get_redis_client",
    "redis_configured",
    "shutdown_redis_client",
]
