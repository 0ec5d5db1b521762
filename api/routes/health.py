"""
健康检查路由
"""
from fastapi import APIRouter
from sqlalchemy import text

from core.logging_config import get_logger
from core.response import success_response
from infrastructure.database import engine
from infrastructure.external.cache import get_redis_client, redis_configured


router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get("/health", summary="健康检查")
async def health_check():
    """数据库必须可用；Redis 仅在配置时检查"""
    checks = {"database": "ok"}
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("health_database_failed", error=str(exc))
        checks["database"] = "error"

    if redis_configured():
        try:
            client = await get_redis_client()
            checks["redis"] = "ok" if await client.health_check() else "error"
        except Exception as exc:
            logger.error("health_redis_failed", error=str(exc))
            checks["redis"] = "error"

    status = "healthy" if all(v == "ok" for v in checks.values()) else "degraded"
    return success_response(data={"status": status, "checks": checks})
