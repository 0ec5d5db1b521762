"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import CorrelationIdMiddleware, LoggingMiddleware
from api.routes import admin as admin_routes
from api.routes import agents as agent_routes
from api.routes import health as health_routes
from api.routes import orders as order_routes
from api.routes import payments as payment_routes
from api.routes import shipping as shipping_routes
from api.dependencies import get_notification_service
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import get_logger, configure_logging
from core.response import success_response
from infrastructure.database import create_tables
from infrastructure.external.cache import (
    init_redis_client,
    redis_configured,
    shutdown_redis_client,
)


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时创建数据库表（仅开发环境）。生产应使用 Alembic 迁移
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")
    else:
        logger.info(
            "database_migrations_required",
            message="No auto-create in production, use Alembic migrations (alembic upgrade head)"
        )
    if redis_configured():
        try:
            await init_redis_client()
            logger.info("redis_initialized")
        except Exception as exc:
            logger.error("redis_init_failed", error=str(exc))

    yield

    if redis_configured():
        await shutdown_redis_client()
        logger.info("redis_shutdown")
    try:
        await get_notification_service().aclose()
    except Exception as exc:
        logger.warning("notification_shutdown_failed", error=str(exc))
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="订单、支付、佣金与通知服务",
)

# 添加中间件（注意顺序：从下往上执行）
# 1. 日志中间件（依赖 correlation_id）
app.add_middleware(LoggingMiddleware)

# 2. Correlation ID 中间件（最外层，为后续中间件与异常处理器提供 correlation_id）
app.add_middleware(CorrelationIdMiddleware)

# 3. CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID", "Retry-After"],
)

# 注册全局异常处理器
register_exception_handlers(app)


# 注册路由
app.include_router(order_routes.router, prefix="/api/v1")
app.include_router(agent_routes.router, prefix="/api/v1")
app.include_router(payment_routes.router, prefix="/api/v1")
app.include_router(shipping_routes.router, prefix="/api/v1")
app.include_router(admin_routes.router, prefix="/api/v1")
app.include_router(health_routes.router, prefix="/api/v1")
app.include_router(health_routes.router)


# 根路径
@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc"
        },
        message="Welcome",
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
