from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from app.core.config import settings
from app.core.redis import redis_manager
from app.core.database import init_database, close_database, create_tables, get_session_maker
from app.core.exceptions import DuplicateCodeError
from app.api.health import router as health_router
from app.api.coupons import router as coupons_router
from app.api.session_cookie import session_cookie_middleware
from app.api.exceptions import (
    validation_exception_handler,
    http_exception_handler,
    database_exception_handler,
    general_exception_handler,
    business_exception_handler,
    BusinessException
)
from app.services.coupon_seed_service import seed_coupons_if_empty

# 简化日志配置
import logging

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("正在启动优惠券领取服务")

    try:
        # 初始化数据库连接
        await init_database()
        await create_tables()
        logger.info("数据库初始化成功")

        if settings.seed_on_startup:
            try:
                await seed_coupons_if_empty(get_session_maker())
            except DuplicateCodeError:
                # 多实例同时启动时其他实例已写入
                logger.info("初始优惠券已由其他实例写入")

        # Redis仅用于状态缓存与限流，不可用时降级
        await redis_manager.init_redis()

        logger.info("应用启动完成")

    except Exception as e:
        logger.error(f"应用启动失败: {e}")
        raise

    yield

    logger.info("正在关闭应用")
    await close_database()
    await redis_manager.close_redis()
    logger.info("应用关闭完成")


# 创建FastAPI应用
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="优惠券领取服务 - 按会话与IP限制每小时领取一次，并发安全地发放共享券池",
    lifespan=lifespan
)

# 会话Cookie中间件
app.middleware("http")(session_cookie_middleware)

# CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Cookie", "Origin", "X-Admin-Token"],
    expose_headers=["Retry-After"],
)


# 注册路由
app.include_router(health_router)
app.include_router(coupons_router)

# 注册异常处理器
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(SQLAlchemyError, database_exception_handler)
app.add_exception_handler(BusinessException, business_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


@app.get("/")
async def root():
    """根路径"""
    return {
        "message": f"欢迎使用 {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=5000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
