from fastapi import APIRouter
from fastapi.responses import JSONResponse
import logging

from app.core.config import settings
from app.core.redis import redis_manager
from app.core.database import database_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["健康检查"])


@router.get("")
async def health_check():
    """基础健康检查接口"""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }


@router.get("/database")
async def database_health():
    """存储连接健康检查：数据库为必需，Redis为可降级"""
    health_status = {
        "database": False,
        "redis": False,
        "overall": False,
        "details": {}
    }

    db_status = await database_service.health_check()
    health_status["database"] = db_status["status"] == "healthy"
    health_status["details"]["database"] = db_status["message"]

    if redis_manager.redis_pool:
        try:
            await redis_manager.redis_pool.ping()
            health_status["redis"] = True
            health_status["details"]["redis"] = "连接正常"
        except Exception as e:
            logger.warning(f"Redis健康检查失败: {e}")
            health_status["details"]["redis"] = "连接失败"
    else:
        health_status["details"]["redis"] = "连接池未初始化"

    # 整体状态只取决于数据库
    health_status["overall"] = health_status["database"]

    if not health_status["overall"]:
        logger.warning("存储连接检查失败", extra={"details": health_status["details"]})
        return JSONResponse(status_code=503, content=health_status)

    return health_status
