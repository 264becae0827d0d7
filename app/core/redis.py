import redis.asyncio as aioredis
from typing import Optional
from app.core.config import settings
import structlog

"redis连接管理器以及固定窗口限流计数"

logger = structlog.get_logger()


class RedisManager:
    """Redis连接管理器"""

    def __init__(self):
        self.redis_pool: Optional[aioredis.Redis] = None

    async def init_redis(self) -> None:
        """初始化Redis连接池"""
        try:
            self.redis_pool = aioredis.from_url(
                settings.redis_url_computed,
                encoding="utf-8",
                decode_responses=True,
                max_connections=20,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True
            )
            # 测试连接
            await self.redis_pool.ping()
            logger.info("Redis连接初始化成功")
        except Exception as e:
            # 缓存与限流均为降级可用，Redis不可用时服务照常启动
            logger.warning("Redis连接初始化失败，缓存与限流将降级", error=str(e))
            await self.close_redis()

    async def close_redis(self) -> None:
        """关闭Redis连接"""
        if self.redis_pool:
            await self.redis_pool.aclose()
            self.redis_pool = None
            logger.info("Redis连接已关闭")

    async def incr_window(self, key: str, window_seconds: int) -> Optional[int]:
        """
        固定窗口计数：自增并在窗口内首次写入时设置过期

        key需包含窗口序号，即使设置过期失败，计数也只影响当前窗口

        Returns:
            当前窗口内的计数；Redis不可用时返回None（调用方放行）
        """
        if not self.redis_pool:
            return None
        try:
            count = await self.redis_pool.incr(key)
            if count == 1:
                await self.redis_pool.expire(key, window_seconds)
            return int(count)
        except Exception as e:
            logger.error("Redis限流计数失败", key=key, error=str(e))
            return None


# 全局Redis管理器实例
redis_manager = RedisManager()
