"""
状态快照缓存
复用RedisManager的连接池，按pydantic模型存取JSON；Redis不可用或缓存内容无法解析时按未命中处理
"""

import logging
from typing import Optional, Type, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel

from app.core.redis import RedisManager, redis_manager

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class SimpleCache:
    """快照缓存：显式传入的客户端优先，否则使用RedisManager当前的连接池"""

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        key_prefix: str = "",
        manager: Optional[RedisManager] = None
    ):
        self._redis_client = redis_client
        self.key_prefix = key_prefix
        self.manager = manager

    @property
    def redis_client(self) -> Optional[redis.Redis]:
        if self._redis_client is not None:
            return self._redis_client
        return self.manager.redis_pool if self.manager else None

    def _get_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        """读取快照，未命中返回None"""
        client = self.redis_client
        if client is None:
            return None
        try:
            data = await client.get(self._get_key(key))
            return model.model_validate_json(data) if data else None
        except Exception as e:
            logger.warning(f"读取缓存失败 {key}: {e}")
            return None

    async def set(self, key: str, value: BaseModel, ttl: int) -> bool:
        """写入快照并设置过期秒数"""
        client = self.redis_client
        if client is None:
            return False
        try:
            await client.setex(self._get_key(key), ttl, value.model_dump_json())
            return True
        except Exception as e:
            logger.warning(f"写入缓存失败 {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """使快照失效"""
        client = self.redis_client
        if client is None:
            return False
        try:
            return await client.delete(self._get_key(key)) > 0
        except Exception as e:
            logger.warning(f"删除缓存失败 {key}: {e}")
            return False


# 优惠券状态快照缓存
coupon_cache = SimpleCache(key_prefix="coupon:", manager=redis_manager)
