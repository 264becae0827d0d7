"""
固定窗口限流测试
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from app.api.rate_limit import RateLimiter
from app.core.exceptions import RateLimitedError
from app.core.redis import RedisManager, redis_manager


def make_request(address=None, cookies=None, client_host="198.51.100.4"):
    request = MagicMock()
    request.headers = {"x-forwarded-for": address} if address else {}
    request.client = MagicMock(host=client_host) if client_host else None
    request.cookies = cookies or {}
    return request


@pytest.mark.asyncio
class TestRateLimiter:
    """限流依赖测试类"""

    async def test_key_carries_window(self, monkeypatch):
        """测试计数key带窗口序号，进入下一窗口换用新key"""
        incr = AsyncMock(return_value=1)
        monkeypatch.setattr(redis_manager, "incr_window", incr)
        clock = {"now": 600.0}
        limiter = RateLimiter("claim", limit=2, window_seconds=60, now=lambda: clock["now"])

        await limiter(make_request("203.0.113.7"))
        clock["now"] = 660.0
        await limiter(make_request("203.0.113.7"))

        keys = [call.args[0] for call in incr.await_args_list]
        assert keys == ["ratelimit:claim:203.0.113.7:10", "ratelimit:claim:203.0.113.7:11"]

    async def test_over_limit(self, monkeypatch):
        monkeypatch.setattr(redis_manager, "incr_window", AsyncMock(return_value=3))
        limiter = RateLimiter("status", limit=2, window_seconds=60, now=lambda: 645.0)

        with pytest.raises(RateLimitedError) as exc_info:
            await limiter(make_request("203.0.113.7"))

        assert exc_info.value.retry_after_seconds == 15

    async def test_redis_unavailable_allows(self, monkeypatch):
        monkeypatch.setattr(redis_manager, "incr_window", AsyncMock(return_value=None))
        limiter = RateLimiter("claim", limit=0, window_seconds=60)

        await limiter(make_request("203.0.113.7"))

    async def test_unknown_address_counts_by_session(self, monkeypatch):
        """测试地址未知的请求按会话计数，不共享同一个地址桶"""
        incr = AsyncMock(return_value=1)
        monkeypatch.setattr(redis_manager, "incr_window", incr)
        limiter = RateLimiter("claim", limit=2, window_seconds=60, now=lambda: 600.0)

        await limiter(make_request(cookies={"sessionId": "abc123"}, client_host=None))
        await limiter(make_request(client_host=None))

        incr.assert_awaited_once()
        assert incr.await_args.args[0] == "ratelimit:claim:session:abc123:10"


@pytest.mark.asyncio
class TestRedisWindowCounter:
    """Redis窗口计数测试类"""

    async def test_expire_set_on_first_hit(self):
        manager = RedisManager()
        manager.redis_pool = AsyncMock()
        manager.redis_pool.incr = AsyncMock(side_effect=[1, 2])

        assert await manager.incr_window("ratelimit:claim:1.2.3.4:10", 60) == 1
        assert await manager.incr_window("ratelimit:claim:1.2.3.4:10", 60) == 2

        manager.redis_pool.expire.assert_awaited_once_with("ratelimit:claim:1.2.3.4:10", 60)

    async def test_errors_degrade(self):
        manager = RedisManager()
        manager.redis_pool = AsyncMock()
        manager.redis_pool.incr = AsyncMock(return_value=1)
        manager.redis_pool.expire = AsyncMock(side_effect=ConnectionError("redis down"))

        assert await manager.incr_window("ratelimit:claim:1.2.3.4:10", 60) is None

    async def test_without_pool(self):
        assert await RedisManager().incr_window("ratelimit:claim:1.2.3.4:10", 60) is None
