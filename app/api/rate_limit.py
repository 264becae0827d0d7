"""
基于Redis固定窗口的接口限流依赖
窗口序号写入key，计数key只在所属窗口内生效；Redis不可用时放行
"""

import time
from typing import Callable, Optional

from fastapi import Request

from app.core.config import settings
from app.core.exceptions import RateLimitedError
from app.core.redis import redis_manager
from app.models.claim import UNKNOWN_ADDRESS
from app.services.identity_resolver import resolve_network_address


class RateLimiter:
    """按网络地址计数的限流依赖（地址未知时按会话Cookie计数）"""

    def __init__(
        self,
        scope: str,
        limit: int,
        window_seconds: int,
        now: Callable[[], float] = time.time
    ):
        self.scope = scope
        self.limit = limit
        self.window_seconds = max(1, int(window_seconds))
        self.now = now

    def _identifier(self, request: Request) -> Optional[str]:
        address = resolve_network_address(
            request.headers,
            request.client.host if request.client else None,
            settings.trust_forwarded_for
        )
        if address != UNKNOWN_ADDRESS:
            return address

        session_token = request.cookies.get(settings.session_cookie_name)
        return f"session:{session_token}" if session_token else None

    async def __call__(self, request: Request) -> None:
        identifier = self._identifier(request)
        if identifier is None:
            return

        now = int(self.now())
        window = now // self.window_seconds
        key = f"ratelimit:{self.scope}:{identifier}:{window}"

        count = await redis_manager.incr_window(key, self.window_seconds)
        if count is None or count <= self.limit:
            return

        retry_after = max(1, self.window_seconds - now % self.window_seconds)
        raise RateLimitedError(retry_after_seconds=retry_after)


claim_rate_limit = RateLimiter("claim", settings.claim_rate_limit, settings.claim_rate_window_seconds)
status_rate_limit = RateLimiter("status", settings.status_rate_limit, settings.status_rate_window_seconds)
