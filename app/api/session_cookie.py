"""
会话Cookie下发中间件

请求没有会话Cookie时在响应中下发新的不透明令牌；本次请求本身不会获得身份，
领取接口仍按缺少身份拒绝，客户端带着新Cookie重试即可。
"""

import secrets

from fastapi import Request

from app.core.config import settings

STATUS_PATH = "/api/coupons/status"


def new_session_token() -> str:
    return secrets.token_hex(16)


async def session_cookie_middleware(request: Request, call_next):
    response = await call_next(request)

    if request.url.path != STATUS_PATH and not request.cookies.get(settings.session_cookie_name):
        response.set_cookie(
            settings.session_cookie_name,
            new_session_token(),
            max_age=settings.session_cookie_max_age,
            httponly=True,
            secure=settings.session_cookie_secure,
            samesite=settings.session_cookie_samesite,
            path="/"
        )

    return response
