"""
领取身份解析 - 从请求元数据推导 (会话令牌, 网络地址)

注意：信任 X-Forwarded-For 时客户端可伪造地址，这是部署在反向代理后的已知限制。
"""

import re
from typing import Mapping, Optional

from app.core.config import settings
from app.core.exceptions import MissingIdentityError
from app.models.claim import UNKNOWN_ADDRESS, Identity

SESSION_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9]{1,128}$")


def resolve_network_address(
    headers: Mapping[str, str],
    client_host: Optional[str],
    trust_forwarded_for: bool = True
) -> str:
    """优先使用代理转发的第一个地址，其次传输层对端地址"""
    if trust_forwarded_for:
        forwarded = headers.get("x-forwarded-for") or ""
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop[:64]
    return (client_host or UNKNOWN_ADDRESS)[:64]


def resolve_identity(
    cookies: Mapping[str, str],
    headers: Mapping[str, str],
    client_host: Optional[str],
    cookie_name: Optional[str] = None,
    trust_forwarded_for: Optional[bool] = None
) -> Identity:
    """
    解析领取身份

    Raises:
        MissingIdentityError: 没有会话令牌或令牌格式不合法
    """
    cookie_name = cookie_name or settings.session_cookie_name
    if trust_forwarded_for is None:
        trust_forwarded_for = settings.trust_forwarded_for

    session_token = (cookies.get(cookie_name) or "").strip()
    if not session_token or not SESSION_TOKEN_PATTERN.match(session_token):
        raise MissingIdentityError()

    return Identity(
        session_token=session_token,
        network_address=resolve_network_address(headers, client_host, trust_forwarded_for)
    )
