"""
API依赖注入
"""

from fastapi import Request

from app.core.database import get_session_maker
from app.models.claim import Identity
from app.services.claim_service import ClaimService
from app.services.coupon_minting_service import CouponMinter, build_coupon_mirror
from app.services.coupon_status_service import CouponStatusService
from app.services.identity_resolver import resolve_identity

# 进程级单例：无状态，可在请求间共享
coupon_minter = CouponMinter()
coupon_mirror = build_coupon_mirror()


def get_identity(request: Request) -> Identity:
    """从Cookie与请求头解析领取身份"""
    return resolve_identity(
        request.cookies,
        request.headers,
        request.client.host if request.client else None
    )


def get_claim_service() -> ClaimService:
    return ClaimService(get_session_maker(), minter=coupon_minter, mirror=coupon_mirror)


def get_status_service() -> CouponStatusService:
    return CouponStatusService(get_session_maker())
