"""
服务包初始化文件
"""

from .claim_service import ClaimService, ClaimState
from .coupon_status_service import CouponStatusService
from .coupon_minting_service import CouponMinter, StripeCouponMirror, NullCouponMirror, MintResult

__all__ = [
    "ClaimService",
    "ClaimState",
    "CouponStatusService",
    "CouponMinter",
    "StripeCouponMirror",
    "NullCouponMirror",
    "MintResult"
]
