"""
数据模型包初始化文件
"""

from .coupon import (
    Coupon,
    CouponCreate,
    CouponDuration,
    ClaimedCouponResponse,
    CouponStatusItem,
    CouponStatusResponse
)
from .claim import Identity, ClaimRecord, ClaimRecordResponse

__all__ = [
    "Coupon",
    "CouponCreate",
    "CouponDuration",
    "ClaimedCouponResponse",
    "CouponStatusItem",
    "CouponStatusResponse",
    "Identity",
    "ClaimRecord",
    "ClaimRecordResponse"
]
