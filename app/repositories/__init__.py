"""
仓库包初始化文件 - 数据库访问层
"""

from .coupon_repository import CouponRepository
from .claim_repository import ClaimRepository

__all__ = [
    "CouponRepository",
    "ClaimRepository"
]
