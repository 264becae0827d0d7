"""
数据库模型包初始化文件
"""

from .coupon_db import CouponDB
from .claim_db import CouponClaimDB, ClaimWindowDB

__all__ = [
    "CouponDB",
    "CouponClaimDB",
    "ClaimWindowDB"
]
