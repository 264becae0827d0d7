"""
初始优惠券池
"""

import logging
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.clock import utc_now
from app.core.config import settings
from app.models.coupon import CouponCreate, CouponDuration
from app.repositories.coupon_repository import CouponRepository

logger = logging.getLogger(__name__)

DEFAULT_SEED_DISCOUNTS = [10, 15, 20, 25, 30]


def default_seed_specs(now=None) -> List[CouponCreate]:
    """SAVE10 ~ SAVE30，90天有效，每张100次"""
    now = now or utc_now()
    return [
        CouponCreate(
            code=f"SAVE{discount}",
            description=f"Save {discount}% on your purchase",
            discount_percent=discount,
            expires_at=now + timedelta(days=settings.mint_expiry_days),
            duration=CouponDuration.ONCE,
            max_redemptions=100
        )
        for discount in DEFAULT_SEED_DISCOUNTS
    ]


async def seed_coupons_if_empty(
    session_maker: async_sessionmaker,
    specs: Optional[List[CouponCreate]] = None
) -> int:
    """优惠券表为空时写入初始优惠券，返回写入数量"""
    async with session_maker.begin() as session:
        repo = CouponRepository(session)
        count = await repo.count()
        if count > 0:
            logger.info(f"已存在 {count} 张优惠券，跳过初始化")
            return 0

        now = utc_now()
        specs = specs if specs is not None else default_seed_specs(now)
        for spec in specs:
            await repo.create(spec, now)

    logger.info(f"初始优惠券写入成功: {len(specs)} 张")
    return len(specs)
