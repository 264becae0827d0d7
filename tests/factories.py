"""
测试数据与时钟工具
"""

from datetime import datetime, timedelta
from typing import Optional

from app.models.claim import Identity
from app.models.coupon import CouponCreate, CouponDuration
from app.repositories.coupon_repository import CouponRepository

START_TIME = datetime(2026, 1, 15, 12, 0, 0)


class FakeClock:
    """可手动推进的时钟"""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_identity(session_token: str = "s1", network_address: str = "1.2.3.4") -> Identity:
    return Identity(session_token=session_token, network_address=network_address)


async def seed_coupon(
    session_maker,
    code: str = "SAVE10",
    discount_percent: int = 10,
    max_redemptions: Optional[int] = 100,
    expires_at: Optional[datetime] = None,
    created_at: Optional[datetime] = None
) -> str:
    """写入一张测试优惠券，返回ID"""
    created_at = created_at or START_TIME - timedelta(days=1)
    async with session_maker.begin() as session:
        db_coupon = await CouponRepository(session).create(
            CouponCreate(
                code=code,
                description=f"Save {discount_percent}% on your purchase",
                discount_percent=discount_percent,
                expires_at=expires_at or START_TIME + timedelta(days=90),
                duration=CouponDuration.ONCE,
                max_redemptions=max_redemptions
            ),
            now=created_at
        )
        return db_coupon.id
