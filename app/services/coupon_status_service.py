"""
优惠券状态快照服务
只读：汇总全部优惠券及其派生的 claimed / available / next_available 字段
"""

from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.clock import Clock, utc_now
from app.core.config import settings
from app.models.coupon import CouponStatusItem, CouponStatusResponse
from app.repositories.claim_repository import ClaimRepository
from app.repositories.coupon_repository import CouponRepository
from app.services.claim_service import STATUS_CACHE_KEY
from app.services.common_cache import SimpleCache, coupon_cache


class CouponStatusService:
    """优惠券状态快照服务"""

    def __init__(
        self,
        session_maker: async_sessionmaker,
        clock: Optional[Clock] = None,
        cache: Optional[SimpleCache] = coupon_cache
    ):
        self.session_maker = session_maker
        self.clock = clock or utc_now
        self.cache = cache
        self.cache_ttl = settings.status_cache_ttl_seconds
        self.lookback = timedelta(hours=settings.status_lookback_hours)
        self.rotation_window = timedelta(minutes=settings.rotation_window_minutes)

    async def get_status(self, use_cache: bool = True) -> CouponStatusResponse:
        """获取状态快照（短时缓存，领取成功后失效）"""
        if use_cache and self.cache is not None:
            cached = await self.cache.get(STATUS_CACHE_KEY, CouponStatusResponse)
            if cached is not None:
                return cached

        now = self.clock()
        async with self.session_maker.begin() as session:
            coupon_repo = CouponRepository(session)
            coupons = [coupon_repo.to_model(c) for c in await coupon_repo.list_all()]
            last_claims = await ClaimRepository(session).latest_claims_by_coupon(now - self.lookback)

        items = [self._build_item(coupon, last_claims, now) for coupon in coupons]
        status = CouponStatusResponse(
            coupons=items,
            total_available=sum(1 for item in items if item.available),
            total_coupons=len(items)
        )

        if use_cache and self.cache is not None:
            await self.cache.set(STATUS_CACHE_KEY, status, ttl=self.cache_ttl)

        return status

    def _build_item(self, coupon, last_claims: Dict[str, datetime], now: datetime) -> CouponStatusItem:
        claimed_at = last_claims.get(coupon.id)
        eligible = coupon.is_eligible(now)
        recently_claimed = claimed_at is not None and claimed_at > now - self.rotation_window

        return CouponStatusItem(
            code=coupon.code,
            description=coupon.description,
            discount_percent=coupon.discount_percent,
            expires_at=coupon.expires_at,
            duration=coupon.duration,
            duration_in_months=coupon.duration_in_months,
            max_redemptions=coupon.max_redemptions,
            times_redeemed=coupon.times_redeemed,
            active=coupon.active,
            claimed=claimed_at is not None,
            claimed_at=claimed_at,
            available=eligible and not recently_claimed,
            next_available=claimed_at + self.rotation_window if eligible and recently_claimed else None
        )
