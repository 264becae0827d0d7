"""
新券生成与支付平台镜像

本地记录为准；支付平台镜像尽力而为，失败只记录日志，不影响发放。
"""

import asyncio
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, Sequence

import stripe
import structlog

from app.core.config import settings
from app.models.coupon import CouponCreate, CouponDuration

logger = structlog.get_logger()

CODE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class MintResult:
    """镜像结果：remote_id 与 error 二选一"""

    remote_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.remote_id is not None


class CouponMirror(Protocol):
    async def create_remote_coupon(self, spec: CouponCreate) -> MintResult:
        ...


class NullCouponMirror:
    """未配置支付平台时使用"""

    async def create_remote_coupon(self, spec: CouponCreate) -> MintResult:
        return MintResult(error="payment provider not configured")


class StripeCouponMirror:
    """在Stripe创建同代码的优惠券"""

    def __init__(self, api_key: str):
        self.api_key = api_key

    def _create(self, spec: CouponCreate) -> str:
        params = {
            "id": spec.code,
            "name": spec.description[:40],
            "percent_off": spec.discount_percent,
            "duration": spec.duration.value,
            "redeem_by": int(spec.expires_at.replace(tzinfo=timezone.utc).timestamp()),
            "metadata": {"source": "coupon-claim-service"},
        }
        if spec.duration == CouponDuration.REPEATING:
            params["duration_in_months"] = spec.duration_in_months
        if spec.max_redemptions is not None:
            params["max_redemptions"] = spec.max_redemptions

        coupon_obj = stripe.Coupon.create(api_key=self.api_key, **params)
        return str(getattr(coupon_obj, "id", None) or spec.code)

    async def create_remote_coupon(self, spec: CouponCreate) -> MintResult:
        try:
            remote_id = await asyncio.to_thread(self._create, spec)
        except Exception as e:
            logger.warning("Stripe优惠券镜像失败，使用本地记录", code=spec.code, error=str(e))
            return MintResult(error=str(e) or e.__class__.__name__)

        logger.info("Stripe优惠券镜像成功", code=spec.code, remote_id=remote_id)
        return MintResult(remote_id=remote_id)


def build_coupon_mirror() -> CouponMirror:
    """按配置选择镜像实现"""
    if settings.stripe_configured:
        return StripeCouponMirror(settings.stripe_secret_key.strip())
    return NullCouponMirror()


def generate_coupon_code(prefix: str, length: int = 8) -> str:
    """生成随机优惠券代码，形如 SAVE20-7K3Q9ZPA"""
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return f"{prefix}-{suffix}".strip("-").upper()[:64]


class CouponMinter:
    """按固定折扣菜单生成新券规格"""

    def __init__(
        self,
        discount_menu: Optional[Sequence[int]] = None,
        expiry_days: Optional[int] = None,
        max_redemptions: Optional[int] = None,
        duration: CouponDuration = CouponDuration.ONCE
    ):
        self.discount_menu = list(discount_menu or settings.mint_discount_menu)
        self.expiry_days = expiry_days if expiry_days is not None else settings.mint_expiry_days
        self.max_redemptions = max_redemptions if max_redemptions is not None else settings.mint_max_redemptions
        self.duration = duration
        if not self.discount_menu:
            raise ValueError("discount menu must not be empty")

    def build_spec(self, now: datetime) -> CouponCreate:
        discount = secrets.choice(self.discount_menu)
        return CouponCreate(
            code=generate_coupon_code(f"SAVE{discount}"),
            description=f"Save {discount}% on your purchase",
            discount_percent=discount,
            expires_at=now + timedelta(days=self.expiry_days),
            duration=self.duration,
            max_redemptions=self.max_redemptions
        )
