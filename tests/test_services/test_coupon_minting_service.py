"""
新券生成与支付平台镜像测试
"""

import re
import pytest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import stripe

from app.core.config import settings
from app.models.coupon import CouponCreate, CouponDuration
from app.services import coupon_minting_service
from app.services.coupon_minting_service import (
    CouponMinter,
    NullCouponMirror,
    StripeCouponMirror,
    build_coupon_mirror,
    generate_coupon_code,
)
from tests.factories import START_TIME


def make_spec(**overrides) -> CouponCreate:
    data = {
        "code": "SAVE20-ABCD1234",
        "description": "Save 20% on your purchase",
        "discount_percent": 20,
        "expires_at": START_TIME + timedelta(days=90),
        "duration": CouponDuration.ONCE,
        "max_redemptions": 100,
    }
    data.update(overrides)
    return CouponCreate(**data)


class TestCouponMinter:
    """新券规格生成测试类"""

    def test_generate_coupon_code(self):
        code = generate_coupon_code("SAVE20")
        assert re.fullmatch(r"SAVE20-[A-Z0-9]{8}", code)

    def test_generated_codes_differ(self):
        codes = {generate_coupon_code("SAVE10") for _ in range(20)}
        assert len(codes) == 20

    def test_build_spec(self):
        minter = CouponMinter(discount_menu=[10, 15, 20, 25, 30], expiry_days=90, max_redemptions=100)

        spec = minter.build_spec(START_TIME)

        assert spec.discount_percent in (10, 15, 20, 25, 30)
        assert spec.code.startswith(f"SAVE{spec.discount_percent}-")
        assert spec.description == f"Save {spec.discount_percent}% on your purchase"
        assert spec.expires_at == START_TIME + timedelta(days=90)
        assert spec.duration == CouponDuration.ONCE
        assert spec.duration_in_months is None
        assert spec.max_redemptions == 100

    def test_build_spec_repeating(self):
        minter = CouponMinter(discount_menu=[15], duration=CouponDuration.REPEATING)

        spec = minter.build_spec(START_TIME)

        assert spec.duration == CouponDuration.REPEATING
        assert spec.duration_in_months == 3

    def test_empty_menu_rejected(self, monkeypatch):
        monkeypatch.setattr(settings, "mint_discount_menu", [])
        with pytest.raises(ValueError):
            CouponMinter(discount_menu=[])


@pytest.mark.asyncio
class TestCouponMirror:
    """支付平台镜像测试类"""

    async def test_null_mirror(self):
        result = await NullCouponMirror().create_remote_coupon(make_spec())
        assert result.ok is False
        assert result.remote_id is None
        assert result.error

    async def test_stripe_mirror_success(self, monkeypatch):
        """测试Stripe镜像参数"""
        create = MagicMock(return_value=SimpleNamespace(id="SAVE20-ABCD1234"))
        monkeypatch.setattr(stripe.Coupon, "create", create)

        spec = make_spec()
        result = await StripeCouponMirror("sk_test_123").create_remote_coupon(spec)

        assert result.ok is True
        assert result.remote_id == "SAVE20-ABCD1234"

        kwargs = create.call_args.kwargs
        assert kwargs["api_key"] == "sk_test_123"
        assert kwargs["id"] == "SAVE20-ABCD1234"
        assert kwargs["percent_off"] == 20
        assert kwargs["duration"] == "once"
        assert kwargs["max_redemptions"] == 100
        assert kwargs["redeem_by"] == int(
            datetime(2026, 4, 15, 12, 0, 0, tzinfo=timezone.utc).timestamp()
        )
        assert "duration_in_months" not in kwargs

    async def test_stripe_mirror_repeating(self, monkeypatch):
        create = MagicMock(return_value=SimpleNamespace(id="REPEAT"))
        monkeypatch.setattr(stripe.Coupon, "create", create)

        spec = make_spec(code="REPEAT", duration=CouponDuration.REPEATING, max_redemptions=None)
        await StripeCouponMirror("sk_test_123").create_remote_coupon(spec)

        kwargs = create.call_args.kwargs
        assert kwargs["duration"] == "repeating"
        assert kwargs["duration_in_months"] == 3
        assert "max_redemptions" not in kwargs

    async def test_stripe_mirror_failure(self, monkeypatch):
        """测试Stripe调用失败返回错误结果而不抛出"""
        create = MagicMock(side_effect=stripe.StripeError("No such API key"))
        monkeypatch.setattr(stripe.Coupon, "create", create)

        result = await StripeCouponMirror("sk_test_bad").create_remote_coupon(make_spec())

        assert result.ok is False
        assert "No such API key" in result.error


class TestBuildCouponMirror:
    """镜像实现选择测试类"""

    def test_without_key(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_secret_key", None)
        assert isinstance(build_coupon_mirror(), NullCouponMirror)

    def test_with_placeholder_key(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_secret_key", "your-stripe-key")
        assert isinstance(build_coupon_mirror(), NullCouponMirror)

    def test_with_secret_key(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_secret_key", " sk_test_123 ")
        mirror = build_coupon_mirror()
        assert isinstance(mirror, coupon_minting_service.StripeCouponMirror)
        assert mirror.api_key == "sk_test_123"
