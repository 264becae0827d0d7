"""
优惠券相关数据模型
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from enum import Enum


class CouponDuration(str, Enum):
    """优惠券时长语义枚举（仅供下游使用，领取引擎不做校验）"""
    ONCE = "once"  # 单次
    REPEATING = "repeating"  # 按月重复
    FOREVER = "forever"  # 永久


class Coupon(BaseModel):
    """优惠券基础模型"""

    id: str = Field(..., description="优惠券ID")
    code: str = Field(..., min_length=1, max_length=64, description="优惠券代码")
    description: str = Field(..., description="优惠券描述")
    discount_percent: int = Field(..., ge=0, le=100, description="折扣百分比")
    expires_at: datetime = Field(..., description="过期时间")
    duration: CouponDuration = Field(default=CouponDuration.ONCE, description="时长语义")
    duration_in_months: Optional[int] = Field(None, ge=1, description="重复月数")
    max_redemptions: Optional[int] = Field(None, ge=1, description="总领取次数上限")
    times_redeemed: int = Field(default=0, ge=0, description="已领取次数")
    active: bool = Field(default=True, description="是否有效")
    last_redeemed_at: Optional[datetime] = Field(None, description="最近领取时间")
    provider_coupon_id: Optional[str] = Field(None, description="支付平台优惠券ID")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_exhausted(self) -> bool:
        return self.max_redemptions is not None and self.times_redeemed >= self.max_redemptions

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_eligible(self, now: datetime) -> bool:
        """检查优惠券当前是否可发放"""
        return self.active and not self.is_expired(now) and not self.is_exhausted


class CouponCreate(BaseModel):
    """创建优惠券模型"""

    code: str = Field(..., min_length=1, max_length=64)
    description: str = Field(...)
    discount_percent: int = Field(..., ge=0, le=100)
    expires_at: datetime = Field(...)
    duration: CouponDuration = Field(default=CouponDuration.ONCE)
    duration_in_months: Optional[int] = Field(None, ge=1)
    max_redemptions: Optional[int] = Field(None, ge=1)

    @field_validator('code')
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode='after')
    def validate_duration(self) -> "CouponCreate":
        """repeating必须给出月数，其余时长不保留月数"""
        if self.duration == CouponDuration.REPEATING:
            if self.duration_in_months is None:
                self.duration_in_months = 3
        else:
            self.duration_in_months = None
        return self


class ClaimedCouponResponse(BaseModel):
    """领取成功响应模型（仅公开字段）"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    code: str
    description: str
    discount_percent: int
    expires_at: datetime
    duration: CouponDuration
    duration_in_months: Optional[int] = None

    @classmethod
    def from_coupon(cls, coupon: Coupon) -> "ClaimedCouponResponse":
        """从Coupon模型创建响应对象"""
        return cls(
            code=coupon.code,
            description=coupon.description,
            discount_percent=coupon.discount_percent,
            expires_at=coupon.expires_at,
            duration=coupon.duration,
            duration_in_months=coupon.duration_in_months
        )


class CouponStatusItem(BaseModel):
    """状态快照中的单张优惠券"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    code: str
    description: str
    discount_percent: int
    expires_at: datetime
    duration: CouponDuration
    duration_in_months: Optional[int] = None
    max_redemptions: Optional[int] = None
    times_redeemed: int
    active: bool
    claimed: bool
    claimed_at: Optional[datetime] = None
    available: bool
    next_available: Optional[datetime] = None


class CouponStatusResponse(BaseModel):
    """状态快照响应"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    coupons: List[CouponStatusItem] = Field(default_factory=list)
    total_available: int = 0
    total_coupons: int = 0
