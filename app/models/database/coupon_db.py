"""
优惠券数据库模型
"""

from sqlalchemy import Column, String, Integer, Text, Boolean, DateTime, Index
from sqlalchemy.sql import func
from app.core.database import Base


class CouponDB(Base):
    """优惠券数据库表"""

    __tablename__ = "coupons"

    # 主键和基本信息
    id = Column(String(36), primary_key=True, comment="优惠券ID")
    code = Column(String(64), nullable=False, unique=True, index=True, comment="优惠券代码")
    description = Column(Text, nullable=False, comment="优惠券描述")
    discount_percent = Column(Integer, nullable=False, comment="折扣百分比 0-100")

    # 有效期与时长语义（仅供下游使用）
    expires_at = Column(DateTime, nullable=False, index=True, comment="过期时间")
    duration = Column(String(20), nullable=False, default="once", comment="once/repeating/forever")
    duration_in_months = Column(Integer, comment="repeating时的月数")

    # 使用限制
    max_redemptions = Column(Integer, comment="总领取次数上限，空表示不限")
    times_redeemed = Column(Integer, nullable=False, default=0, comment="已领取次数")
    active = Column(Boolean, nullable=False, default=True, index=True, comment="是否有效")
    last_redeemed_at = Column(DateTime, comment="最近一次领取时间")

    # 支付平台镜像
    provider_coupon_id = Column(String(255), unique=True, comment="支付平台优惠券ID")

    # 时间戳
    created_at = Column(DateTime, nullable=False, server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now(), comment="更新时间")

    # 索引
    __table_args__ = (
        Index("idx_coupons_rotation", "active", "last_redeemed_at", "created_at"),
        {'comment': '优惠券信息表'}
    )
