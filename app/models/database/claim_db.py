"""
领取记录相关数据库模型
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from app.core.database import Base


class CouponClaimDB(Base):
    """优惠券领取记录表（只追加）"""

    __tablename__ = "coupon_claims"

    id = Column(String(36), primary_key=True, comment="领取记录ID")
    session_token = Column(String(128), nullable=False, comment="会话令牌")
    network_address = Column(String(64), nullable=False, comment="网络地址")
    coupon_id = Column(String(36), ForeignKey("coupons.id"), nullable=False, index=True, comment="优惠券ID")
    claimed_at = Column(DateTime, nullable=False, comment="领取时间")

    # 冷却查询索引
    __table_args__ = (
        Index("idx_coupon_claims_session_time", "session_token", "claimed_at"),
        Index("idx_coupon_claims_address_time", "network_address", "claimed_at"),
        {'comment': '优惠券领取记录表'}
    )


class ClaimWindowDB(Base):
    """
    身份领取窗口表

    每个身份键（session:<token> / ip:<address>）一行，
    提交领取时通过条件更新或唯一插入原子地占用窗口
    """

    __tablename__ = "claim_windows"

    window_key = Column(String(200), primary_key=True, comment="身份键")
    last_claimed_at = Column(DateTime, nullable=False, comment="最近领取时间")

    __table_args__ = (
        {'comment': '身份领取窗口表'}
    )
