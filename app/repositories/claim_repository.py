"""
领取记录数据库操作层
"""

import logging
import uuid
from typing import Dict, List, Optional
from datetime import datetime, timedelta

from sqlalchemy import select, update, and_, or_, desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import IdentityWindowLockedError
from app.models.claim import ClaimRecord, Identity
from app.models.database.claim_db import CouponClaimDB, ClaimWindowDB

logger = logging.getLogger(__name__)


class ClaimRepository:
    """领取记录数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def recent_claim(
        self,
        identity: Identity,
        cooldown: timedelta,
        now: datetime
    ) -> Optional[CouponClaimDB]:
        """获取冷却窗口内该身份最近的一条领取记录（会话或地址任一匹配，地址未知时只匹配会话）"""
        matches = [CouponClaimDB.session_token == identity.session_token]
        if identity.has_network_address:
            matches.append(CouponClaimDB.network_address == identity.network_address)

        query = select(CouponClaimDB).where(
            and_(
                or_(*matches),
                CouponClaimDB.claimed_at > now - cooldown
            )
        ).order_by(desc(CouponClaimDB.claimed_at)).limit(1)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def acquire_window(
        self,
        identity: Identity,
        now: datetime,
        cooldown: timedelta
    ) -> None:
        """
        原子占用身份领取窗口

        已有窗口行：仅当上次领取早于冷却窗口时条件更新成功；
        没有窗口行：唯一主键插入，并发插入者只有一个成功。
        任一键失败抛出IdentityWindowLockedError，调用方回滚整个事务。
        """
        for window_key in identity.window_keys:
            result = await self.db.execute(
                update(ClaimWindowDB)
                .where(
                    and_(
                        ClaimWindowDB.window_key == window_key,
                        ClaimWindowDB.last_claimed_at <= now - cooldown
                    )
                )
                .values(last_claimed_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                continue

            self.db.add(ClaimWindowDB(window_key=window_key, last_claimed_at=now))
            try:
                await self.db.flush()
            except IntegrityError as e:
                raise IdentityWindowLockedError(window_key) from e

    async def record(
        self,
        identity: Identity,
        coupon_id: str,
        claimed_at: datetime
    ) -> CouponClaimDB:
        """追加一条领取记录"""
        claim = CouponClaimDB(
            id=str(uuid.uuid4()),
            session_token=identity.session_token,
            network_address=identity.network_address,
            coupon_id=coupon_id,
            claimed_at=claimed_at
        )
        self.db.add(claim)
        await self.db.flush()
        return claim

    async def count_for_coupon(self, coupon_id: str) -> int:
        """统计某张优惠券的领取记录数"""
        result = await self.db.execute(
            select(func.count(CouponClaimDB.id)).where(CouponClaimDB.coupon_id == coupon_id)
        )
        return result.scalar() or 0

    async def latest_claims_by_coupon(self, since: datetime) -> Dict[str, datetime]:
        """获取指定时间之后每张优惠券最近的领取时间"""
        result = await self.db.execute(
            select(
                CouponClaimDB.coupon_id,
                func.max(CouponClaimDB.claimed_at).label("last_claimed_at")
            ).where(
                CouponClaimDB.claimed_at > since
            ).group_by(CouponClaimDB.coupon_id)
        )
        return {row.coupon_id: row.last_claimed_at for row in result.fetchall()}

    async def list_recent(self, limit: int = 100) -> List[CouponClaimDB]:
        """按时间倒序列出领取记录"""
        result = await self.db.execute(
            select(CouponClaimDB).order_by(desc(CouponClaimDB.claimed_at)).limit(limit)
        )
        return list(result.scalars().all())

    def to_model(self, db_claim: CouponClaimDB) -> ClaimRecord:
        """转换为Pydantic模型"""
        return ClaimRecord(
            id=db_claim.id,
            session_token=db_claim.session_token,
            network_address=db_claim.network_address,
            coupon_id=db_claim.coupon_id,
            claimed_at=db_claim.claimed_at
        )
