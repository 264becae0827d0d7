"""
优惠券数据库操作层
"""

import logging
import uuid
from typing import Iterable, List, Optional
from datetime import datetime

from sqlalchemy import select, update, and_, or_, case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utc_now
from app.core.exceptions import AlreadyExhaustedError, DuplicateCodeError, CouponNotFoundError
from app.models.coupon import Coupon, CouponCreate
from app.models.database.coupon_db import CouponDB

logger = logging.getLogger(__name__)


def _not_exhausted():
    return or_(
        CouponDB.max_redemptions.is_(None),
        CouponDB.times_redeemed < CouponDB.max_redemptions
    )


class CouponRepository:
    """优惠券数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, coupon_id: str) -> Optional[CouponDB]:
        """根据优惠券ID获取优惠券（强制刷新，读取其他事务已提交的计数）"""
        result = await self.db.execute(
            select(CouponDB)
            .where(CouponDB.id == coupon_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_code(self, code: str) -> Optional[CouponDB]:
        """根据优惠券代码获取优惠券"""
        result = await self.db.execute(
            select(CouponDB).where(CouponDB.code == code.strip().upper())
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> List[CouponDB]:
        """按创建时间获取全部优惠券"""
        result = await self.db.execute(
            select(CouponDB).order_by(CouponDB.created_at, CouponDB.code)
        )
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.db.execute(select(func.count(CouponDB.id)))
        return result.scalar() or 0

    async def find_eligible(
        self,
        now: Optional[datetime] = None,
        exclude_ids: Iterable[str] = ()
    ) -> Optional[CouponDB]:
        """
        获取一张可发放的优惠券

        有效、未过期、未达上限；最久未被领取的优先，其次最早创建，
        并发下请求会在多张可用券之间轮转而不是总落在同一张上。
        """
        if now is None:
            now = utc_now()

        conditions = [
            CouponDB.active.is_(True),
            CouponDB.expires_at > now,
            _not_exhausted()
        ]
        exclude_ids = list(exclude_ids)
        if exclude_ids:
            conditions.append(CouponDB.id.notin_(exclude_ids))

        query = select(CouponDB).where(and_(*conditions)).order_by(
            CouponDB.last_redeemed_at.asc().nulls_first(),
            CouponDB.created_at.asc(),
            CouponDB.code.asc()
        ).limit(1)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create(self, coupon_data: CouponCreate, now: Optional[datetime] = None) -> CouponDB:
        """创建优惠券，代码冲突时抛出DuplicateCodeError"""
        if now is None:
            now = utc_now()

        db_coupon = CouponDB(
            id=str(uuid.uuid4()),
            code=coupon_data.code,
            description=coupon_data.description,
            discount_percent=coupon_data.discount_percent,
            expires_at=coupon_data.expires_at,
            duration=coupon_data.duration.value,
            duration_in_months=coupon_data.duration_in_months,
            max_redemptions=coupon_data.max_redemptions,
            times_redeemed=0,
            active=True,
            created_at=now,
            updated_at=now
        )
        self.db.add(db_coupon)
        try:
            await self.db.flush()
        except IntegrityError as e:
            logger.info(f"优惠券代码冲突: {coupon_data.code}")
            raise DuplicateCodeError(coupon_data.code) from e

        return db_coupon

    async def redeem(self, coupon_id: str, now: Optional[datetime] = None) -> CouponDB:
        """
        原子领取：单条条件UPDATE完成比较并交换

        仅当优惠券仍有效、未过期且 times_redeemed < max_redemptions 时自增，
        同一语句内在达到上限时置为无效。
        """
        if now is None:
            now = utc_now()

        reaches_bound = and_(
            CouponDB.max_redemptions.isnot(None),
            CouponDB.times_redeemed + 1 >= CouponDB.max_redemptions
        )

        result = await self.db.execute(
            update(CouponDB)
            .where(
                and_(
                    CouponDB.id == coupon_id,
                    CouponDB.active.is_(True),
                    CouponDB.expires_at > now,
                    _not_exhausted()
                )
            )
            .values(
                times_redeemed=CouponDB.times_redeemed + 1,
                active=case((reaches_bound, False), else_=CouponDB.active),
                last_redeemed_at=now,
                updated_at=now
            )
            .execution_options(synchronize_session=False)
        )

        db_coupon = await self.get_by_id(coupon_id)
        if db_coupon is None:
            raise CouponNotFoundError(f"Coupon {coupon_id} no longer exists")
        if result.rowcount != 1:
            raise AlreadyExhaustedError(coupon_id)

        return db_coupon

    async def set_provider_coupon_id(self, coupon_id: str, provider_coupon_id: str) -> None:
        """记录支付平台镜像ID"""
        await self.db.execute(
            update(CouponDB)
            .where(CouponDB.id == coupon_id)
            .values(provider_coupon_id=provider_coupon_id)
            .execution_options(synchronize_session=False)
        )

    async def deactivate(self, code: str, now: Optional[datetime] = None) -> Optional[CouponDB]:
        """管理操作：停用优惠券（不删除）"""
        if now is None:
            now = utc_now()

        db_coupon = await self.get_by_code(code)
        if db_coupon is None:
            return None

        await self.db.execute(
            update(CouponDB)
            .where(CouponDB.id == db_coupon.id)
            .values(active=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return await self.get_by_id(db_coupon.id)

    async def deactivate_expired(self, now: Optional[datetime] = None) -> int:
        """将已过期但仍标记有效的优惠券停用"""
        if now is None:
            now = utc_now()

        result = await self.db.execute(
            update(CouponDB)
            .where(and_(CouponDB.active.is_(True), CouponDB.expires_at <= now))
            .values(active=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def to_model(self, db_coupon: CouponDB) -> Coupon:
        """转换为Pydantic模型"""
        return Coupon(
            id=db_coupon.id,
            code=db_coupon.code,
            description=db_coupon.description,
            discount_percent=db_coupon.discount_percent,
            expires_at=db_coupon.expires_at,
            duration=db_coupon.duration,
            duration_in_months=db_coupon.duration_in_months,
            max_redemptions=db_coupon.max_redemptions,
            times_redeemed=db_coupon.times_redeemed or 0,
            active=db_coupon.active,
            last_redeemed_at=db_coupon.last_redeemed_at,
            provider_coupon_id=db_coupon.provider_coupon_id,
            created_at=db_coupon.created_at,
            updated_at=db_coupon.updated_at
        )
