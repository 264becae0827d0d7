"""
优惠券领取业务服务层（领取引擎）

状态流转：CHECKING_COOLDOWN → SELECTING_COUPON → MINTING_IF_NEEDED → COMMITTING → DONE，
任一步骤可进入 ERROR。正确性完全依赖数据库的条件更新与唯一约束，进程内不持有任何锁。
"""

import asyncio
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Set

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.clock import Clock, utc_now, seconds_until, minutes_until
from app.core.config import settings
from app.core.database import is_storage_unavailable
from app.core.exceptions import (
    AlreadyExhaustedError,
    BusinessException,
    CooldownActiveError,
    CouponNotFoundError,
    DuplicateCodeError,
    IdentityWindowLockedError,
    PoolExhaustedError,
    StorageUnavailableError,
)
from app.models.claim import Identity
from app.models.coupon import Coupon
from app.repositories.claim_repository import ClaimRepository
from app.repositories.coupon_repository import CouponRepository
from app.services.common_cache import SimpleCache, coupon_cache
from app.services.coupon_minting_service import CouponMinter, CouponMirror, NullCouponMirror

logger = structlog.get_logger()

STATUS_CACHE_KEY = "status:snapshot"


class ClaimState(str, Enum):
    """单次领取请求的状态"""
    CHECKING_COOLDOWN = "checking_cooldown"
    SELECTING_COUPON = "selecting_coupon"
    MINTING_IF_NEEDED = "minting_if_needed"
    COMMITTING = "committing"
    DONE = "done"
    ERROR = "error"


class ClaimService:
    """优惠券领取服务"""

    def __init__(
        self,
        session_maker: async_sessionmaker,
        minter: Optional[CouponMinter] = None,
        mirror: Optional[CouponMirror] = None,
        clock: Optional[Clock] = None,
        cooldown_minutes: Optional[int] = None,
        retry_limit: Optional[int] = None,
        code_attempts: Optional[int] = None,
        storage_timeout: Optional[float] = None,
        cache: Optional[SimpleCache] = coupon_cache
    ):
        self.session_maker = session_maker
        self.minter = minter or CouponMinter()
        self.mirror = mirror or NullCouponMirror()
        self.clock = clock or utc_now
        self.cooldown = timedelta(minutes=cooldown_minutes or settings.claim_cooldown_minutes)
        self.retry_limit = retry_limit or settings.claim_retry_limit
        self.code_attempts = code_attempts or settings.code_generation_attempts
        self.storage_timeout = storage_timeout or settings.storage_timeout_seconds
        self.cache = cache

    @property
    def cooldown_minutes(self) -> int:
        return int(self.cooldown.total_seconds() // 60)

    async def claim(self, identity: Identity) -> Coupon:
        """
        为身份领取一张优惠券

        Raises:
            CooldownActiveError: 冷却窗口内已领取（会话或地址任一匹配）
            PoolExhaustedError: 重试次数内未能获得可发放的优惠券
            StorageUnavailableError: 存储不可用或超时
        """
        state = ClaimState.CHECKING_COOLDOWN
        now = self.clock()
        log = logger.bind(session_token=identity.session_token, network_address=identity.network_address)

        try:
            await self._bounded(self._check_cooldown(identity, now))

            excluded: Set[str] = set()
            minted = False
            for attempt in range(1, self.retry_limit + 1):
                state = ClaimState.SELECTING_COUPON
                coupon_id = await self._bounded(self._select(now, excluded))

                if coupon_id is None:
                    if minted:
                        break
                    state = ClaimState.MINTING_IF_NEEDED
                    coupon_id = await self._mint(now)
                    minted = True

                state = ClaimState.COMMITTING
                try:
                    coupon = await self._bounded(self._commit(identity, coupon_id, now))
                except (AlreadyExhaustedError, CouponNotFoundError):
                    log.info("优惠券已被并发领完，换券重试", coupon_id=coupon_id, attempt=attempt)
                    excluded.add(coupon_id)
                    continue

                state = ClaimState.DONE
                log.info("优惠券领取成功", code=coupon.code, times_redeemed=coupon.times_redeemed, minted=minted)
                await self._invalidate_status_cache()
                return coupon

            raise PoolExhaustedError(retry_after_seconds=settings.pool_exhausted_retry_seconds)

        except IdentityWindowLockedError:
            error = await self._cooldown_error_after_lock(identity)
            log.info("并发领取被身份窗口拒绝", minutes_remaining=error.minutes_remaining)
            raise error from None
        except CooldownActiveError as e:
            log.info("领取处于冷却期", minutes_remaining=e.minutes_remaining)
            raise
        except BusinessException as e:
            log.info("领取失败", state=state.value, error=e.code)
            raise
        except (SQLAlchemyError, asyncio.TimeoutError, ConnectionError, OSError) as e:
            if not is_storage_unavailable(e):
                log.exception("领取出现数据库异常", state=state.value)
                raise
            log.warning("存储不可用，领取失败", state=state.value, error=str(e) or e.__class__.__name__)
            raise StorageUnavailableError(retry_after_seconds=settings.unavailable_retry_seconds) from e

    async def _bounded(self, coro):
        """存储操作的超时上限"""
        return await asyncio.wait_for(coro, timeout=self.storage_timeout)

    def _cooldown_error(self, claimed_at: datetime, now: datetime) -> CooldownActiveError:
        available_at = claimed_at + self.cooldown
        return CooldownActiveError(
            minutes_remaining=max(1, minutes_until(available_at, now)),
            retry_after_seconds=max(1, seconds_until(available_at, now)),
            cooldown_minutes=self.cooldown_minutes
        )

    async def _check_cooldown(self, identity: Identity, now: datetime) -> None:
        async with self.session_maker.begin() as session:
            recent = await ClaimRepository(session).recent_claim(identity, self.cooldown, now)

        if recent is not None and now - recent.claimed_at < self.cooldown:
            raise self._cooldown_error(recent.claimed_at, now)

    async def _cooldown_error_after_lock(self, identity: Identity) -> CooldownActiveError:
        """身份窗口被占用时，以最新提交的领取记录计算剩余时间"""
        now = self.clock()
        try:
            async with self.session_maker.begin() as session:
                recent = await ClaimRepository(session).recent_claim(identity, self.cooldown, now)
        except SQLAlchemyError:
            recent = None

        if recent is None:
            return CooldownActiveError(
                minutes_remaining=self.cooldown_minutes,
                retry_after_seconds=int(self.cooldown.total_seconds()),
                cooldown_minutes=self.cooldown_minutes
            )
        return self._cooldown_error(recent.claimed_at, now)

    async def _select(self, now: datetime, excluded: Set[str]) -> Optional[str]:
        async with self.session_maker.begin() as session:
            coupon_repo = CouponRepository(session)
            expired = await coupon_repo.deactivate_expired(now)
            if expired:
                logger.info("停用已过期优惠券", count=expired)
            db_coupon = await coupon_repo.find_eligible(now, exclude_ids=excluded)
            return db_coupon.id if db_coupon else None

    async def _mint(self, now: datetime) -> str:
        """池中没有可发放的券时生成一张新券（代码冲突时换码重试）"""
        for _ in range(self.code_attempts):
            spec = self.minter.build_spec(now)
            try:
                async with self.session_maker.begin() as session:
                    db_coupon = await self._bounded(CouponRepository(session).create(spec, now))
                    coupon_id = db_coupon.id
            except DuplicateCodeError:
                continue

            logger.info("生成新优惠券", code=spec.code, discount_percent=spec.discount_percent)
            await self._mirror(coupon_id, spec)
            return coupon_id

        logger.error("多次生成优惠券代码均冲突", attempts=self.code_attempts)
        raise PoolExhaustedError(retry_after_seconds=settings.pool_exhausted_retry_seconds)

    async def _mirror(self, coupon_id: str, spec) -> None:
        """尽力在支付平台创建镜像券，任何失败均不影响本地发放"""
        try:
            result = await asyncio.wait_for(
                self.mirror.create_remote_coupon(spec),
                timeout=self.storage_timeout
            )
        except Exception as e:
            logger.warning("支付平台镜像调用失败", code=spec.code, error=str(e) or e.__class__.__name__)
            return

        if not result.ok:
            logger.info("支付平台镜像未创建", code=spec.code, reason=result.error)
            return

        try:
            async with self.session_maker.begin() as session:
                await CouponRepository(session).set_provider_coupon_id(coupon_id, result.remote_id)
        except SQLAlchemyError as e:
            logger.warning("保存支付平台镜像ID失败", code=spec.code, error=str(e))

    async def _commit(self, identity: Identity, coupon_id: str, now: datetime) -> Coupon:
        """
        单个事务内完成：占用身份窗口、条件自增领取次数、追加领取记录

        任一步失败整个事务回滚，领取记录与计数不会出现不一致。
        """
        async with self.session_maker.begin() as session:
            claim_repo = ClaimRepository(session)
            coupon_repo = CouponRepository(session)

            await claim_repo.acquire_window(identity, now, self.cooldown)
            db_coupon = await coupon_repo.redeem(coupon_id, now)
            await claim_repo.record(identity, coupon_id, now)
            return coupon_repo.to_model(db_coupon)

    async def _invalidate_status_cache(self) -> None:
        if self.cache is not None:
            await self.cache.delete(STATUS_CACHE_KEY)
