"""
优惠券领取API
"""

import logging
import secrets
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_claim_service, get_identity, get_status_service
from app.api.rate_limit import claim_rate_limit, status_rate_limit
from app.core.config import settings
from app.core.database import get_db_session
from app.core.exceptions import CouponNotFoundError, PermissionDeniedError
from app.models.claim import Identity, ClaimRecordResponse
from app.models.coupon import ClaimedCouponResponse, CouponStatusResponse
from app.repositories.claim_repository import ClaimRepository
from app.repositories.coupon_repository import CouponRepository
from app.services.claim_service import ClaimService, STATUS_CACHE_KEY
from app.services.common_cache import coupon_cache
from app.services.coupon_status_service import CouponStatusService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/coupons", tags=["优惠券"])


@router.post(
    "/claim",
    response_model=ClaimedCouponResponse,
    dependencies=[Depends(claim_rate_limit)]
)
async def claim_coupon(
    identity: Identity = Depends(get_identity),
    claim_service: ClaimService = Depends(get_claim_service)
):
    """领取一张优惠券"""
    coupon = await claim_service.claim(identity)
    return ClaimedCouponResponse.from_coupon(coupon)


@router.get(
    "/status",
    response_model=CouponStatusResponse,
    dependencies=[Depends(status_rate_limit)]
)
async def coupon_status(status_service: CouponStatusService = Depends(get_status_service)):
    """全部优惠券状态快照"""
    return await status_service.get_status()


@router.get("/claims", response_model=List[ClaimRecordResponse])
async def list_claims(
    limit: int = 100,
    db: AsyncSession = Depends(get_db_session)
):
    """调试接口：最近的领取记录（仅debug模式）"""
    if not settings.debug:
        raise HTTPException(status_code=404, detail="Not Found")

    repo = ClaimRepository(db)
    claims = await repo.list_recent(limit=max(1, min(limit, 500)))
    return [ClaimRecordResponse(**repo.to_model(c).model_dump()) for c in claims]


@router.post("/{code}/deactivate")
async def deactivate_coupon(
    code: str,
    x_admin_token: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db_session)
):
    """管理接口：停用优惠券"""
    if not settings.admin_token or not x_admin_token or not secrets.compare_digest(
        x_admin_token, settings.admin_token
    ):
        raise PermissionDeniedError()

    db_coupon = await CouponRepository(db).deactivate(code)
    if db_coupon is None:
        raise CouponNotFoundError(f"Coupon {code} not found")

    await coupon_cache.delete(STATUS_CACHE_KEY)
    logger.info(f"优惠券已停用: {db_coupon.code}")
    return {"code": db_coupon.code, "active": db_coupon.active}
