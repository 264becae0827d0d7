"""
测试配置文件 - pytest fixtures和共用配置
"""

import pytest
import pytest_asyncio

from app.core.database import Base, create_engine_for_url, create_session_maker
from app.models.database import CouponDB, CouponClaimDB, ClaimWindowDB  # noqa: F401
from app.services.claim_service import ClaimService
from app.services.coupon_minting_service import CouponMinter, NullCouponMirror
from tests.factories import FakeClock


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(tmp_path):
    """测试数据库引擎 - 临时SQLite文件，真实SQL与事务"""
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'claims_test.db'}")

    # 创建表结构
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(test_db_engine):
    """测试session工厂"""
    return create_session_maker(test_db_engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def minter():
    """固定折扣的新券生成器"""
    return CouponMinter(discount_menu=[20], expiry_days=90, max_redemptions=100)


@pytest.fixture
def claim_service(session_maker, minter, clock):
    """领取服务（不使用Redis缓存）"""
    return ClaimService(
        session_maker,
        minter=minter,
        mirror=NullCouponMirror(),
        clock=clock,
        cooldown_minutes=60,
        retry_limit=3,
        cache=None
    )
