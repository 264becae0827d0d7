from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, AsyncEngine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import event, text
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    InterfaceError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)
from typing import AsyncGenerator, Optional
import asyncio
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

# 创建基础模型类
Base = declarative_base()

# 全局数据库引擎
engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker] = None


def is_storage_unavailable(exc: BaseException) -> bool:
    """判断异常是否属于存储不可用（连接失败、超时、锁等待超时）"""
    if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return isinstance(exc, (asyncio.TimeoutError, ConnectionError, OSError))


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    创建异步数据库引擎

    PostgreSQL通过asyncpg的超时参数保证存储操作有界；
    SQLite（测试/本地开发）改用 BEGIN IMMEDIATE，写事务串行等待而不是在锁升级时直接失败。
    """
    timeout = settings.storage_timeout_seconds

    if database_url.startswith("sqlite"):
        new_engine = create_async_engine(
            database_url,
            echo=echo,
            connect_args={"timeout": max(timeout, 30.0)},
        )

        @event.listens_for(new_engine.sync_engine, "connect")
        def _disable_driver_begin(dbapi_connection, connection_record):
            # 由下面的begin事件自行发出BEGIN
            dbapi_connection.isolation_level = None

        @event.listens_for(new_engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return new_engine

    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,  # 连接前ping检查
        pool_recycle=3600,   # 连接回收时间1小时
        pool_timeout=timeout,
        connect_args={"timeout": timeout, "command_timeout": timeout},
    )


def create_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async def init_database() -> None:
    """初始化数据库连接"""
    global engine, async_session_maker

    try:
        engine = create_engine_for_url(
            settings.database_url_computed,
            echo=settings.debug and not settings.is_production,
        )
        async_session_maker = create_session_maker(engine)
        logger.info("数据库连接初始化成功")

    except Exception as e:
        logger.error(f"数据库连接初始化失败: {e}")
        raise


async def create_tables() -> None:
    """创建所有数据表（已存在则跳过）"""
    # 导入所有数据库模型以确保表被注册
    from app.models.database import CouponDB, CouponClaimDB, ClaimWindowDB  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("数据表检查完成")


async def close_database() -> None:
    """关闭数据库连接"""
    global engine

    if engine:
        await engine.dispose()
        logger.info("数据库连接已关闭")


def get_session_maker() -> async_sessionmaker:
    """获取session工厂，供领取引擎等需要自行控制事务的服务使用"""
    if not async_session_maker:
        raise RuntimeError("数据库未初始化，请先调用 init_database()")
    return async_session_maker


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """获取数据库会话依赖注入函数"""
    session_maker = get_session_maker()

    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


class DatabaseService:
    """数据库服务类"""

    @property
    def engine(self):
        return engine

    @property
    def session_maker(self):
        return async_session_maker

    async def health_check(self) -> dict:
        """数据库健康检查"""
        try:
            if not self.engine:
                return {"status": "error", "message": "数据库引擎未初始化"}

            # 执行简单查询测试连接
            async with self.engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                row = result.fetchone()

            return {
                "status": "healthy",
                "message": "数据库连接正常",
                "test_query_result": row[0] if row else None
            }

        except Exception as e:
            logger.warning(f"数据库健康检查失败: {e}")
            return {
                "status": "error",
                "message": "数据库连接失败"
            }


# 全局数据库服务实例
database_service = DatabaseService()
