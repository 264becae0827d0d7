"""
优惠券领取服务数据库表创建与初始券写入脚本
"""

import asyncio
import sys
from pathlib import Path

# 添加项目根目录到Python路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from app.core.config import settings
from app.core.database import init_database, create_tables, close_database, get_session_maker
from app.services.coupon_seed_service import seed_coupons_if_empty


async def create_database_if_not_exists():
    """创建数据库（如果不存在，仅PostgreSQL）"""
    if not settings.database_url_computed.startswith("postgresql"):
        return

    # 连接到PostgreSQL服务器（不指定数据库）
    server_url = settings.database_url_computed.replace(f"/{settings.db_name}", "/postgres")

    engine = create_async_engine(server_url, isolation_level="AUTOCOMMIT")

    async with engine.connect() as conn:
        # 检查数据库是否存在
        result = await conn.execute(
            text("SELECT 1 FROM pg_database WHERE datname = :db_name"),
            {"db_name": settings.db_name}
        )

        if not result.fetchone():
            await conn.execute(text(f'CREATE DATABASE "{settings.db_name}"'))
            print(f"数据库 '{settings.db_name}' 创建成功")
        else:
            print(f"数据库 '{settings.db_name}' 已存在")

    await engine.dispose()


async def main():
    await create_database_if_not_exists()

    await init_database()
    try:
        await create_tables()
        print("所有数据表创建成功")

        inserted = await seed_coupons_if_empty(get_session_maker())
        print(f"初始优惠券写入 {inserted} 张")
    finally:
        await close_database()


if __name__ == "__main__":
    asyncio.run(main())
