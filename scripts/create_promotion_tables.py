"""
促销引擎数据库表创建脚本
"""

import asyncio
import sys
from pathlib import Path
from decimal import Decimal
from datetime import timedelta

# 添加项目根目录到Python路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy import text
from app.core.config import settings
from app.core.database import init_database, create_tables, close_database
from app.models.promotion import PromotionCreate, PromotionType, utc_now


async def create_database_if_not_exists():
    """创建数据库（如果不存在）"""
    # 连接到PostgreSQL服务器（不指定数据库）
    server_url = settings.database_url_computed.replace(f"/{settings.db_name}", "/postgres")

    engine = create_async_engine(server_url, isolation_level="AUTOCOMMIT")

    async with engine.connect() as conn:
        result = await conn.execute(
            text("SELECT 1 FROM pg_database WHERE datname = :db_name"),
            {"db_name": settings.db_name}
        )

        if not result.fetchone():
            await conn.execute(text(f"CREATE DATABASE {settings.db_name}"))
            print(f"数据库 '{settings.db_name}' 创建成功")
        else:
            print(f"数据库 '{settings.db_name}' 已存在")

    await engine.dispose()


async def create_indexes():
    """创建额外的组合索引"""
    from app.core import database

    indexes = [
        "CREATE INDEX IF NOT EXISTS idx_promotions_active_period ON promotions(is_active, start_date, end_date);",
        "CREATE INDEX IF NOT EXISTS idx_promotion_usages_promotion_user ON promotion_usages(promotion_id, user_id);",
        "CREATE INDEX IF NOT EXISTS idx_orders_user_status ON orders(user_id, status);",
    ]

    async with database.engine.begin() as conn:
        for index_sql in indexes:
            await conn.execute(text(index_sql))
        print("所有索引创建成功")


async def insert_sample_promotions():
    """插入示例促销数据"""
    from app.core import database
    from app.repositories.promotion_repository import PromotionRepository

    now = utc_now()
    sample_promotions = [
        PromotionCreate(
            name="Black Friday 2024",
            description="30% de desconto, máximo R$ 200",
            promotion_type=PromotionType.PERCENTAGE,
            discount_value=Decimal("30"),
            max_discount_amount=Decimal("200"),
            code="BLACKFRIDAY2024",
            is_coupon_required=True,
            start_date=now,
            end_date=now + timedelta(days=30),
            usage_limit=1000,
            usage_limit_per_user=1
        ),
        PromotionCreate(
            name="Primeira compra",
            description="R$ 50 de desconto na primeira compra",
            promotion_type=PromotionType.FIXED_AMOUNT,
            discount_value=Decimal("50"),
            code="BEMVINDO50",
            start_date=now,
            min_purchase_amount=Decimal("150"),
            is_first_purchase_only=True,
            usage_limit_per_user=1
        ),
        PromotionCreate(
            name="Leve 3 pague 2",
            promotion_type=PromotionType.BOGO,
            discount_value=Decimal("0"),
            start_date=now,
            end_date=now + timedelta(days=60),
            buy_quantity=2,
            get_quantity=3
        )
    ]

    async with database.async_session_maker() as session:
        repo = PromotionRepository(session)
        for promotion in sample_promotions:
            if promotion.code and await repo.get_by_code(promotion.code):
                print(f"促销已存在: {promotion.name}")
                continue

            await repo.create(promotion.model_dump(), creator_id="seed")
            print(f"插入促销: {promotion.name}")

        await session.commit()


async def main():
    """主函数"""
    print("开始创建促销引擎数据库表...")

    try:
        # 1. 创建数据库
        if settings.database_url_computed.startswith("postgresql"):
            await create_database_if_not_exists()

        # 2. 创建表结构
        await init_database()
        await create_tables()
        print("所有数据表创建成功")

        # 3. 创建索引
        await create_indexes()

        # 4. 插入示例数据
        await insert_sample_promotions()

        print("促销引擎数据库初始化完成！")

    except Exception as e:
        print(f"数据库初始化失败: {e}")
        raise

    finally:
        await close_database()


if __name__ == "__main__":
    asyncio.run(main())
