"""
测试配置文件 - pytest fixtures和共用配置
"""

import uuid
import pytest
import pytest_asyncio
from decimal import Decimal
from datetime import timedelta
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import Base, build_engine
from app.models.order import OrderItem, OrderStatus
from app.models.promotion import Promotion, PromotionType, utc_now
from app.models.database import PromotionDB, OrderDB, OrderItemDB


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(tmp_path):
    """测试数据库引擎 - 每个测试一个临时SQLite文件"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'promotions_test.db'}")

    # 创建表结构
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(test_db_engine):
    """测试会话工厂（并发测试中每个协程各用一个会话）"""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncSession:
    """测试数据库会话"""
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest.fixture
def make_promotion():
    """构造促销模型，默认是一个已开始、启用中的百分比促销"""
    def _make(**overrides) -> Promotion:
        now = utc_now()
        data = {
            "promotion_id": "promo_001",
            "name": "Black Friday 2024",
            "promotion_type": PromotionType.PERCENTAGE,
            "discount_value": Decimal("10"),
            "code": "BLACKFRIDAY2024",
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=30),
            "is_active": True,
        }
        data.update(overrides)
        return Promotion(**data)

    return _make


@pytest.fixture
def sample_items():
    """示例订单项目"""
    return [
        OrderItem(product_id="prod_a", category="eletronicos", quantity=2, price=Decimal("100.00")),
        OrderItem(product_id="prod_b", category="livros", quantity=1, price=Decimal("50.00")),
    ]


@pytest.fixture
def insert_promotion():
    """向数据库写入一条促销记录"""
    async def _insert(session: AsyncSession, **overrides) -> PromotionDB:
        now = utc_now()
        data = {
            "promotion_id": str(uuid.uuid4()),
            "name": "Promoção de teste",
            "promotion_type": PromotionType.PERCENTAGE.value,
            "discount_value": Decimal("10.00"),
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=30),
            "is_active": True,
            "usage_count": 0,
            "applicable_product_ids": [],
            "applicable_categories": [],
            "applicable_company_ids": [],
        }
        data.update(overrides)
        db_promotion = PromotionDB(**data)
        session.add(db_promotion)
        await session.commit()
        await session.refresh(db_promotion)
        return db_promotion

    return _insert


@pytest.fixture
def insert_order():
    """向数据库写入一笔订单（含订单项）"""
    async def _insert(
        session: AsyncSession,
        user_id: str,
        items=None,
        status: OrderStatus = OrderStatus.PENDING,
        order_id: str = None,
        company_id: str = None
    ) -> OrderDB:
        items = items or [OrderItem(product_id="prod_a", category="eletronicos", quantity=1, price=Decimal("100.00"))]
        order_id = order_id or str(uuid.uuid4())
        db_order = OrderDB(
            order_id=order_id,
            user_id=user_id,
            company_id=company_id,
            total=sum((item.line_total for item in items), Decimal("0")),
            status=status.value,
            order_items=[
                OrderItemDB(
                    item_id=str(uuid.uuid4()),
                    product_id=item.product_id,
                    category=item.category,
                    price=item.price,
                    quantity=item.quantity
                )
                for item in items
            ]
        )
        session.add(db_order)
        await session.commit()
        return db_order

    return _insert
