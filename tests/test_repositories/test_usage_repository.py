"""
PromotionUsageRepository数据库操作测试
"""

import pytest
from decimal import Decimal

from app.models.promotion import PromotionUsage
from app.repositories.usage_repository import PromotionUsageRepository


@pytest.mark.asyncio
class TestPromotionUsageRepository:
    """使用记录仓库测试类"""

    @pytest.fixture
    def repo(self, db_session):
        return PromotionUsageRepository(db_session)

    async def test_insert_and_count(self, repo, db_session):
        await repo.insert_usage("promo_1", "user_1", "order_1", Decimal("10.00"))
        await repo.insert_usage("promo_1", "user_1", "order_2", Decimal("5.00"))
        await repo.insert_usage("promo_1", "user_2", "order_3", Decimal("7.50"))
        await repo.insert_usage("promo_2", "user_1", "order_4", Decimal("1.00"))
        await db_session.commit()

        assert await repo.count_usages("promo_1") == 3
        assert await repo.count_usages_by_user("promo_1", "user_1") == 2
        assert await repo.count_usages_by_user("promo_1", "user_3") == 0
        assert await repo.count_usages("promo_missing") == 0

    async def test_duplicate_usage_is_appended(self, repo, db_session):
        """相同的(促销, 用户, 订单)也会追加新记录"""
        await repo.insert_usage("promo_1", "user_1", "order_1", Decimal("10.00"))
        await repo.insert_usage("promo_1", "user_1", "order_1", Decimal("10.00"))

        assert await repo.count_usages("promo_1") == 2

    async def test_list_usages_newest_first(self, repo, db_session):
        await repo.insert_usage("promo_1", "user_1", "order_1", Decimal("10.00"))
        await repo.insert_usage("promo_1", "user_2", "order_2", Decimal("20.00"))

        usages = await repo.list_usages("promo_1")
        assert len(usages) == 2
        assert usages[0].created_at >= usages[1].created_at

        limited = await repo.list_usages("promo_1", limit=1)
        assert len(limited) == 1

        usage = repo.to_model(limited[0])
        assert isinstance(usage, PromotionUsage)
        assert usage.promotion_id == "promo_1"

    async def test_usage_stats(self, repo, db_session):
        """统计：次数、优惠总额、独立用户、平均优惠"""
        await repo.insert_usage("promo_1", "user_1", "order_1", Decimal("10.00"))
        await repo.insert_usage("promo_1", "user_1", "order_2", Decimal("5.00"))
        await repo.insert_usage("promo_1", "user_2", "order_3", Decimal("5.00"))
        await db_session.commit()

        stats = await repo.get_usage_stats("promo_1")

        assert stats.total_uses == 3
        assert stats.total_discount_given == Decimal("20.00")
        assert stats.unique_users == 2
        assert stats.average_discount_per_use == Decimal("6.67")

    async def test_usage_stats_without_usages(self, repo):
        stats = await repo.get_usage_stats("promo_empty")

        assert stats.total_uses == 0
        assert stats.total_discount_given == Decimal("0.00")
        assert stats.unique_users == 0
        assert stats.average_discount_per_use == Decimal("0.00")
