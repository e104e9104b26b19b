"""
PromotionRepository数据库操作测试
"""

import pytest
from decimal import Decimal
from datetime import timedelta

from app.models.promotion import (
    Promotion, PromotionCreate, PromotionQuery, PromotionSortBy, PromotionType, utc_now
)
from app.repositories.promotion_repository import PromotionRepository


@pytest.mark.asyncio
class TestPromotionRepository:
    """PromotionRepository测试类"""

    @pytest.fixture
    def repo(self, db_session):
        return PromotionRepository(db_session)

    async def test_create_and_get(self, repo, db_session):
        """创建促销：优惠码大写存储，计数从0开始"""
        data = PromotionCreate(
            name="Black Friday 2024",
            promotion_type=PromotionType.PERCENTAGE,
            discount_value=Decimal("30"),
            max_discount_amount=Decimal("200"),
            code="blackfriday2024",
            start_date=utc_now(),
            applicable_categories=["eletronicos"]
        )

        db_promotion = await repo.create(data.model_dump(), creator_id="admin_1")
        await db_session.commit()

        fetched = await repo.get_by_id(db_promotion.promotion_id)
        promotion = repo.to_model(fetched)

        assert isinstance(promotion, Promotion)
        assert promotion.code == "BLACKFRIDAY2024"
        assert promotion.promotion_type == PromotionType.PERCENTAGE
        assert promotion.usage_count == 0
        assert promotion.created_by == "admin_1"
        assert promotion.applicable_categories == ["eletronicos"]
        assert promotion.discount_value == Decimal("30.00")

    async def test_get_by_code_case_insensitive(self, repo, db_session, insert_promotion):
        db_promotion = await insert_promotion(db_session, code="SAVE10")

        for code in ("SAVE10", "save10", "  Save10 "):
            found = await repo.get_by_code(code)
            assert found is not None
            assert found.promotion_id == db_promotion.promotion_id

        assert await repo.get_by_code("OTHER") is None
        assert await repo.get_by_code("   ") is None

    async def test_conditional_increment_respects_limit(self, repo, db_session, insert_promotion):
        """条件自增：达到上限后返回False且计数不变"""
        db_promotion = await insert_promotion(db_session, usage_limit=2)
        promotion_id = db_promotion.promotion_id

        assert await repo.conditional_increment_usage(promotion_id) is True
        assert await repo.conditional_increment_usage(promotion_id) is True
        assert await repo.conditional_increment_usage(promotion_id) is False
        await db_session.commit()

        await repo.refresh(db_promotion)
        assert db_promotion.usage_count == 2

    async def test_conditional_increment_without_limit(self, repo, db_session, insert_promotion):
        db_promotion = await insert_promotion(db_session, usage_limit=None)

        for _ in range(5):
            assert await repo.conditional_increment_usage(db_promotion.promotion_id) is True

        await repo.refresh(db_promotion)
        assert db_promotion.usage_count == 5

    async def test_conditional_increment_missing_promotion(self, repo):
        assert await repo.conditional_increment_usage("missing") is False

    async def test_update_ignores_usage_count(self, repo, db_session, insert_promotion):
        """更新不能修改 usage_count"""
        db_promotion = await insert_promotion(db_session, code="OLD")

        updated = await repo.update(
            db_promotion.promotion_id,
            {"name": "Renomeada", "code": " new10 ", "usage_count": 99}
        )

        assert updated.name == "Renomeada"
        assert updated.code == "NEW10"
        assert updated.usage_count == 0

    async def test_update_missing(self, repo):
        assert await repo.update("missing", {"name": "x"}) is None

    async def test_delete(self, repo, db_session, insert_promotion):
        db_promotion = await insert_promotion(db_session)

        assert await repo.delete(db_promotion.promotion_id) is True
        assert await repo.delete(db_promotion.promotion_id) is False

    async def test_list_filters(self, repo, db_session, insert_promotion):
        """列表过滤：类型、启用、有效期、有码、企业、搜索"""
        now = utc_now()
        await insert_promotion(db_session, name="Cupom Verão", code="VERAO", applicable_company_ids=["company_a"])
        await insert_promotion(db_session, name="Frete grátis", promotion_type=PromotionType.FREE_SHIPPING.value)
        await insert_promotion(db_session, name="Desativada", is_active=False)
        await insert_promotion(
            db_session, name="Expirada", start_date=now - timedelta(days=10), end_date=now - timedelta(days=1)
        )

        async def names(**kwargs):
            promotions, total = await repo.list_promotions(PromotionQuery(**kwargs))
            assert total == len(promotions)
            return sorted(p.name for p in promotions)

        assert len(await names()) == 4
        assert await names(promotion_type=PromotionType.FREE_SHIPPING) == ["Frete grátis"]
        assert await names(active_only=True) == ["Cupom Verão", "Expirada", "Frete grátis"]
        assert await names(valid_only=True) == ["Cupom Verão", "Desativada", "Frete grátis"]
        assert await names(with_code_only=True) == ["Cupom Verão"]
        assert await names(company_id="company_a") == ["Cupom Verão"]
        assert await names(company_id="company") == []
        assert await names(search="verao") == ["Cupom Verão"]
        assert await names(search="grátis") == ["Frete grátis"]

    async def test_list_filters_treat_wildcards_literally(self, repo, db_session, insert_promotion):
        """搜索词和企业ID中的 % 与 _ 按字面匹配"""
        await insert_promotion(db_session, name="50% OFF", applicable_company_ids=["company_a"])
        await insert_promotion(db_session, name="Leve_3")
        await insert_promotion(db_session, name="Cupom Verão", code="VERAO")

        async def names(**kwargs):
            promotions, _ = await repo.list_promotions(PromotionQuery(**kwargs))
            return sorted(p.name for p in promotions)

        assert await names(search="%") == ["50% OFF"]
        assert await names(search="_") == ["Leve_3"]
        assert await names(company_id="company%") == []
        assert await names(company_id="company_a") == ["50% OFF"]

    async def test_list_sorting_and_pagination(self, repo, db_session, insert_promotion):
        for index, priority in enumerate([5, 50, 20]):
            await insert_promotion(db_session, name=f"Promo {index}", priority=priority, usage_count=index)

        by_priority, total = await repo.list_promotions(
            PromotionQuery(sort_by=PromotionSortBy.PRIORITY_DESC, limit=2)
        )
        assert total == 3
        assert [p.priority for p in by_priority] == [50, 20]

        second_page, _ = await repo.list_promotions(
            PromotionQuery(sort_by=PromotionSortBy.PRIORITY_DESC, limit=2, page=2)
        )
        assert [p.priority for p in second_page] == [5]

        by_usage, _ = await repo.list_promotions(PromotionQuery(sort_by=PromotionSortBy.USAGE_DESC))
        assert [p.usage_count for p in by_usage] == [2, 1, 0]

        by_name, _ = await repo.list_promotions(PromotionQuery(sort_by=PromotionSortBy.NAME_ASC))
        assert [p.name for p in by_name] == ["Promo 0", "Promo 1", "Promo 2"]
