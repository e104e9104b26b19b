"""
促销业务服务层
对外提供优惠码校验、应用、查询、统计和后台管理操作
"""

import logging
import math
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    NotFoundError, ValidationFailedError, ConflictError, ForbiddenError
)
from app.models.order import OrderItem
from app.models.promotion import (
    Promotion, PromotionCreate, PromotionUpdate, PromotionQuery, PromotionPage,
    PromotionDetail, PromotionStats, PromotionSummary, CouponQuote, ApplyResult,
    Pagination, bogo_quantities_error, normalize_code
)
from app.repositories.promotion_repository import PromotionRepository
from app.repositories.usage_repository import PromotionUsageRepository
from app.repositories.order_repository import OrderRepository
from app.services.common_cache import promotion_cache
from app.services.discount_calculator import DiscountCalculator, discount_calculator
from app.services.promotion_validator import PromotionValidator
from app.services.usage_recorder import UsageRecorder

logger = logging.getLogger(__name__)

PROMOTION_NOT_FOUND = "Promoção não encontrada"
COUPON_NOT_FOUND = "Cupom não encontrado"
COUPON_INVALID = "Cupom inválido"
ORDER_NOT_FOUND = "Pedido não encontrado"
ORDER_FORBIDDEN = "Você não tem permissão para modificar este pedido"
COUPON_MISMATCH = "Cupom não corresponde à promoção"
COUPON_REQUIRED = "Cupom obrigatório para esta promoção"


# 数据库中不可为空的字段，更新时传 null 视为未修改
REQUIRED_FIELDS = {
    "name", "promotion_type", "discount_value", "start_date", "is_active",
    "is_coupon_required", "is_first_purchase_only", "is_free_shipping",
    "can_stack_with_others", "priority", "applicable_product_ids",
    "applicable_categories", "applicable_company_ids"
}


def code_in_use_message(code: str) -> str:
    return f"Código '{code}' já está em uso"


class PromotionService:
    """促销业务服务"""

    def __init__(
        self,
        promotion_repo: PromotionRepository,
        usage_repo: PromotionUsageRepository,
        order_repo: OrderRepository,
        recorder: UsageRecorder,
        validator: Optional[PromotionValidator] = None,
        calculator: DiscountCalculator = discount_calculator
    ):
        self.promotion_repo = promotion_repo
        self.usage_repo = usage_repo
        self.order_repo = order_repo
        self.recorder = recorder
        self.validator = validator or PromotionValidator(usage_repo, order_repo)
        self.calculator = calculator
        self.cache = promotion_cache
        self.cache_ttl = settings.promotion_cache_ttl

    async def find_by_code(self, code: str, use_cache: bool = True) -> Promotion:
        """根据优惠码查询促销（不区分大小写）"""
        normalized = normalize_code(code)
        if not normalized:
            raise NotFoundError(COUPON_NOT_FOUND)

        cache_key = f"code:{normalized}"

        if use_cache:
            cached = await self.cache.get(cache_key)
            if cached:
                return Promotion(**cached)

        db_promotion = await self.promotion_repo.get_by_code(normalized)
        if not db_promotion:
            raise NotFoundError(COUPON_NOT_FOUND)

        promotion = self.promotion_repo.to_model(db_promotion)

        if use_cache:
            await self.cache.set(cache_key, promotion.model_dump(mode="json"), ttl=self.cache_ttl)

        return promotion

    async def find_one(self, promotion_id: str) -> PromotionDetail:
        """促销详情：基本信息、统计、最近10条使用记录"""
        db_promotion = await self.promotion_repo.get_by_id(promotion_id)
        if not db_promotion:
            raise NotFoundError(PROMOTION_NOT_FOUND)

        stats = await self.usage_repo.get_usage_stats(promotion_id)
        recent_usages = await self.usage_repo.list_usages(promotion_id, limit=10)

        return PromotionDetail(
            promotion=self.promotion_repo.to_model(db_promotion),
            stats=stats,
            recent_usages=[self.usage_repo.to_model(usage) for usage in recent_usages]
        )

    async def list_promotions(self, query: PromotionQuery) -> PromotionPage:
        """按条件分页列出促销"""
        db_promotions, total = await self.promotion_repo.list_promotions(query)

        return PromotionPage(
            promotions=[self.promotion_repo.to_model(p) for p in db_promotions],
            pagination=Pagination(
                total=total,
                page=query.page,
                limit=query.limit,
                total_pages=math.ceil(total / query.limit)
            )
        )

    async def list_active(self, page: int = 1, limit: int = 10) -> PromotionPage:
        """列出启用且在有效期内的促销"""
        return await self.list_promotions(
            PromotionQuery(active_only=True, valid_only=True, page=page, limit=limit)
        )

    async def get_promotion_stats(self, promotion_id: str) -> PromotionStats:
        """获取促销使用统计（实时聚合，不走缓存）"""
        db_promotion = await self.promotion_repo.get_by_id(promotion_id)
        if not db_promotion:
            raise NotFoundError(PROMOTION_NOT_FOUND)

        return await self.usage_repo.get_usage_stats(promotion_id)

    async def validate_coupon(
        self,
        code: str,
        order_total: Decimal,
        order_items: List[OrderItem],
        user_id: str,
        company_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> CouponQuote:
        """校验优惠码并给出折扣报价（只读）"""
        # 校验不使用缓存，确保计数实时
        db_promotion = await self.promotion_repo.get_by_code(code)
        if not db_promotion:
            raise NotFoundError(COUPON_INVALID)

        promotion = self.promotion_repo.to_model(db_promotion)

        validation = await self.validator.validate(
            promotion, user_id, order_total, order_items, company_id=company_id, now=now
        )
        if not validation.is_valid:
            raise ValidationFailedError(validation.reason)

        discount_amount = self.calculator.calculate(promotion, order_total, order_items)

        return CouponQuote(
            is_valid=True,
            promotion=PromotionSummary.from_promotion(promotion),
            discount_amount=discount_amount,
            final_total=max(Decimal("0"), Decimal(order_total) - discount_amount)
        )

    async def apply_promotion(
        self,
        promotion_id: str,
        order_id: str,
        user_id: str,
        code: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ApplyResult:
        """对用户自己的订单应用促销"""
        db_promotion = await self.promotion_repo.get_by_id(promotion_id)
        if not db_promotion:
            raise NotFoundError(PROMOTION_NOT_FOUND)

        db_order = await self.order_repo.get_by_order_id(order_id)
        if not db_order:
            raise NotFoundError(ORDER_NOT_FOUND)

        order = self.order_repo.to_model(db_order)
        if order.user_id != user_id:
            raise ForbiddenError(ORDER_FORBIDDEN)

        if code is not None:
            if normalize_code(code) != db_promotion.code:
                raise ValidationFailedError(COUPON_MISMATCH)
        elif db_promotion.is_coupon_required:
            raise ValidationFailedError(COUPON_REQUIRED)

        result = await self.recorder.apply(
            promotion_id, user_id, order_id, order.to_context(), now=now
        )

        await self._clear_promotion_caches(result.promotion.code)
        return result

    async def create_promotion(
        self,
        promotion_data: PromotionCreate,
        creator_id: Optional[str] = None
    ) -> Promotion:
        """创建促销"""
        if promotion_data.code:
            existing = await self.promotion_repo.get_by_code(promotion_data.code)
            if existing:
                raise ConflictError(code_in_use_message(promotion_data.code))

        bogo_error = bogo_quantities_error(
            promotion_data.promotion_type, promotion_data.buy_quantity, promotion_data.get_quantity
        )
        if bogo_error:
            raise ValidationFailedError(bogo_error)

        try:
            db_promotion = await self.promotion_repo.create(promotion_data.model_dump(), creator_id)
        except IntegrityError:
            raise ConflictError(code_in_use_message(promotion_data.code or ""))

        promotion = self.promotion_repo.to_model(db_promotion)
        logger.info(f"Promotion created: {promotion.name} ({promotion.code or 'no code'})")

        await self._clear_promotion_caches(promotion.code)
        return promotion

    async def update_promotion(
        self,
        promotion_id: str,
        promotion_data: PromotionUpdate
    ) -> Promotion:
        """更新促销"""
        db_promotion = await self.promotion_repo.get_by_id(promotion_id)
        if not db_promotion:
            raise NotFoundError(PROMOTION_NOT_FOUND)

        current = self.promotion_repo.to_model(db_promotion)
        update_data = {
            field: value
            for field, value in promotion_data.model_dump(exclude_unset=True).items()
            if value is not None or field not in REQUIRED_FIELDS
        }

        new_code = update_data.get("code")
        if new_code and new_code != current.code:
            existing = await self.promotion_repo.get_by_code(new_code)
            if existing and existing.promotion_id != promotion_id:
                raise ConflictError(code_in_use_message(new_code))

        # 以合并后的状态检查约束
        merged = current.model_copy(update=update_data)
        bogo_error = bogo_quantities_error(
            merged.promotion_type, merged.buy_quantity, merged.get_quantity
        )
        if bogo_error:
            raise ValidationFailedError(bogo_error)

        if merged.end_date is not None and merged.end_date <= merged.start_date:
            raise ValidationFailedError("A data de término deve ser posterior à data de início")

        try:
            updated = await self.promotion_repo.update(promotion_id, update_data)
        except IntegrityError:
            raise ConflictError(code_in_use_message(new_code or ""))

        await self._clear_promotion_caches(current.code, updated.code)
        logger.info(f"Promotion updated: {promotion_id}")
        return self.promotion_repo.to_model(updated)

    async def delete_promotion(self, promotion_id: str) -> bool:
        """删除促销，已有使用记录时仅告警并保留记录"""
        db_promotion = await self.promotion_repo.get_by_id(promotion_id)
        if not db_promotion:
            raise NotFoundError(PROMOTION_NOT_FOUND)

        code = db_promotion.code
        usage_count = await self.usage_repo.count_usages(promotion_id)
        if usage_count > 0:
            logger.warning(f"Deleting promotion {promotion_id} with {usage_count} usages")

        deleted = await self.promotion_repo.delete(promotion_id)
        await self._clear_promotion_caches(code)
        logger.info(f"Promotion deleted: {promotion_id}")
        return deleted

    async def _clear_promotion_caches(self, *codes: Optional[str]) -> None:
        """清除促销相关缓存"""
        for code in codes:
            if code:
                await self.cache.delete(f"code:{code}")


def build_promotion_service(db: AsyncSession) -> PromotionService:
    """基于同一个数据库会话组装服务"""
    promotion_repo = PromotionRepository(db)
    usage_repo = PromotionUsageRepository(db)
    order_repo = OrderRepository(db)
    validator = PromotionValidator(usage_repo, order_repo)
    recorder = UsageRecorder(db, promotion_repo, usage_repo, validator)

    return PromotionService(
        promotion_repo=promotion_repo,
        usage_repo=usage_repo,
        order_repo=order_repo,
        recorder=recorder,
        validator=validator
    )
