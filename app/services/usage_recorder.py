"""
促销使用记录服务
唯一会修改 usage_count 和写入使用记录的入口
"""

import logging
from typing import Optional
from decimal import Decimal
from datetime import datetime

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationFailedError
from app.models.order import OrderContext
from app.models.promotion import ApplyResult, Promotion
from app.models.database.promotion_db import PromotionDB
from app.repositories.promotion_repository import PromotionRepository
from app.repositories.usage_repository import PromotionUsageRepository
from app.services.discount_calculator import DiscountCalculator, discount_calculator
from app.services.promotion_validator import (
    PromotionValidator, REASON_USAGE_LIMIT, REASON_USER_LIMIT
)

logger = logging.getLogger(__name__)


class UsageRecorder:
    """
    应用促销：重新校验 -> 计算折扣 -> 条件自增 + 写入使用记录

    条件自增、单用户次数复查和写入使用记录在同一个事务内完成，
    任何失败都会回滚，不会留下只有计数没有记录（或相反）的状态。
    """

    def __init__(
        self,
        db: AsyncSession,
        promotion_repo: PromotionRepository,
        usage_repo: PromotionUsageRepository,
        validator: PromotionValidator,
        calculator: DiscountCalculator = discount_calculator,
        max_attempts: Optional[int] = None
    ):
        self.db = db
        self.promotion_repo = promotion_repo
        self.usage_repo = usage_repo
        self.validator = validator
        self.calculator = calculator
        self.max_attempts = max_attempts or settings.apply_max_attempts

    async def apply(
        self,
        promotion_id: str,
        user_id: str,
        order_id: str,
        order_context: OrderContext,
        now: Optional[datetime] = None
    ) -> ApplyResult:
        """对订单应用促销"""
        db_promotion = await self.promotion_repo.get_by_id(promotion_id)
        if not db_promotion:
            raise NotFoundError("Promoção não encontrada")

        promotion = self.promotion_repo.to_model(db_promotion)

        # 不信任之前的报价结果，按当前状态重新校验
        validation = await self.validator.validate(
            promotion,
            user_id,
            order_context.order_total,
            order_context.order_items,
            company_id=order_context.company_id,
            now=now,
            exclude_order_id=order_id
        )
        if not validation.is_valid:
            raise ValidationFailedError(validation.reason)

        discount = self.calculator.calculate(
            promotion, order_context.order_total, order_context.order_items
        )

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._record_usage(db_promotion, promotion, user_id, order_id, discount)
            except OperationalError as e:
                logger.warning(
                    f"应用促销 {promotion_id} 遇到锁冲突，第 {attempt}/{self.max_attempts} 次: {e}"
                )

        # 重试耗尽与名额用尽对调用方表现一致
        raise ValidationFailedError(REASON_USAGE_LIMIT)

    async def _record_usage(
        self,
        db_promotion: PromotionDB,
        promotion: Promotion,
        user_id: str,
        order_id: str,
        discount: Decimal
    ) -> ApplyResult:
        """事务内完成条件自增与记录写入"""
        try:
            incremented = await self.promotion_repo.conditional_increment_usage(promotion.promotion_id)
            if not incremented:
                logger.info(f"促销 {promotion.promotion_id} 名额已用尽，拒绝订单 {order_id}")
                raise ValidationFailedError(REASON_USAGE_LIMIT)

            # 持有行锁后复查单用户次数，防止同一用户并发应用
            if promotion.usage_limit_per_user is not None:
                user_usages = await self.usage_repo.count_usages_by_user(promotion.promotion_id, user_id)
                if user_usages >= promotion.usage_limit_per_user:
                    logger.info(f"用户 {user_id} 已达促销 {promotion.promotion_id} 的使用上限")
                    raise ValidationFailedError(REASON_USER_LIMIT)

            db_usage = await self.usage_repo.insert_usage(
                promotion_id=promotion.promotion_id,
                user_id=user_id,
                order_id=order_id,
                discount_applied=discount
            )
            await self.promotion_repo.refresh(db_promotion)

            result = ApplyResult(
                usage=self.usage_repo.to_model(db_usage),
                promotion=self.promotion_repo.to_model(db_promotion),
                discount_applied=discount
            )
            await self.db.commit()
        except BaseException:
            await self.db.rollback()
            raise

        logger.info(
            f"促销 {promotion.code or promotion.promotion_id} 已应用到订单 {order_id}: -R$ {discount}"
        )
        return result
