"""
促销资格校验服务
按固定顺序逐项检查，遇到第一个不满足的条件即返回其原因
"""

from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from app.models.order import OrderItem, total_quantity
from app.models.promotion import Promotion, ValidationResult, utc_now
from app.repositories.usage_repository import PromotionUsageRepository
from app.repositories.order_repository import OrderRepository


# 原样返回给界面的校验原因
REASON_INACTIVE = "Promoção inativa"
REASON_NOT_STARTED = "Promoção ainda não iniciou"
REASON_EXPIRED = "Promoção expirada"
REASON_USAGE_LIMIT = "Limite de usos atingido"
REASON_USER_LIMIT = "Você já atingiu o limite de usos desta promoção"
REASON_FIRST_PURCHASE = "Válido apenas para primeira compra"
REASON_NO_PRODUCT = "Nenhum produto aplicável no carrinho"
REASON_NO_CATEGORY = "Nenhuma categoria aplicável no carrinho"
REASON_COMPANY = "Promoção não aplicável para esta empresa"


def min_purchase_reason(min_purchase_amount: Decimal) -> str:
    return f"Valor mínimo de compra: R$ {Decimal(min_purchase_amount):.2f}"


def min_quantity_reason(min_quantity: int) -> str:
    return f"Quantidade mínima de itens: {min_quantity}"


class PromotionValidator:
    """促销校验器，只读查询使用记录和订单数"""

    def __init__(self, usage_repo: PromotionUsageRepository, order_repo: OrderRepository):
        self.usage_repo = usage_repo
        self.order_repo = order_repo

    async def validate(
        self,
        promotion: Promotion,
        user_id: str,
        order_total: Decimal,
        order_items: List[OrderItem],
        company_id: Optional[str] = None,
        now: Optional[datetime] = None,
        exclude_order_id: Optional[str] = None
    ) -> ValidationResult:
        """校验促销是否可用于该订单"""
        if now is None:
            now = utc_now()

        # 1. 是否启用
        if not promotion.is_active:
            return ValidationResult.fail(REASON_INACTIVE)

        # 2-3. 有效期
        if now < promotion.start_date:
            return ValidationResult.fail(REASON_NOT_STARTED)

        if promotion.end_date is not None and now > promotion.end_date:
            return ValidationResult.fail(REASON_EXPIRED)

        # 4. 总次数
        if not promotion.has_remaining_uses():
            return ValidationResult.fail(REASON_USAGE_LIMIT)

        # 5. 单用户次数
        if promotion.usage_limit_per_user is not None:
            user_usages = await self.usage_repo.count_usages_by_user(promotion.promotion_id, user_id)
            if user_usages >= promotion.usage_limit_per_user:
                return ValidationResult.fail(REASON_USER_LIMIT)

        # 6. 最低消费
        if promotion.min_purchase_amount is not None and Decimal(order_total) < promotion.min_purchase_amount:
            return ValidationResult.fail(min_purchase_reason(promotion.min_purchase_amount))

        # 7. 最低件数
        if promotion.min_quantity is not None and total_quantity(order_items) < promotion.min_quantity:
            return ValidationResult.fail(min_quantity_reason(promotion.min_quantity))

        # 8. 首单
        if promotion.is_first_purchase_only:
            order_count = await self.order_repo.count_completed_orders_by_user(
                user_id, exclude_order_id=exclude_order_id
            )
            if order_count > 0:
                return ValidationResult.fail(REASON_FIRST_PURCHASE)

        # 9. 适用商品
        if promotion.applicable_product_ids:
            product_ids = set(promotion.applicable_product_ids)
            if not any(item.product_id in product_ids for item in order_items):
                return ValidationResult.fail(REASON_NO_PRODUCT)

        # 10. 适用分类
        if promotion.applicable_categories:
            categories = set(promotion.applicable_categories)
            if not any(item.category in categories for item in order_items):
                return ValidationResult.fail(REASON_NO_CATEGORY)

        # 11. 适用企业（未提供企业时不检查）
        if promotion.applicable_company_ids and company_id:
            if company_id not in promotion.applicable_company_ids:
                return ValidationResult.fail(REASON_COMPANY)

        return ValidationResult.ok()
