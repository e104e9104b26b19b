"""
折扣计算服务
按促销类型分派到对应的计算策略，所有金额在返回时四舍五入到分
"""

from typing import Callable, Dict, List
from decimal import Decimal, ROUND_HALF_UP

from app.models.order import OrderItem, total_quantity
from app.models.promotion import Promotion, PromotionType

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

DiscountStrategy = Callable[[Promotion, Decimal, List[OrderItem]], Decimal]


def round_money(amount: Decimal) -> Decimal:
    """金额保留两位小数（四舍五入）"""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def _percentage(promotion: Promotion, order_total: Decimal, order_items: List[OrderItem]) -> Decimal:
    discount = order_total * promotion.discount_value / HUNDRED
    if promotion.max_discount_amount is not None:
        discount = min(discount, promotion.max_discount_amount)
    return discount


def _fixed_amount(promotion: Promotion, order_total: Decimal, order_items: List[OrderItem]) -> Decimal:
    return min(promotion.discount_value, order_total)


def _free_shipping(promotion: Promotion, order_total: Decimal, order_items: List[OrderItem]) -> Decimal:
    # 免运费由调用方读取 is_free_shipping，这里不产生金额折扣
    return ZERO


def _bogo(promotion: Promotion, order_total: Decimal, order_items: List[OrderItem]) -> Decimal:
    """买N送M：最便宜的若干件免费"""
    if not promotion.buy_quantity or not promotion.get_quantity:
        return ZERO

    product_ids = set(promotion.applicable_product_ids)
    applicable_items = [
        item for item in order_items
        if not product_ids or item.product_id in product_ids
    ]

    sets = total_quantity(applicable_items) // promotion.buy_quantity
    remaining = sets * (promotion.get_quantity - promotion.buy_quantity)

    # 按单价从低到高整行取件，不逐件展开
    discount = ZERO
    for item in sorted(applicable_items, key=lambda item: item.price):
        if remaining <= 0:
            break
        free_units = min(item.quantity, remaining)
        discount += item.price * free_units
        remaining -= free_units
    return discount


def _fixed_price(promotion: Promotion, order_total: Decimal, order_items: List[OrderItem]) -> Decimal:
    """指定商品按一口价结算"""
    product_ids = set(promotion.applicable_product_ids)
    applicable_items = [item for item in order_items if item.product_id in product_ids]

    original_total = sum((item.line_total for item in applicable_items), ZERO)
    fixed_total = sum((promotion.discount_value * item.quantity for item in applicable_items), ZERO)
    return max(ZERO, original_total - fixed_total)


def _quantity_discount(promotion: Promotion, order_total: Decimal, order_items: List[OrderItem]) -> Decimal:
    if total_quantity(order_items) >= (promotion.min_quantity or 0):
        return order_total * promotion.discount_value / HUNDRED
    return ZERO


STRATEGIES: Dict[PromotionType, DiscountStrategy] = {
    PromotionType.PERCENTAGE: _percentage,
    PromotionType.FIXED_AMOUNT: _fixed_amount,
    PromotionType.FREE_SHIPPING: _free_shipping,
    PromotionType.BOGO: _bogo,
    PromotionType.FIXED_PRICE: _fixed_price,
    PromotionType.QUANTITY_DISCOUNT: _quantity_discount,
}

_missing_types = set(PromotionType) - set(STRATEGIES)
if _missing_types:
    raise RuntimeError(f"缺少折扣计算策略: {sorted(t.value for t in _missing_types)}")


class DiscountCalculator:
    """折扣计算器（无状态，可并发使用）"""

    def __init__(self, strategies: Dict[PromotionType, DiscountStrategy] = STRATEGIES):
        self.strategies = strategies

    def calculate(
        self,
        promotion: Promotion,
        order_total: Decimal,
        order_items: List[OrderItem]
    ) -> Decimal:
        """计算折扣金额，结果在 [0, order_total] 之间"""
        order_total = Decimal(order_total)
        strategy = self.strategies[promotion.promotion_type]
        discount = strategy(promotion, order_total, order_items)

        discount = max(ZERO, min(discount, order_total))
        return round_money(discount)


# 全局计算器实例
discount_calculator = DiscountCalculator()
