"""
数据模型包初始化文件
"""

from .order import Order, OrderItem, OrderContext, OrderStatus
from .promotion import (
    Promotion,
    PromotionCreate,
    PromotionUpdate,
    PromotionType,
    PromotionSortBy,
    PromotionUsage,
    PromotionStats,
    PromotionQuery,
    PromotionPage,
    ValidationResult,
    CouponQuote,
    ApplyResult
)

__all__ = [
    "Order",
    "OrderItem",
    "OrderContext",
    "OrderStatus",
    "Promotion",
    "PromotionCreate",
    "PromotionUpdate",
    "PromotionType",
    "PromotionSortBy",
    "PromotionUsage",
    "PromotionStats",
    "PromotionQuery",
    "PromotionPage",
    "ValidationResult",
    "CouponQuote",
    "ApplyResult"
]
