"""
服务包初始化文件
"""

from .common_cache import SimpleCache, promotion_cache
from .discount_calculator import DiscountCalculator, discount_calculator
from .promotion_validator import PromotionValidator
from .usage_recorder import UsageRecorder
from .promotion_service import PromotionService, build_promotion_service

__all__ = [
    "SimpleCache",
    "promotion_cache",
    "DiscountCalculator",
    "discount_calculator",
    "PromotionValidator",
    "UsageRecorder",
    "PromotionService",
    "build_promotion_service"
]
