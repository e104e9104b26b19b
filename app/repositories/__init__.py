"""
仓库包初始化文件 - 数据库访问层
"""

from .promotion_repository import PromotionRepository
from .usage_repository import PromotionUsageRepository
from .order_repository import OrderRepository

__all__ = [
    "PromotionRepository",
    "PromotionUsageRepository",
    "OrderRepository"
]
