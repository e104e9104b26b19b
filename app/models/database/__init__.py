"""
数据库模型包初始化文件
"""

from .promotion_db import PromotionDB, PromotionUsageDB
from .order_db import OrderDB, OrderItemDB

__all__ = [
    "PromotionDB",
    "PromotionUsageDB",
    "OrderDB",
    "OrderItemDB"
]
