"""
订单相关数据模型
促销引擎只读取订单，不修改订单金额
"""

from decimal import Decimal
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, validator
from enum import Enum


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING = "pending"  # 待处理
    COMPLETED = "completed"  # 已完成
    CANCELLED = "cancelled"  # 已取消


class OrderItem(BaseModel):
    """订单行项目（计算折扣所需的最小信息）"""

    product_id: str = Field(..., description="商品ID")
    category: Optional[str] = Field(None, description="商品分类")
    quantity: int = Field(..., ge=1, description="数量")
    price: Decimal = Field(..., ge=0, description="单价")

    @property
    def line_total(self) -> Decimal:
        """行小计"""
        return self.price * self.quantity


def total_quantity(order_items: List[OrderItem]) -> int:
    """商品总件数"""
    return sum(item.quantity for item in order_items)


class OrderContext(BaseModel):
    """调用方提供的订单上下文"""

    order_total: Decimal = Field(..., ge=0, description="订单总额")
    order_items: List[OrderItem] = Field(default_factory=list, description="订单项目")
    user_id: str = Field(..., description="用户ID")
    company_id: Optional[str] = Field(None, description="企业ID（多租户）")


class Order(BaseModel):
    """订单模型"""

    order_id: str = Field(..., description="订单ID")
    user_id: str = Field(..., description="用户ID")
    company_id: Optional[str] = Field(None, description="企业ID")
    order_items: List[OrderItem] = Field(default_factory=list, description="订单项目列表")
    total: Decimal = Field(..., ge=0, description="订单总额")
    status: OrderStatus = Field(default=OrderStatus.PENDING, description="订单状态")
    created_at: datetime = Field(default_factory=datetime.now)

    @validator('total')
    def validate_total(cls, v):
        """金额保留两位小数"""
        return v.quantize(Decimal('0.01'))

    def to_context(self) -> OrderContext:
        """转换为促销计算用的订单上下文"""
        return OrderContext(
            order_total=self.total,
            order_items=self.order_items,
            user_id=self.user_id,
            company_id=self.company_id
        )
