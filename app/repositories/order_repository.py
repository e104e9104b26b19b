"""
订单数据库操作层（只读）
"""

from typing import Optional

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.order import Order, OrderItem, OrderStatus
from app.models.database.order_db import OrderDB


class OrderRepository:
    """订单数据库操作层"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_order_id(self, order_id: str) -> Optional[OrderDB]:
        """根据订单ID获取订单（包含订单项）"""
        result = await self.db.execute(
            select(OrderDB)
            .options(selectinload(OrderDB.order_items))
            .where(OrderDB.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def count_completed_orders_by_user(
        self,
        user_id: str,
        exclude_order_id: Optional[str] = None
    ) -> int:
        """统计用户已完成的订单数（可排除当前订单）"""
        conditions = [
            OrderDB.user_id == user_id,
            OrderDB.status == OrderStatus.COMPLETED.value
        ]

        if exclude_order_id:
            conditions.append(OrderDB.order_id != exclude_order_id)

        result = await self.db.execute(
            select(func.count(OrderDB.order_id)).where(and_(*conditions))
        )
        return result.scalar() or 0

    def to_model(self, db_order: OrderDB) -> Order:
        """转换为Pydantic模型"""
        items = [
            OrderItem(
                product_id=db_item.product_id,
                category=db_item.category,
                quantity=db_item.quantity,
                price=db_item.price
            )
            for db_item in db_order.order_items or []
        ]

        return Order(
            order_id=db_order.order_id,
            user_id=db_order.user_id,
            company_id=db_order.company_id,
            order_items=items,
            total=db_order.total,
            status=db_order.status,
            created_at=db_order.created_at
        )
