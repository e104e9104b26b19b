"""
订单相关数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base


class OrderDB(Base):
    """订单数据库表"""

    __tablename__ = "orders"

    # 主键和归属信息
    order_id = Column(String(50), primary_key=True, comment="订单ID")
    user_id = Column(String(50), nullable=False, index=True, comment="用户ID")
    company_id = Column(String(50), index=True, comment="企业ID")

    # 金额与状态
    total = Column(Numeric(12, 2), nullable=False, comment="订单总额")
    status = Column(String(20), nullable=False, default="pending", index=True, comment="订单状态")

    created_at = Column(DateTime, server_default=func.now(), index=True, comment="创建时间")

    # 关系映射
    order_items = relationship("OrderItemDB", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        {'comment': '订单主表'}
    )


class OrderItemDB(Base):
    """订单项目数据库表"""

    __tablename__ = "order_items"

    item_id = Column(String(50), primary_key=True, comment="项目ID")
    order_id = Column(String(50), ForeignKey("orders.order_id"), nullable=False, index=True, comment="订单ID")

    # 商品信息
    product_id = Column(String(50), nullable=False, comment="商品ID")
    category = Column(String(100), comment="商品分类")

    # 价格信息
    price = Column(Numeric(10, 2), nullable=False, comment="单价")
    quantity = Column(Integer, nullable=False, default=1, comment="数量")

    order = relationship("OrderDB", back_populates="order_items")

    __table_args__ = (
        {'comment': '订单项目表'}
    )
