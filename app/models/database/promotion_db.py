"""
促销数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, Text, Boolean, DateTime, JSON
from sqlalchemy.sql import func
from app.core.database import Base


class PromotionDB(Base):
    """促销数据库表"""

    __tablename__ = "promotions"

    # 主键和基本信息
    promotion_id = Column(String(50), primary_key=True, comment="促销ID")
    name = Column(String(200), nullable=False, comment="促销名称")
    description = Column(Text, comment="促销描述")
    promotion_type = Column(String(30), nullable=False, index=True, comment="促销类型")

    # 折扣信息
    discount_value = Column(Numeric(10, 2), nullable=False, comment="折扣值")
    max_discount_amount = Column(Numeric(10, 2), comment="最大折扣金额")

    # 优惠码（大写存储，全局唯一）
    code = Column(String(50), unique=True, index=True, comment="优惠码")
    is_coupon_required = Column(Boolean, nullable=False, default=False, comment="是否必须输入优惠码")

    # 有效期
    start_date = Column(DateTime, nullable=False, index=True, comment="开始时间")
    end_date = Column(DateTime, index=True, comment="结束时间")
    is_active = Column(Boolean, nullable=False, default=True, index=True, comment="是否启用")

    # 使用限制，usage_count 只通过条件自增修改
    usage_limit = Column(Integer, comment="总使用次数限制")
    usage_limit_per_user = Column(Integer, comment="单用户使用次数限制")
    usage_count = Column(Integer, nullable=False, default=0, comment="已使用次数")

    # 使用门槛
    min_purchase_amount = Column(Numeric(10, 2), comment="最低消费金额")
    min_quantity = Column(Integer, comment="最低商品件数")

    # 适用范围，空列表表示不限制
    applicable_product_ids = Column(JSON, nullable=False, default=list, comment="适用商品ID")
    applicable_categories = Column(JSON, nullable=False, default=list, comment="适用分类")
    applicable_company_ids = Column(JSON, nullable=False, default=list, comment="适用企业ID")

    # 其他规则
    is_first_purchase_only = Column(Boolean, nullable=False, default=False, comment="仅限首单")
    is_free_shipping = Column(Boolean, nullable=False, default=False, comment="是否免运费")
    can_stack_with_others = Column(Boolean, nullable=False, default=False, comment="可否叠加")
    priority = Column(Integer, nullable=False, default=0, comment="优先级")
    buy_quantity = Column(Integer, comment="BOGO购买数量")
    get_quantity = Column(Integer, comment="BOGO获得数量")

    created_by = Column(String(50), comment="创建人")

    # 时间戳
    created_at = Column(DateTime, server_default=func.now(), index=True, comment="创建时间")
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), comment="更新时间")

    __table_args__ = (
        {'comment': '促销信息表'}
    )


class PromotionUsageDB(Base):
    """促销使用记录表（只追加，不随促销删除）"""

    __tablename__ = "promotion_usages"

    usage_id = Column(String(50), primary_key=True, comment="使用记录ID")
    promotion_id = Column(String(50), nullable=False, index=True, comment="促销ID")
    user_id = Column(String(50), nullable=False, index=True, comment="使用用户ID")
    order_id = Column(String(50), nullable=False, index=True, comment="订单ID")
    discount_applied = Column(Numeric(12, 2), nullable=False, comment="实际优惠金额")
    created_at = Column(DateTime, server_default=func.now(), comment="使用时间")

    __table_args__ = (
        {'comment': '促销使用记录表'}
    )
