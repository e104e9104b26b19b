"""
促销相关数据模型
"""

from decimal import Decimal
from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel, Field, validator
from enum import Enum

from app.models.order import OrderItem


def utc_now() -> datetime:
    """当前UTC时间（无时区信息，与数据库存储一致）"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """带时区的时间统一转换为无时区UTC"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def normalize_code(code: Optional[str]) -> Optional[str]:
    """优惠码规范化：去空格并转大写"""
    if code is None:
        return None
    code = code.strip().upper()
    return code or None


def bogo_quantities_error(
    promotion_type: "PromotionType",
    buy_quantity: Optional[int],
    get_quantity: Optional[int]
) -> Optional[str]:
    """检查BOGO数量约束，返回错误信息，合法时返回None"""
    if promotion_type != PromotionType.BOGO:
        return None
    if not buy_quantity or not get_quantity:
        return "BOGO requer buyQuantity e getQuantity"
    if get_quantity <= buy_quantity:
        return "getQuantity deve ser maior que buyQuantity"
    return None


class PromotionType(str, Enum):
    """促销类型枚举"""
    PERCENTAGE = "PERCENTAGE"  # 百分比折扣
    FIXED_AMOUNT = "FIXED_AMOUNT"  # 固定金额减免
    FREE_SHIPPING = "FREE_SHIPPING"  # 免运费
    BOGO = "BOGO"  # 买N送M
    FIXED_PRICE = "FIXED_PRICE"  # 指定商品一口价
    QUANTITY_DISCOUNT = "QUANTITY_DISCOUNT"  # 满件折扣


class PromotionSortBy(str, Enum):
    """促销列表排序方式"""
    CREATED_DESC = "created_desc"
    CREATED_ASC = "created_asc"
    PRIORITY_DESC = "priority_desc"
    USAGE_DESC = "usage_desc"
    NAME_ASC = "name_asc"


class Promotion(BaseModel):
    """促销基础模型"""

    promotion_id: str = Field(..., description="促销ID")
    name: str = Field(..., max_length=200, description="促销名称")
    description: Optional[str] = Field(None, max_length=1000, description="促销描述")
    promotion_type: PromotionType = Field(..., description="促销类型")
    discount_value: Decimal = Field(..., ge=0, description="折扣值（含义取决于类型）")
    max_discount_amount: Optional[Decimal] = Field(None, ge=0, description="最大折扣金额")
    code: Optional[str] = Field(None, max_length=50, description="优惠码（大写存储）")
    is_coupon_required: bool = Field(default=False, description="是否必须输入优惠码")
    start_date: datetime = Field(..., description="开始时间")
    end_date: Optional[datetime] = Field(None, description="结束时间")
    is_active: bool = Field(default=True, description="是否启用")
    usage_limit: Optional[int] = Field(None, ge=1, description="总使用次数限制")
    usage_limit_per_user: Optional[int] = Field(None, ge=1, description="单用户使用次数限制")
    usage_count: int = Field(default=0, ge=0, description="已使用次数")
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0, description="最低消费金额")
    min_quantity: Optional[int] = Field(None, ge=1, description="最低商品件数")
    applicable_product_ids: List[str] = Field(default_factory=list, description="适用商品ID")
    applicable_categories: List[str] = Field(default_factory=list, description="适用分类")
    applicable_company_ids: List[str] = Field(default_factory=list, description="适用企业ID")
    is_first_purchase_only: bool = Field(default=False, description="仅限首单")
    is_free_shipping: bool = Field(default=False, description="是否免运费")
    can_stack_with_others: bool = Field(default=False, description="可否与其他促销叠加")
    priority: int = Field(default=0, ge=0, le=100, description="优先级（越大越先应用）")
    buy_quantity: Optional[int] = Field(None, ge=1, description="BOGO: 购买数量")
    get_quantity: Optional[int] = Field(None, ge=1, description="BOGO: 获得数量")
    created_by: Optional[str] = Field(None, description="创建人")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def has_remaining_uses(self) -> bool:
        """检查总次数是否还有剩余"""
        return self.usage_limit is None or self.usage_count < self.usage_limit


class PromotionCreate(BaseModel):
    """创建促销模型"""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    promotion_type: PromotionType = Field(...)
    discount_value: Decimal = Field(..., ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, ge=0)
    code: Optional[str] = Field(None, max_length=50)
    is_coupon_required: bool = False
    start_date: datetime = Field(...)
    end_date: Optional[datetime] = None
    is_active: bool = True
    usage_limit: Optional[int] = Field(None, ge=1)
    usage_limit_per_user: Optional[int] = Field(None, ge=1)
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    min_quantity: Optional[int] = Field(None, ge=1)
    applicable_product_ids: List[str] = Field(default_factory=list)
    applicable_categories: List[str] = Field(default_factory=list)
    applicable_company_ids: List[str] = Field(default_factory=list)
    is_first_purchase_only: bool = False
    is_free_shipping: bool = False
    can_stack_with_others: bool = False
    priority: int = Field(default=0, ge=0, le=100)
    buy_quantity: Optional[int] = Field(None, ge=1)
    get_quantity: Optional[int] = Field(None, ge=1)

    @validator('code')
    def validate_code(cls, v):
        """优惠码统一转大写"""
        return normalize_code(v)

    @validator('start_date', 'end_date')
    def validate_timezone(cls, v):
        """时间统一为UTC"""
        return to_naive_utc(v)

    @validator('end_date')
    def validate_period(cls, v, values):
        """验证有效期"""
        if v is not None and values.get('start_date') and v <= values['start_date']:
            raise ValueError('A data de término deve ser posterior à data de início')
        return v


class PromotionUpdate(BaseModel):
    """更新促销模型（只包含需要修改的字段）"""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    promotion_type: Optional[PromotionType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, ge=0)
    code: Optional[str] = Field(None, max_length=50)
    is_coupon_required: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    usage_limit_per_user: Optional[int] = Field(None, ge=1)
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    min_quantity: Optional[int] = Field(None, ge=1)
    applicable_product_ids: Optional[List[str]] = None
    applicable_categories: Optional[List[str]] = None
    applicable_company_ids: Optional[List[str]] = None
    is_first_purchase_only: Optional[bool] = None
    is_free_shipping: Optional[bool] = None
    can_stack_with_others: Optional[bool] = None
    priority: Optional[int] = Field(None, ge=0, le=100)
    buy_quantity: Optional[int] = Field(None, ge=1)
    get_quantity: Optional[int] = Field(None, ge=1)

    @validator('code')
    def validate_code(cls, v):
        return normalize_code(v)

    @validator('start_date', 'end_date')
    def validate_timezone(cls, v):
        return to_naive_utc(v)


class PromotionUsage(BaseModel):
    """促销使用记录（不可变）"""

    usage_id: str = Field(..., description="使用记录ID")
    promotion_id: str = Field(..., description="促销ID")
    user_id: str = Field(..., description="用户ID")
    order_id: str = Field(..., description="订单ID")
    discount_applied: Decimal = Field(..., ge=0, description="实际优惠金额快照")
    created_at: datetime = Field(default_factory=utc_now, description="使用时间")

    class Config:
        frozen = True


class ValidationResult(BaseModel):
    """促销校验结果"""

    is_valid: bool = Field(..., description="是否可用")
    reason: Optional[str] = Field(None, description="不可用原因")

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(is_valid=True)

    @classmethod
    def fail(cls, reason: str) -> "ValidationResult":
        return cls(is_valid=False, reason=reason)


class PromotionSummary(BaseModel):
    """报价中返回的促销摘要"""

    promotion_id: str
    name: str
    promotion_type: PromotionType
    discount_value: Decimal
    is_free_shipping: bool

    @classmethod
    def from_promotion(cls, promotion: Promotion) -> "PromotionSummary":
        return cls(
            promotion_id=promotion.promotion_id,
            name=promotion.name,
            promotion_type=promotion.promotion_type,
            discount_value=promotion.discount_value,
            is_free_shipping=promotion.is_free_shipping
        )


class CouponQuote(BaseModel):
    """优惠码校验报价（只读，不产生使用记录）"""

    is_valid: bool = True
    promotion: PromotionSummary
    discount_amount: Decimal = Field(..., ge=0)
    final_total: Decimal = Field(..., ge=0)


class CouponValidationRequest(BaseModel):
    """优惠码校验请求"""

    code: str = Field(..., min_length=1)
    order_total: Decimal = Field(..., ge=0)
    order_items: List[OrderItem] = Field(default_factory=list)
    company_id: Optional[str] = None


class ApplyPromotionRequest(BaseModel):
    """应用促销请求"""

    promotion_id: str = Field(...)
    order_id: str = Field(...)
    code: Optional[str] = None


class ApplyResult(BaseModel):
    """应用促销结果"""

    usage: PromotionUsage
    promotion: Promotion
    discount_applied: Decimal = Field(..., ge=0)


class PromotionStats(BaseModel):
    """促销使用统计"""

    total_uses: int = 0
    total_discount_given: Decimal = Decimal("0.00")
    unique_users: int = 0
    average_discount_per_use: Decimal = Decimal("0.00")


class PromotionDetail(BaseModel):
    """促销详情（含统计与最近使用记录）"""

    promotion: Promotion
    stats: PromotionStats
    recent_usages: List[PromotionUsage] = Field(default_factory=list)


class PromotionQuery(BaseModel):
    """促销列表查询条件"""

    promotion_type: Optional[PromotionType] = None
    active_only: bool = False
    valid_only: bool = False
    with_code_only: bool = False
    company_id: Optional[str] = None
    search: Optional[str] = None
    sort_by: PromotionSortBy = PromotionSortBy.CREATED_DESC
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


class Pagination(BaseModel):
    """分页信息"""

    total: int
    page: int
    limit: int
    total_pages: int


class PromotionPage(BaseModel):
    """促销分页结果"""

    promotions: List[Promotion]
    pagination: Pagination
