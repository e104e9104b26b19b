"""
促销数据库操作层
"""

from typing import List, Optional, Dict, Any, Tuple
from datetime import datetime
from enum import Enum
import uuid

from sqlalchemy import select, update, delete, and_, or_, desc, asc, func, cast, String
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.promotion import (
    Promotion, PromotionQuery, PromotionSortBy, normalize_code, utc_now
)
from app.models.database.promotion_db import PromotionDB


_SORT_COLUMNS = {
    PromotionSortBy.CREATED_DESC: desc(PromotionDB.created_at),
    PromotionSortBy.CREATED_ASC: asc(PromotionDB.created_at),
    PromotionSortBy.PRIORITY_DESC: desc(PromotionDB.priority),
    PromotionSortBy.USAGE_DESC: desc(PromotionDB.usage_count),
    PromotionSortBy.NAME_ASC: asc(PromotionDB.name),
}


def _column_values(data: Dict[str, Any]) -> Dict[str, Any]:
    """枚举转为存储用的字符串值"""
    return {
        key: value.value if isinstance(value, Enum) else value
        for key, value in data.items()
    }


def _escape_like(value: str) -> str:
    """转义 LIKE 通配符，配合 escape="\\" 使用"""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PromotionRepository:
    """促销数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, promotion_id: str) -> Optional[PromotionDB]:
        """根据促销ID获取促销"""
        result = await self.db.execute(
            select(PromotionDB).where(PromotionDB.promotion_id == promotion_id)
        )
        return result.scalar_one_or_none()

    async def get_by_code(self, code: str) -> Optional[PromotionDB]:
        """根据优惠码获取促销（不区分大小写）"""
        normalized = normalize_code(code)
        if not normalized:
            return None

        result = await self.db.execute(
            select(PromotionDB).where(PromotionDB.code == normalized)
        )
        return result.scalar_one_or_none()

    async def create(self, data: Dict[str, Any], creator_id: Optional[str] = None) -> PromotionDB:
        """创建促销"""
        db_promotion = PromotionDB(
            promotion_id=str(uuid.uuid4()),
            created_by=creator_id,
            usage_count=0,
            **_column_values(data)
        )
        db_promotion.code = normalize_code(db_promotion.code)

        self.db.add(db_promotion)
        await self.db.flush()
        await self.db.refresh(db_promotion)
        return db_promotion

    async def update(self, promotion_id: str, data: Dict[str, Any]) -> Optional[PromotionDB]:
        """更新促销的管理字段"""
        db_promotion = await self.get_by_id(promotion_id)
        if not db_promotion:
            return None

        # usage_count 只能通过条件自增修改
        data.pop("usage_count", None)
        if "code" in data:
            data["code"] = normalize_code(data["code"])

        for field, value in _column_values(data).items():
            setattr(db_promotion, field, value)
        db_promotion.updated_at = utc_now()

        await self.db.flush()
        await self.db.refresh(db_promotion)
        return db_promotion

    async def delete(self, promotion_id: str) -> bool:
        """删除促销（使用记录保留）"""
        result = await self.db.execute(
            delete(PromotionDB).where(PromotionDB.promotion_id == promotion_id)
        )
        return result.rowcount > 0

    async def conditional_increment_usage(self, promotion_id: str) -> bool:
        """
        原子条件自增：仅当未设总次数上限或 usage_count < usage_limit 时加1
        返回是否成功占到名额
        """
        result = await self.db.execute(
            update(PromotionDB)
            .where(
                and_(
                    PromotionDB.promotion_id == promotion_id,
                    or_(
                        PromotionDB.usage_limit.is_(None),
                        PromotionDB.usage_count < PromotionDB.usage_limit
                    )
                )
            )
            .values(usage_count=PromotionDB.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def refresh(self, db_promotion: PromotionDB) -> PromotionDB:
        """从数据库重新加载"""
        await self.db.refresh(db_promotion)
        return db_promotion

    async def list_promotions(
        self,
        query: PromotionQuery,
        current_time: Optional[datetime] = None
    ) -> Tuple[List[PromotionDB], int]:
        """按条件分页查询促销，返回(列表, 总数)"""
        if current_time is None:
            current_time = utc_now()

        conditions = []

        if query.promotion_type:
            conditions.append(PromotionDB.promotion_type == query.promotion_type.value)

        if query.active_only:
            conditions.append(PromotionDB.is_active.is_(True))

        if query.valid_only:
            conditions.append(PromotionDB.start_date <= current_time)
            conditions.append(
                or_(PromotionDB.end_date.is_(None), PromotionDB.end_date >= current_time)
            )

        if query.with_code_only:
            conditions.append(PromotionDB.code.is_not(None))

        if query.company_id:
            # JSON 数组序列化后按 "id" 精确匹配
            conditions.append(
                cast(PromotionDB.applicable_company_ids, String).like(
                    f'%"{_escape_like(query.company_id)}"%', escape="\\"
                )
            )

        if query.search:
            pattern = f"%{_escape_like(query.search)}%"
            conditions.append(
                or_(
                    PromotionDB.name.ilike(pattern, escape="\\"),
                    PromotionDB.description.ilike(pattern, escape="\\"),
                    PromotionDB.code.ilike(pattern, escape="\\")
                )
            )

        count_query = select(func.count(PromotionDB.promotion_id))
        list_query = select(PromotionDB)
        if conditions:
            count_query = count_query.where(and_(*conditions))
            list_query = list_query.where(and_(*conditions))

        total_result = await self.db.execute(count_query)
        total = total_result.scalar() or 0

        result = await self.db.execute(
            list_query
            .order_by(_SORT_COLUMNS[query.sort_by], PromotionDB.promotion_id)
            .limit(query.limit)
            .offset((query.page - 1) * query.limit)
        )
        return list(result.scalars().all()), total

    def to_model(self, db_promotion: PromotionDB) -> Promotion:
        """转换为Pydantic模型"""
        return Promotion(
            promotion_id=db_promotion.promotion_id,
            name=db_promotion.name,
            description=db_promotion.description,
            promotion_type=db_promotion.promotion_type,
            discount_value=db_promotion.discount_value,
            max_discount_amount=db_promotion.max_discount_amount,
            code=db_promotion.code,
            is_coupon_required=bool(db_promotion.is_coupon_required),
            start_date=db_promotion.start_date,
            end_date=db_promotion.end_date,
            is_active=bool(db_promotion.is_active),
            usage_limit=db_promotion.usage_limit,
            usage_limit_per_user=db_promotion.usage_limit_per_user,
            usage_count=db_promotion.usage_count or 0,
            min_purchase_amount=db_promotion.min_purchase_amount,
            min_quantity=db_promotion.min_quantity,
            applicable_product_ids=db_promotion.applicable_product_ids or [],
            applicable_categories=db_promotion.applicable_categories or [],
            applicable_company_ids=db_promotion.applicable_company_ids or [],
            is_first_purchase_only=bool(db_promotion.is_first_purchase_only),
            is_free_shipping=bool(db_promotion.is_free_shipping),
            can_stack_with_others=bool(db_promotion.can_stack_with_others),
            priority=db_promotion.priority or 0,
            buy_quantity=db_promotion.buy_quantity,
            get_quantity=db_promotion.get_quantity,
            created_by=db_promotion.created_by,
            created_at=db_promotion.created_at or utc_now(),
            updated_at=db_promotion.updated_at or utc_now()
        )
