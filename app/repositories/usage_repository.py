"""
促销使用记录数据库操作层（只追加）
"""

from typing import List, Optional
from decimal import Decimal, ROUND_HALF_UP
import uuid

from sqlalchemy import select, and_, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.promotion import PromotionUsage, PromotionStats, utc_now
from app.models.database.promotion_db import PromotionUsageDB

_CENT = Decimal("0.01")


class PromotionUsageRepository:
    """促销使用记录数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def count_usages_by_user(self, promotion_id: str, user_id: str) -> int:
        """获取用户对特定促销的使用次数"""
        result = await self.db.execute(
            select(func.count(PromotionUsageDB.usage_id)).where(
                and_(
                    PromotionUsageDB.promotion_id == promotion_id,
                    PromotionUsageDB.user_id == user_id
                )
            )
        )
        return result.scalar() or 0

    async def count_usages(self, promotion_id: str) -> int:
        """获取促销的使用记录总数"""
        result = await self.db.execute(
            select(func.count(PromotionUsageDB.usage_id)).where(
                PromotionUsageDB.promotion_id == promotion_id
            )
        )
        return result.scalar() or 0

    async def insert_usage(
        self,
        promotion_id: str,
        user_id: str,
        order_id: str,
        discount_applied: Decimal
    ) -> PromotionUsageDB:
        """追加一条使用记录"""
        usage = PromotionUsageDB(
            usage_id=str(uuid.uuid4()),
            promotion_id=promotion_id,
            user_id=user_id,
            order_id=order_id,
            discount_applied=discount_applied,
            created_at=utc_now()
        )
        self.db.add(usage)
        await self.db.flush()
        return usage

    async def list_usages(
        self,
        promotion_id: str,
        limit: Optional[int] = None
    ) -> List[PromotionUsageDB]:
        """获取促销的使用记录（最新在前）"""
        query = select(PromotionUsageDB).where(
            PromotionUsageDB.promotion_id == promotion_id
        ).order_by(desc(PromotionUsageDB.created_at), desc(PromotionUsageDB.usage_id))

        if limit:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_usage_stats(self, promotion_id: str) -> PromotionStats:
        """聚合统计：使用次数、优惠总额、独立用户数、平均优惠"""
        result = await self.db.execute(
            select(
                func.count(PromotionUsageDB.usage_id).label("total_uses"),
                func.sum(PromotionUsageDB.discount_applied).label("total_discount"),
                func.count(func.distinct(PromotionUsageDB.user_id)).label("unique_users")
            ).where(PromotionUsageDB.promotion_id == promotion_id)
        )
        row = result.one()

        total_uses = row.total_uses or 0
        total_discount = Decimal(str(row.total_discount or 0)).quantize(_CENT, rounding=ROUND_HALF_UP)
        average = (
            (total_discount / total_uses).quantize(_CENT, rounding=ROUND_HALF_UP)
            if total_uses > 0 else Decimal("0.00")
        )

        return PromotionStats(
            total_uses=total_uses,
            total_discount_given=total_discount,
            unique_users=row.unique_users or 0,
            average_discount_per_use=average
        )

    def to_model(self, db_usage: PromotionUsageDB) -> PromotionUsage:
        """转换为Pydantic模型"""
        return PromotionUsage(
            usage_id=db_usage.usage_id,
            promotion_id=db_usage.promotion_id,
            user_id=db_usage.user_id,
            order_id=db_usage.order_id,
            discount_applied=db_usage.discount_applied,
            created_at=db_usage.created_at or utc_now()
        )
