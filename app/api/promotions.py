from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from app.core.database import get_db_session
from app.models.promotion import (
    Promotion, PromotionCreate, PromotionUpdate, PromotionQuery, PromotionPage,
    PromotionDetail, PromotionStats, PromotionType, PromotionSortBy,
    CouponQuote, CouponValidationRequest, ApplyPromotionRequest, ApplyResult
)
from app.services.promotion_service import PromotionService, build_promotion_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/promotions", tags=["促销"])


async def get_promotion_service(db: AsyncSession = Depends(get_db_session)) -> PromotionService:
    """按请求会话组装促销服务"""
    return build_promotion_service(db)


async def get_current_user_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    """调用方身份（认证由上游网关负责）"""
    return x_user_id


@router.post("", response_model=Promotion, status_code=status.HTTP_201_CREATED)
async def create_promotion(
    promotion_data: PromotionCreate,
    user_id: str = Depends(get_current_user_id),
    service: PromotionService = Depends(get_promotion_service)
):
    """创建促销"""
    return await service.create_promotion(promotion_data, creator_id=user_id)


@router.get("", response_model=PromotionPage)
async def list_promotions(
    promotion_type: Optional[PromotionType] = Query(None, alias="type"),
    active_only: bool = Query(False),
    valid_only: bool = Query(False),
    with_code_only: bool = Query(False),
    company_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: PromotionSortBy = Query(PromotionSortBy.CREATED_DESC),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: PromotionService = Depends(get_promotion_service)
):
    """分页列出促销"""
    query = PromotionQuery(
        promotion_type=promotion_type,
        active_only=active_only,
        valid_only=valid_only,
        with_code_only=with_code_only,
        company_id=company_id,
        search=search,
        sort_by=sort_by,
        page=page,
        limit=limit
    )
    return await service.list_promotions(query)


@router.get("/active", response_model=PromotionPage)
async def list_active_promotions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: PromotionService = Depends(get_promotion_service)
):
    """当前可用的促销"""
    return await service.list_active(page=page, limit=limit)


@router.get("/code/{code}", response_model=Promotion)
async def get_promotion_by_code(
    code: str,
    service: PromotionService = Depends(get_promotion_service)
):
    """根据优惠码查询促销"""
    return await service.find_by_code(code)


@router.post("/validate-coupon", response_model=CouponQuote)
async def validate_coupon(
    request: CouponValidationRequest,
    user_id: str = Depends(get_current_user_id),
    service: PromotionService = Depends(get_promotion_service)
):
    """校验优惠码并返回折扣报价"""
    return await service.validate_coupon(
        request.code,
        request.order_total,
        request.order_items,
        user_id,
        company_id=request.company_id
    )


@router.post("/apply", response_model=ApplyResult)
async def apply_promotion(
    request: ApplyPromotionRequest,
    user_id: str = Depends(get_current_user_id),
    service: PromotionService = Depends(get_promotion_service)
):
    """对订单应用促销"""
    return await service.apply_promotion(
        request.promotion_id,
        request.order_id,
        user_id,
        code=request.code
    )


@router.get("/{promotion_id}", response_model=PromotionDetail)
async def get_promotion(
    promotion_id: str,
    service: PromotionService = Depends(get_promotion_service)
):
    """促销详情"""
    return await service.find_one(promotion_id)


@router.get("/{promotion_id}/stats", response_model=PromotionStats)
async def get_promotion_stats(
    promotion_id: str,
    service: PromotionService = Depends(get_promotion_service)
):
    """促销使用统计"""
    return await service.get_promotion_stats(promotion_id)


@router.patch("/{promotion_id}", response_model=Promotion)
async def update_promotion(
    promotion_id: str,
    promotion_data: PromotionUpdate,
    service: PromotionService = Depends(get_promotion_service)
):
    """更新促销"""
    return await service.update_promotion(promotion_id, promotion_data)


@router.delete("/{promotion_id}")
async def delete_promotion(
    promotion_id: str,
    service: PromotionService = Depends(get_promotion_service)
):
    """删除促销"""
    deleted = await service.delete_promotion(promotion_id)
    return {"promotion_id": promotion_id, "deleted": deleted}
