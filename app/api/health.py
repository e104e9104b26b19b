from fastapi import APIRouter
from fastapi.responses import JSONResponse
import logging

from app.core.config import settings
from app.core.redis import redis_manager
from app.core.database import database_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["健康检查"])


@router.get("")
async def health_check():
    """基础健康检查接口"""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }


@router.get("/database")
async def database_health():
    """数据库与缓存连接健康检查"""
    health_status = {
        "database": False,
        "redis": False,
        "overall": False,
        "details": {}
    }

    db_status = await database_service.health_check()
    health_status["database"] = db_status["status"] == "healthy"
    health_status["details"]["database"] = db_status["message"]

    # Redis只用作查询缓存，不可用时服务仍可运行
    if redis_manager.redis_pool:
        health_status["redis"] = await redis_manager.ping()
        health_status["details"]["redis"] = "连接正常" if health_status["redis"] else "连接失败"
    else:
        health_status["details"]["redis"] = "连接池未初始化"

    health_status["overall"] = health_status["database"]

    if not health_status["overall"]:
        logger.warning(f"数据库连接检查失败: {health_status['details']}")
        return JSONResponse(status_code=503, content=health_status)

    logger.info("数据库连接检查通过")
    return health_status
