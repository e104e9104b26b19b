from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn

from app.core.config import settings
from app.core.redis import redis_manager
from app.core.database import init_database, create_tables, close_database
from app.api.health import router as health_router
from app.api.promotions import router as promotions_router
from app.api.exceptions import register_exception_handlers

# 简化日志配置
import logging

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("正在启动促销引擎")

    try:
        await init_database()
        await create_tables()
        logger.info("数据库初始化成功")

    except Exception as e:
        logger.error(f"应用启动失败: {e}")
        raise

    # Redis只做查询缓存，连接失败时降级为直接查库
    try:
        await redis_manager.init_redis()
    except Exception as e:
        logger.warning(f"Redis不可用，促销查询将不使用缓存: {e}")

    logger.info("应用启动完成")

    yield

    logger.info("正在关闭应用")
    await close_database()
    await redis_manager.close_redis()
    logger.info("应用关闭完成")


# 创建FastAPI应用
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="促销引擎 - 优惠码校验、折扣计算与使用次数控制",
    debug=settings.debug,
    lifespan=lifespan
)

# CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 注册路由
app.include_router(health_router)
app.include_router(promotions_router)

# 注册异常处理器
register_exception_handlers(app)


@app.get("/")
async def root():
    """根路径"""
    return {
        "message": f"欢迎使用 {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
