from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, AsyncEngine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from sqlalchemy import text
from typing import AsyncGenerator, Optional
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

# 创建基础模型类
Base = declarative_base()

# 全局数据库引擎
engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker] = None


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """按URL创建异步引擎，SQLite不使用连接池参数"""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo, poolclass=NullPool)

    return create_async_engine(
        database_url,
        echo=echo,
        poolclass=NullPool if settings.is_testing else None,
        pool_pre_ping=True,  # 连接前ping检查
        pool_recycle=3600,   # 连接回收时间1小时
    )


async def init_database(database_url: Optional[str] = None) -> None:
    """初始化数据库连接"""
    global engine, async_session_maker

    try:
        engine = build_engine(
            database_url or settings.database_url_computed,
            echo=settings.debug and not settings.is_testing,
        )

        async_session_maker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        logger.info("数据库连接初始化成功")

    except Exception as e:
        logger.error(f"数据库连接初始化失败: {e}")
        raise


async def create_tables() -> None:
    """根据模型元数据建表"""
    if not engine:
        raise RuntimeError("数据库未初始化，请先调用 init_database()")

    # 注册所有表
    import app.models.database  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_database() -> None:
    """关闭数据库连接"""
    global engine

    if engine:
        await engine.dispose()
        logger.info("数据库连接已关闭")


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """获取数据库会话依赖注入函数"""
    if not async_session_maker:
        raise RuntimeError("数据库未初始化，请先调用 init_database()")

    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


class DatabaseService:
    """数据库服务类"""

    @property
    def engine(self):
        return engine

    async def health_check(self) -> dict:
        """数据库健康检查"""
        try:
            if not self.engine:
                return {"status": "error", "message": "数据库引擎未初始化"}

            async with self.engine.begin() as conn:
                result = await conn.execute(text("SELECT 1"))
                row = result.fetchone()

            return {
                "status": "healthy",
                "message": "数据库连接正常",
                "test_query_result": row[0] if row else None
            }

        except Exception as e:
            return {
                "status": "error",
                "message": f"数据库连接失败: {str(e)}"
            }


# 全局数据库服务实例
database_service = DatabaseService()
