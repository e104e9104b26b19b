import redis.asyncio as aioredis
from typing import Optional
from app.core.config import settings
import structlog

"redis连接管理器"

logger = structlog.get_logger()


class RedisManager:
    """Redis连接管理器，供促销查询缓存共享连接池"""

    def __init__(self):
        self.redis_pool: Optional[aioredis.Redis] = None

    async def init_redis(self) -> None:
        """初始化Redis连接池"""
        try:
            self.redis_pool = aioredis.from_url(
                settings.redis_url_computed,
                encoding="utf-8",
                decode_responses=True,
                max_connections=20,
                retry_on_timeout=True
            )
            await self.redis_pool.ping()
            logger.info("Redis连接初始化成功", url=settings.redis_url_computed)
        except Exception as e:
            logger.error("Redis连接初始化失败", error=str(e))
            raise

    async def close_redis(self) -> None:
        """关闭Redis连接"""
        if self.redis_pool:
            await self.redis_pool.close()
            self.redis_pool = None
            logger.info("Redis连接已关闭")

    async def ping(self) -> bool:
        """检查连接是否可用"""
        if not self.redis_pool:
            return False
        try:
            return bool(await self.redis_pool.ping())
        except Exception as e:
            logger.error("Redis ping失败", error=str(e))
            return False


# 全局Redis管理器实例
redis_manager = RedisManager()


def get_redis_client() -> Optional[aioredis.Redis]:
    """获取Redis客户端实例"""
    return redis_manager.redis_pool
