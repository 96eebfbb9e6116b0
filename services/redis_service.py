"""
Redis 服务
管理 API 配置存储的 Redis 连接池
"""
import redis.asyncio as redis_async
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)


class RedisService:
    """
    Redis 服务
    提供 Redis 连接池管理，API 配置按请求从 Redis 读取
    """

    def __init__(self):
        self.pool = None

    @property
    def initialized(self) -> bool:
        return self.pool is not None

    async def initialize(self, config):
        """
        初始化 Redis 连接池

        Args:
            config: 配置对象
        """
        try:
            self.pool = redis_async.ConnectionPool(
                host=config.REDIS_HOST,
                port=config.REDIS_PORT,
                db=config.REDIS_DB,
                password=config.REDIS_PASSWORD,
                decode_responses=True,
                max_connections=config.REDIS_POOL_SIZE,
                retry_on_timeout=True,
                health_check_interval=30
            )

            # 测试连接
            redis_client = self.get_client()
            await redis_client.ping()
            logger.info(f"Redis 连接池初始化成功，连接数: {config.REDIS_POOL_SIZE}")

        except Exception as e:
            logger.error(f"Redis 连接池初始化失败: {str(e)}")
            raise

    def get_client(self):
        """
        获取 Redis 客户端实例

        Returns:
            redis_async.Redis: Redis 客户端
        """
        if not self.initialized:
            raise RuntimeError("Redis 连接池未初始化")
        return redis_async.Redis(connection_pool=self.pool)

    async def hget_first(self, key: str, fields: List[str]) -> Optional[str]:
        """按顺序读取哈希字段，返回第一个存在的值"""
        if not fields:
            return None
        values = await self.get_client().hmget(key, fields)
        for value in values:
            if value is not None:
                return value
        return None

    async def close(self):
        """关闭 Redis 连接池"""
        if self.initialized:
            await self.pool.disconnect()
            self.pool = None
            logger.info("Redis 连接池已关闭")


# 全局Redis服务实例
redis_service = RedisService()
