"""
Shared Redis client for context snapshots
"""

from typing import Optional

import redis.asyncio as redis
import structlog

from ..config import settings

logger = structlog.get_logger(__name__)


class RedisPool:
    """Owns the connection pool behind RedisContextPersistence"""

    def __init__(self, max_connections: int = 10):
        self.max_connections = max_connections
        self._pool: Optional[redis.ConnectionPool] = None
        self._client: Optional[redis.Redis] = None

    @property
    def initialized(self) -> bool:
        return self._client is not None

    async def initialize(self, redis_url: Optional[str] = None):
        """Connect and ping; raises when Redis is unreachable"""
        redis_url = redis_url or settings.redis_url
        self._pool = redis.ConnectionPool.from_url(
            redis_url,
            max_connections=self.max_connections,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        self._client = redis.Redis(connection_pool=self._pool)

        try:
            await self._client.ping()
        except redis.RedisError as e:
            logger.error("Redis unreachable", url=redis_url, error=str(e))
            await self.close()
            raise

        logger.info("Redis snapshot pool ready", max_connections=self.max_connections)

    async def get_client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis pool not initialized")
        return self._client

    async def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except redis.RedisError as e:
            logger.warning("Redis health check failed", error=str(e))
            return False

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None


redis_pool = RedisPool()
