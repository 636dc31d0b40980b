"""Redis snapshots of conversation contexts"""

from typing import Optional

import redis.asyncio as redis
import structlog

from .config import settings
from .models import IntentContext

logger = structlog.get_logger(__name__)


class RedisContextPersistence:
    """Stores IntentContext JSON under {prefix}context:{session_id} with a TTL"""

    def __init__(self, redis_client: redis.Redis, ttl_seconds: Optional[int] = None, prefix: Optional[str] = None):
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.session_timeout
        self.prefix = prefix if prefix is not None else settings.redis_key_prefix

    def key(self, session_id: str) -> str:
        return f"{self.prefix}context:{session_id}"

    async def save(self, context: IntentContext):
        """Write a snapshot; failures are logged, the in-memory context stays authoritative"""
        try:
            await self.redis_client.setex(self.key(context.session_id), self.ttl_seconds, context.to_json())
        except Exception as e:
            logger.error("Context snapshot failed", session_id=context.session_id, error=str(e))

    async def load(self, session_id: str) -> Optional[IntentContext]:
        try:
            data = await self.redis_client.get(self.key(session_id))
        except Exception as e:
            logger.error("Context snapshot load failed", session_id=session_id, error=str(e))
            return None

        if not data:
            return None

        try:
            return IntentContext.from_json(data)
        except ValueError as e:
            logger.warning("Discarding unreadable context snapshot", session_id=session_id, error=str(e))
            return None

    async def delete(self, session_id: str):
        try:
            await self.redis_client.delete(self.key(session_id))
        except Exception as e:
            logger.error("Context snapshot delete failed", session_id=session_id, error=str(e))
