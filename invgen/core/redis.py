from redis import asyncio as aioredis
from typing import Optional
import json
import logging
from invgen.core.config import settings

logger = logging.getLogger(__name__)

class RedisClient:
    """Thin cache wrapper. Every call is a no-op while disconnected."""

    def __init__(self):
        self.redis: Optional[aioredis.Redis] = None

    async def connect(self):
        """Connect to Redis."""
        self.redis = aioredis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True
        )
        await self.redis.ping()

    async def disconnect(self):
        """Disconnect from Redis."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    async def get_json(self, key: str) -> Optional[dict]:
        """Get and parse JSON value."""
        if not self.redis:
            return None
        value = await self.redis.get(key)
        if value:
            return json.loads(value)
        return None

    async def set_json(self, key: str, value: dict, expire: Optional[int] = 3600) -> bool:
        """Set a JSON value in Redis."""
        if not self.redis:
            return False
        await self.redis.set(key, json.dumps(value, default=str), ex=expire)
        return True

    async def delete(self, key: str) -> bool:
        """Delete a key from Redis."""
        if not self.redis:
            return False
        await self.redis.delete(key)
        return True

    async def ping(self) -> bool:
        if not self.redis:
            return False
        try:
            return await self.redis.ping()
        except aioredis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

# Global Redis Client Instance
redis_client = RedisClient()
