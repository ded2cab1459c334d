"""Redis-based counter storage implementation."""

from typing import Optional, Tuple

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import WatchError

from ..config.settings import Settings
from ..core.exceptions import ConnectionError, DatabaseError
from .base import CounterStorage

COUNTER_TTL_SECONDS = 2 * 86400


class RedisCounterStorage(CounterStorage):
    """Rate-limit counters kept in one Redis hash per user and day."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.redis_url = settings.REDIS_URL
        self._redis: Optional[Redis] = None

    async def initialize(self) -> None:
        """Initialize Redis connection."""
        try:
            self._redis = redis.from_url(self.redis_url, decode_responses=True)
            await self._redis.ping()

            self.logger.info("Redis counter storage initialized", url=self.redis_url)

        except Exception as e:
            raise ConnectionError(f"Failed to connect to Redis: {e}", "redis")

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("Redis counter storage closed")

    @staticmethod
    def _key(user_id: str, day: str) -> str:
        return f"ratelimit:{user_id}:{day}"

    async def increment_if_below(
        self,
        user_id: str,
        feature: str,
        day: str,
        limit: int,
    ) -> Tuple[bool, int]:
        """Optimistic WATCH/MULTI transaction, retried when another client wins the race."""
        if not self._redis:
            raise ConnectionError("Redis not initialized", "redis")

        key = self._key(user_id, day)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(key)
                        current = int(await pipe.hget(key, feature) or 0)
                        if current >= limit:
                            await pipe.unwatch()
                            return False, current

                        pipe.multi()
                        pipe.hincrby(key, feature, 1)
                        pipe.expire(key, COUNTER_TTL_SECONDS)
                        await pipe.execute()
                        return True, current + 1
                    except WatchError:
                        self.logger.debug("Counter changed during transaction, retrying", key=key)
                        continue
        except ConnectionError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to increment counter in Redis: {e}", "increment")

    async def get_count(self, user_id: str, feature: str, day: str) -> int:
        if not self._redis:
            raise ConnectionError("Redis not initialized", "redis")

        try:
            value = await self._redis.hget(self._key(user_id, day), feature)
            return int(value or 0)
        except Exception as e:
            raise DatabaseError(f"Failed to read counter from Redis: {e}", "get")
