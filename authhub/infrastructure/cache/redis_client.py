"""Redis client implementation."""

import json
import logging
from datetime import timedelta
from typing import Any, Optional, Union

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from authhub.settings import get_settings

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Async Redis client with JSON serialization.

    Operations never raise on connection problems; they log and return a
    neutral value instead, so callers decide how to degrade.
    """

    def __init__(self, redis_url: Optional[str] = None):
        """
        Initialize Redis client.

        Args:
            redis_url: Redis connection URL (defaults to settings)
        """
        self._redis: Optional[Redis] = None
        self._redis_url = redis_url or get_settings().redis_url

    async def connect(self) -> None:
        """Establish Redis connection pool."""
        if self._redis is None:
            self._redis = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=20,
                retry_on_timeout=True,
                socket_keepalive=True,
            )

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from Redis.

        Args:
            key: Cache key

        Returns:
            Decoded value, the raw string if it is not JSON, or None if not found
        """
        await self.connect()
        try:
            value = await self._redis.get(key)
        except RedisError as e:
            logger.warning(f"Redis GET {key} failed: {e}")
            return None
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[Union[int, timedelta]] = None,
    ) -> bool:
        """
        Set value in Redis.

        Args:
            key: Cache key
            value: JSON serializable value
            ttl: Time to live (seconds or timedelta)

        Returns:
            True if successful, False otherwise
        """
        await self.connect()
        try:
            serialized_value = json.dumps(value, default=str)

            if ttl:
                if isinstance(ttl, timedelta):
                    ttl = int(ttl.total_seconds())
                return bool(await self._redis.setex(key, ttl, serialized_value))
            return bool(await self._redis.set(key, serialized_value))
        except RedisError as e:
            logger.warning(f"Redis SET {key} failed: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """
        Delete key from Redis.

        Args:
            key: Cache key to delete

        Returns:
            True if this call removed the key, False if it was absent
        """
        await self.connect()
        try:
            return await self._redis.delete(key) > 0
        except RedisError as e:
            logger.warning(f"Redis DEL {key} failed: {e}")
            return False

    async def ping(self) -> bool:
        """
        Ping Redis server to check connectivity.

        Returns:
            True if Redis is responsive, False otherwise
        """
        await self.connect()
        try:
            return await self._redis.ping() is True
        except RedisError:
            return False


_redis_client: Optional[RedisClient] = None


def get_redis_client() -> RedisClient:
    """
    Get global Redis client instance.

    Returns:
        RedisClient: Global Redis client
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient()
    return _redis_client


async def close_redis_connection():
    """Close global Redis connection."""
    global _redis_client
    if _redis_client:
        await _redis_client.disconnect()
        _redis_client = None
