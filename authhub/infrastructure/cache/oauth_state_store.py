"""Redis backed single-use OAuth state values."""

import logging

from authhub.core.auth.exceptions import FederationFailure
from authhub.core.auth.interfaces import OAuthStateStoreInterface
from .redis_client import RedisClient

logger = logging.getLogger(__name__)

KEY_PREFIX = "oauth_state:"


class RedisOAuthStateStore(OAuthStateStoreInterface):
    """
    Stores each issued OAuth state under its own key with a TTL.

    Consumption deletes the key; Redis DEL is atomic, so a state is accepted
    by at most one callback.
    """

    def __init__(self, redis_client: RedisClient, ttl_seconds: int = 600) -> None:
        self._redis = redis_client
        self._ttl_seconds = ttl_seconds

    async def save(self, state: str) -> None:
        """
        Remember a state value.

        Raises:
            FederationFailure: If the state could not be stored
        """
        if not await self._redis.set(f"{KEY_PREFIX}{state}", 1, ttl=self._ttl_seconds):
            logger.error("Could not store OAuth state")
            raise FederationFailure("OAuth state could not be stored")

    async def consume(self, state: str) -> bool:
        return await self._redis.delete(f"{KEY_PREFIX}{state}")
