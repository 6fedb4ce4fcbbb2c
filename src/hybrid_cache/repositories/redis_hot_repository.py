"""Redis implementation of HotStore.

The hot tier keeps recently answered requests under ``<prefix><normalized key>``
with a TTL. Its live key set is scanned for lexical near-duplicates, so it is
meant to stay small.

The adapter never raises on Redis failures: reads degrade to None and writes
are skipped. A reconnection is attempted on the next call, one at a time.
"""

import asyncio
import logging
from collections.abc import Callable

import redis.asyncio as redis
from redis.exceptions import RedisError

from hybrid_cache.config import get_redis_client, settings
from hybrid_cache.utils.text import best_lexical_match

logger = logging.getLogger(__name__)


class RedisHotRepository:
    """Redis implementation of the HotStore protocol.

    Connection state is tracked with two flags. ``connected`` is cleared by
    any failed command; ``connecting`` marks an attempt in flight so that
    concurrent callers do not start duplicate reconnections. Error logging
    stops after ``error_log_limit`` consecutive errors and resumes once a
    connection succeeds again.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
        ttl: int | None = None,
        error_log_limit: int | None = None,
        client_factory: Callable[[], redis.Redis] | None = None,
    ) -> None:
        """Initialize the Redis hot tier repository.

        Args:
            redis_client: Redis client instance. If None, one is created on connect().
            key_prefix: Prefix for hot tier keys. Defaults to settings.
            ttl: Default time-to-live in seconds. Defaults to settings.
            error_log_limit: Consecutive errors logged before silencing.
            client_factory: Builds the client when none was given.
        """
        self._client = redis_client
        self._client_factory = client_factory or get_redis_client
        self._key_prefix = key_prefix if key_prefix is not None else settings.hot_tier_key_prefix
        self._ttl = ttl or settings.hot_tier_ttl
        self._error_log_limit = (
            error_log_limit if error_log_limit is not None else settings.hot_tier_error_log_limit
        )
        self._connected = False
        self._connecting = False
        self._error_count = 0

    @classmethod
    def create(
        cls,
        key_prefix: str | None = None,
        ttl: int | None = None,
    ) -> "RedisHotRepository":
        """Factory method to create RedisHotRepository with defaults.

        Args:
            key_prefix: Key prefix. If None, uses settings.
            ttl: Entry TTL in seconds. If None, uses settings.

        Returns:
            Configured, not yet connected RedisHotRepository
        """
        return cls(key_prefix=key_prefix, ttl=ttl)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def connecting(self) -> bool:
        return self._connecting

    async def connect(self) -> None:
        """Connect and ping. On failure the repository stays disconnected."""
        if self._connecting:
            return
        self._connecting = True
        try:
            if self._client is None:
                self._client = self._client_factory()
            await self._client.ping()
        except (RedisError, OSError) as e:
            self._connected = False
            self._log_error("Redis connection failed", e)
        else:
            self._connected = True
            self._error_count = 0
            logger.info("Connected to Redis hot tier")
        finally:
            self._connecting = False

    async def close(self) -> None:
        """Close the Redis client."""
        if self._client is not None:
            await self._client.aclose()
        self._connected = False

    async def _reconnect_if_needed(self) -> bool:
        """Try one reconnection if disconnected and none is in flight.

        Returns:
            True if the repository is usable now
        """
        if not self._connected and not self._connecting:
            logger.debug("Attempting to reconnect to Redis")
            await self.connect()
        return self._connected

    def _log_error(self, message: str, error: Exception) -> None:
        if self._error_count >= self._error_log_limit:
            return
        self._error_count += 1
        logger.error("%s: %s", message, error)
        if self._error_count == self._error_log_limit:
            logger.warning(
                "Reached max Redis error log limit (%d). Further errors will be silenced.",
                self._error_log_limit,
            )

    def _mark_failed(self, operation: str, error: Exception) -> None:
        self._connected = False
        self._log_error(f"Redis error in {operation}", error)

    async def get_exact(self, key: str) -> str | None:
        """Get the value stored under exactly this key.

        Args:
            key: Normalized key (without prefix)

        Returns:
            Stored value, or None if absent or Redis is unavailable
        """
        if not await self._reconnect_if_needed():
            return None
        try:
            return await self._client.get(f"{self._key_prefix}{key}")
        except (RedisError, OSError) as e:
            self._mark_failed("get_exact", e)
            return None

    async def get_fuzzy(self, key: str, min_similarity: float) -> str | None:
        """Find the value of the most similar live key.

        Args:
            key: Normalized probe key (without prefix)
            min_similarity: Minimum similarity (0-1) for a match

        Returns:
            Value of the best match at or above ``min_similarity``, or None
        """
        hit = await self.find_fuzzy(key, min_similarity)
        return hit[1] if hit else None

    async def find_fuzzy(self, key: str, min_similarity: float) -> tuple[str, str, float] | None:
        """Find the most similar live key and its value.

        Collects every key under the prefix, then scores them against ``key``
        with normalized edit distance in a worker thread.

        Returns:
            Tuple (matched key without prefix, value, similarity), or None
        """
        if not await self._reconnect_if_needed():
            return None
        try:
            stored_keys = [
                full_key[len(self._key_prefix):]
                async for full_key in self._client.scan_iter(match=f"{self._key_prefix}*")
            ]
        except (RedisError, OSError) as e:
            self._mark_failed("find_fuzzy", e)
            return None

        match = await asyncio.to_thread(best_lexical_match, key, stored_keys, min_similarity)
        if match is None:
            return None
        best_key, best_score = match
        try:
            value = await self._client.get(f"{self._key_prefix}{best_key}")
        except (RedisError, OSError) as e:
            self._mark_failed("find_fuzzy", e)
            return None

        # Expired between scan and get
        if value is None:
            return None
        logger.debug("Hot tier lexical match %r (similarity %.2f)", best_key, best_score)
        return best_key, value, best_score

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store a value under the prefixed key with a TTL.

        Args:
            key: Normalized key (without prefix)
            value: Value to store
            ttl_seconds: Time-to-live. Defaults to the repository TTL.
        """
        if not await self._reconnect_if_needed():
            return
        try:
            await self._client.set(f"{self._key_prefix}{key}", value, ex=ttl_seconds or self._ttl)
        except (RedisError, OSError) as e:
            self._mark_failed("set", e)

    async def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError):
            return False

    async def get_stats(self) -> dict:
        """Get hot tier statistics.

        Returns:
            Dictionary with stats
        """
        stats = {
            "connected": self._connected,
            "key_prefix": self._key_prefix,
            "ttl": self._ttl,
            "live_keys": None,
        }
        if not self._connected:
            return stats
        try:
            count = 0
            async for _ in self._client.scan_iter(match=f"{self._key_prefix}*"):
                count += 1
            stats["live_keys"] = count
        except (RedisError, OSError) as e:
            self._mark_failed("get_stats", e)
        return stats

    @property
    def client(self) -> redis.Redis | None:
        """Get the Redis client."""
        return self._client
