"""
MediaShelf Async Redis Client Module

Optional read-through cache for the public video listing. Redis is not required
to serve requests: when it is absent or failing, every operation logs and
returns a neutral value, and callers fall back to MongoDB.

Usage:
    ```python
    from mediashelf.core.redis_client import CacheKeys, get_redis_client

    client = get_redis_client()
    if client:
        cached = await client.get_json(CacheKeys.VIDEO_LIST)
    ```
"""

import asyncio
import json
import logging

from typing import Any

import redis.asyncio as redis

from redis.exceptions import ConnectionError as RedisConnectionError, RedisError

from mediashelf.config import Settings, get_settings


logger = logging.getLogger(__name__)


class CacheKeys:
    """Cache key names shared by readers and invalidators."""

    VIDEO_LIST = "videos:list"
    VIDEO_LIST_GENERATION = "videos:list:generation"


class _RedisClientContainer:
    """Container for Redis client singleton to avoid global statements."""

    client: "RedisClient | None" = None


_container = _RedisClientContainer()


class RedisClient:
    """
    Async Redis client wrapper with JSON helpers.

    Attributes:
        settings: Application settings containing Redis configuration
        _client: Underlying redis async client instance
        _connected: Connection state flag
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._client: redis.Redis | None = None
        self._connected: bool = False

        logger.info("RedisClient initialized with URL: %s", self._mask_url(self.settings.redis_url))

    @staticmethod
    def _mask_url(url: str) -> str:
        """Hide credentials in a Redis URL for logging."""
        if "@" in url:
            return f"redis://***@{url.split('@')[-1]}"
        return url

    async def connect(self) -> bool:
        """
        Connect with up to three attempts and exponential backoff.

        Returns:
            bool: True if connection successful, False otherwise.
        """
        max_retries = 3
        base_delay = 1.0

        for attempt in range(1, max_retries + 1):
            try:
                logger.info("Attempting Redis connection (attempt %d/%d)", attempt, max_retries)

                self._client = redis.from_url(  # type: ignore[no-untyped-call]
                    self.settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=5.0,
                    socket_timeout=5.0,
                )
                await self._client.ping()  # type: ignore[misc]
                self._connected = True

                logger.info("Successfully connected to Redis")
                return True

            except (RedisConnectionError, RedisError) as e:
                logger.warning(
                    "Redis connection failed (attempt %d/%d): %s", attempt, max_retries, str(e)
                )
                if attempt < max_retries:
                    await asyncio.sleep(base_delay * (2 ** (attempt - 1)))

        logger.error("Failed to connect to Redis after %d attempts", max_retries)
        self._connected = False
        return False

    async def close(self) -> None:
        if self._client:
            try:
                await self._client.aclose()
                logger.info("Redis connection closed")
            except RedisError:
                logger.exception("Error closing Redis connection")
            finally:
                self._client = None
                self._connected = False

    async def is_connected(self) -> bool:
        if not self._connected or not self._client:
            return False
        try:
            return bool(await self._client.ping())  # type: ignore[misc]
        except RedisError as e:
            logger.warning("Redis ping failed: %s", str(e))
            self._connected = False
            return False

    async def get_json(self, key: str) -> Any | None:
        """
        Get and deserialize a JSON value.

        Returns:
            The decoded value, or None if missing, undecodable or Redis failed.
        """
        if not self._client:
            return None

        try:
            value = await self._client.get(key)
            if value is None:
                return None
            return json.loads(value)
        except json.JSONDecodeError:
            logger.exception("Failed to decode JSON for key '%s'", key)
            return None
        except RedisError:
            logger.exception("Failed to get JSON key '%s'", key)
            return None

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Serialize ``value`` as JSON and store it with an optional TTL in seconds."""
        if not self._client:
            return False

        try:
            json_value = json.dumps(value, default=str)
            if ttl is not None and ttl > 0:
                await self._client.setex(key, ttl, json_value)
            else:
                await self._client.set(key, json_value)
            logger.debug("Set JSON key '%s' with TTL=%s", key, ttl)
            return True
        except (TypeError, ValueError):
            logger.exception("Failed to serialize JSON for key '%s'", key)
            return False
        except RedisError:
            logger.exception("Failed to set JSON key '%s'", key)
            return False

    async def get_int(self, key: str) -> int | None:
        """
        Read an integer counter.

        Returns:
            The counter value, 0 if the key is missing, or None if Redis failed.
        """
        if not self._client:
            return None

        try:
            value = await self._client.get(key)
            return int(value) if value is not None else 0
        except (TypeError, ValueError):
            logger.exception("Key '%s' does not hold an integer", key)
            return None
        except RedisError:
            logger.exception("Failed to get counter '%s'", key)
            return None

    async def incr(self, key: str) -> int | None:
        """Atomically increment a counter; None if Redis failed."""
        if not self._client:
            return None

        try:
            return int(await self._client.incr(key))
        except RedisError:
            logger.exception("Failed to increment counter '%s'", key)
            return None

    async def delete(self, key: str) -> bool:
        """Delete ``key``; True if something was removed."""
        if not self._client:
            return False

        try:
            deleted = await self._client.delete(key) > 0
            if deleted:
                logger.debug("Deleted key '%s'", key)
            return deleted
        except RedisError:
            logger.exception("Failed to delete key '%s'", key)
            return False


async def init_redis(settings: Settings | None = None) -> RedisClient:
    """
    Initialize and connect the global Redis client singleton.

    Raises:
        RuntimeError: If Redis connection fails after retry attempts.
    """
    if _container.client is not None:
        logger.warning("Redis client already initialized")
        return _container.client

    client = RedisClient(settings)
    if not await client.connect():
        raise RuntimeError("Failed to connect to Redis after multiple attempts")

    _container.client = client
    logger.info("Redis client initialized successfully")
    return client


async def close_redis() -> None:
    """Close the global Redis client. Safe to call multiple times."""
    if _container.client is not None:
        await _container.client.close()
        _container.client = None
    else:
        logger.debug("Redis client already closed or not initialized")


def get_redis_client() -> RedisClient | None:
    """Return the Redis client, or None when caching is unavailable."""
    return _container.client
