import asyncio
import json
from typing import Any, Awaitable, Iterable, Optional, TypeVar

from redis.asyncio import Redis, RedisError
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.core.config import Settings, get_settings
from app.core.errors import CacheUnavailableError

import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheLayer:
    """
    Fail-soft Redis cache adapter.

    Features:
    - Every remote call is bounded by ``cache_timeout_seconds``
    - Errors and timeouts degrade to a miss / failed write, never an exception
    - Connect with capped exponential backoff; a cache that never came up
      behaves as an always-empty cache
    - Automatic key namespacing
    """

    def __init__(self, settings: Settings | None = None, redis: Redis | None = None):
        self._settings = settings or get_settings()
        self._redis: Redis | None = redis
        self._connected = False
        self._initialized = False

        # Stats tracking
        self.stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "deletes": 0,
            "errors": 0,
        }

    @property
    def connected(self) -> bool:
        return self._connected

    def _build_client(self) -> Redis:
        settings = self._settings
        return Redis.from_url(
            settings.redis_dsn,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis_pool_size,
            socket_connect_timeout=settings.cache_connect_timeout_seconds,
            socket_timeout=settings.cache_timeout_seconds,
            socket_keepalive=True,
            health_check_interval=30,
            retry=Retry(
                ExponentialBackoff(
                    cap=settings.cache_backoff_cap_seconds,
                    base=settings.cache_backoff_base_seconds,
                ),
                retries=2,
            ),
            retry_on_error=[RedisConnectionError, RedisTimeoutError],
        )

    def _backoff(self, attempt: int) -> float:
        settings = self._settings
        return min(
            settings.cache_backoff_base_seconds * (2 ** (attempt - 1)),
            settings.cache_backoff_cap_seconds,
        )

    async def init_cache(self):
        """Connect to Redis, retrying with backoff; give up quietly."""
        if self._initialized:
            return
        self._initialized = True

        if self._redis is None:
            self._redis = self._build_client()

        attempts = max(self._settings.cache_connect_attempts, 1)
        for attempt in range(1, attempts + 1):
            try:
                await asyncio.wait_for(
                    self._redis.ping(),
                    timeout=self._settings.cache_connect_timeout_seconds,
                )
                self._connected = True
                logger.info("Redis connection established")
                return
            except (RedisError, asyncio.TimeoutError, OSError) as e:
                logger.warning(
                    f"Redis connection attempt {attempt}/{attempts} failed: {e}"
                )
                if attempt < attempts:
                    await asyncio.sleep(self._backoff(attempt))

        logger.error(
            f"Redis unavailable after {attempts} attempts, running without cache"
        )

    def _key(self, key: str) -> str:
        """Build namespaced cache key."""
        return f"{self._settings.cache_namespace}{key}"

    def _serialize(self, value: Any) -> str:
        """Serialize value for storage."""
        return json.dumps(value, default=str)

    def _deserialize(self, raw: str) -> Any:
        """Deserialize value from storage."""
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding non-JSON cache entry")
            return None

    async def _call(self, op: str, key: str, coro: Awaitable[T]) -> T:
        """Run one Redis command under the timeout; failures become CacheUnavailableError."""
        try:
            return await asyncio.wait_for(
                coro, timeout=self._settings.cache_timeout_seconds
            )
        except (RedisError, asyncio.TimeoutError, OSError) as e:
            self.stats["errors"] += 1
            raise CacheUnavailableError("cache", key, detail=f"{op} failed: {e!r}") from e

    async def _ready(self) -> bool:
        await self.init_cache()
        return self._connected

    async def get(self, key: str) -> Optional[Any]:
        """
        Retrieve a value.

        Returns:
            The deserialized value, or None on a miss, on error, or when
            Redis is unavailable
        """
        if not await self._ready():
            self.stats["misses"] += 1
            return None

        try:
            raw = await self._call("GET", key, self._redis.get(self._key(key)))
        except CacheUnavailableError as e:
            self.stats["misses"] += 1
            logger.error(f"Cache read skipped: {e}")
            return None

        if raw is None:
            self.stats["misses"] += 1
            logger.debug(f"Cache miss: {key}")
            return None

        self.stats["hits"] += 1
        logger.debug(f"Cache hit: {key}")
        return self._deserialize(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Store a value with a TTL.

        Args:
            key: Cache key (will be namespaced automatically)
            value: JSON-serializable value
            ttl: Seconds to live (uses ``cache_ttl_seconds`` if None)
        """
        if not await self._ready():
            return False

        ttl = ttl or self._settings.cache_ttl_seconds
        try:
            data = self._serialize(value)
            await self._call("SET", key, self._redis.set(self._key(key), data, ex=ttl))
        except (TypeError, ValueError) as e:
            logger.error(f"Serialization failed for {key}: {e}")
            return False
        except CacheUnavailableError as e:
            logger.error(f"Cache write skipped: {e}")
            return False

        self.stats["sets"] += 1
        logger.debug(f"Stored {key} (ttl={ttl})")
        return True

    async def delete(self, key: str) -> bool:
        if not await self._ready():
            return False

        try:
            await self._call("DEL", key, self._redis.delete(self._key(key)))
        except CacheUnavailableError as e:
            logger.error(f"Cache delete skipped: {e}")
            return False

        self.stats["deletes"] += 1
        logger.debug(f"Deleted {key}")
        return True

    async def delete_pattern(self, pattern: str) -> bool:
        """Delete all keys matching a glob pattern, SCAN batch by batch."""
        if not await self._ready():
            return False

        match = self._key(pattern)
        cursor = 0
        deleted_count = 0
        try:
            while True:
                cursor, keys = await self._call(
                    "SCAN", pattern, self._redis.scan(cursor, match=match, count=100)
                )
                if keys:
                    await self._call("DEL", pattern, self._redis.delete(*keys))
                    deleted_count += len(keys)
                if cursor == 0:
                    break
        except CacheUnavailableError as e:
            logger.error(f"Pattern delete incomplete after {deleted_count} keys: {e}")
            return False

        self.stats["deletes"] += deleted_count
        logger.debug(f"Pattern delete {pattern} removed {deleted_count} keys")
        return True

    async def exists(self, key: str) -> bool:
        if not await self._ready():
            return False

        try:
            found = await self._call("EXISTS", key, self._redis.exists(self._key(key)))
        except CacheUnavailableError as e:
            logger.error(f"Cache exists check skipped: {e}")
            return False
        return found == 1

    async def invalidate(
        self, keys: Iterable[str] = (), patterns: Iterable[str] = ()
    ) -> bool:
        """
        Delete every key, then every pattern, in order.

        Keeps going past individual failures; returns False if any step failed.
        """
        ok = True
        for key in keys:
            ok = await self.delete(key) and ok
        for pattern in patterns:
            ok = await self.delete_pattern(pattern) and ok
        return ok

    async def close(self):
        """Graceful shutdown of cache connections."""
        if self._redis is not None:
            try:
                await self._redis.aclose()
                logger.info("Redis connection closed")
            except (RedisError, OSError) as e:
                logger.error(f"Error closing Redis: {e}")
        self._connected = False

    def get_stats(self) -> dict:
        """Get cache statistics."""
        lookups = self.stats["hits"] + self.stats["misses"]
        return {
            **self.stats,
            "connected": self._connected,
            "hit_rate": self.stats["hits"] / lookups if lookups > 0 else 0,
        }
