"""
Redis connection backing the bookmark list cache.

Redis is an accelerator here, never a source of truth: when it is disabled,
unreachable, or fails mid-call, every operation returns a fallback value and
the caller carries on against the database.
"""
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RedisClient:
    """Pooled async Redis client whose operations never raise RedisError."""

    def __init__(self, url: str, enabled: bool = True, pool_size: int = 20) -> None:
        self.url = url
        self.enabled = enabled
        self.pool_size = pool_size
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None

    @property
    def is_connected(self) -> bool:
        """True once a ping has succeeded and until close()."""
        return self._client is not None

    async def connect(self) -> None:
        """Open the pool; stay disconnected (and log) if Redis does not answer."""
        if not self.enabled:
            logger.info("redis_disabled")
            return
        pool = ConnectionPool.from_url(self.url, max_connections=self.pool_size)
        client = Redis(connection_pool=pool)
        try:
            await client.ping()
        except RedisError as e:
            logger.warning("redis_connect_failed: error=%s", e)
            return
        self._pool, self._client = pool, client
        logger.info("redis_connected: max_connections=%s", self.pool_size)

    async def close(self) -> None:
        """Close the client and its pool."""
        if self._client is None:
            return
        client, pool = self._client, self._pool
        self._client = self._pool = None
        await client.aclose()
        if pool is not None:
            await pool.disconnect()
        logger.info("redis_closed")

    async def _run(self, op: str, call: Callable[[Redis], Awaitable[T]], fallback: T) -> T:
        if self._client is None:
            return fallback
        try:
            return await call(self._client)
        except RedisError as e:
            logger.warning("redis_%s_failed: %s", op, e)
            return fallback

    async def ping(self) -> bool:
        """Check connectivity."""
        return bool(await self._run("ping", lambda r: r.ping(), False))

    async def get(self, key: str) -> bytes | None:
        """Value at key, or None on a miss or when Redis is unavailable."""
        return await self._run("get", lambda r: r.get(key), None)

    async def setex(self, key: str, seconds: int, value: str | bytes) -> bool:
        """Store a value with a TTL; False when Redis is unavailable."""
        async def call(r: Redis) -> bool:
            await r.setex(key, seconds, value)
            return True

        return await self._run("setex", call, False)

    async def incr(self, key: str) -> int | None:
        """Atomically increment a counter key; None when Redis is unavailable."""
        return await self._run("incr", lambda r: r.incr(key), None)

    async def delete(self, *keys: str) -> bool:
        """Delete keys; False when Redis is unavailable."""
        async def call(r: Redis) -> bool:
            await r.delete(*keys)
            return True

        return await self._run("delete", call, False)


class _RedisState:
    """Holder for the process-wide client set up in the app lifespan."""

    client: RedisClient | None = None


_state = _RedisState()


def get_redis_client() -> RedisClient | None:
    """The process-wide client, or None outside the app lifespan."""
    return _state.client


def set_redis_client(client: RedisClient | None) -> None:
    """Install (or clear) the process-wide client."""
    _state.client = client
