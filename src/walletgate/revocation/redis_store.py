"""Redis-backed revocation store.

Learn: one key per revoked token id — walletgate:revoked:{token_id} —
written with SET NX EX so the write is atomic and self-expiring. Every
call goes through call_with_timeout: a slow or unreachable Redis turns
into ServiceUnavailableError (503) after one retry, never a hung request.

The connection pool is process-global and owned by the app lifespan
(init_redis at startup, close_redis at shutdown).
"""

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from walletgate.config import settings
from walletgate.resilience import call_with_timeout
from walletgate.revocation.store import RevocationStore

KEY_PREFIX = "walletgate:revoked:"

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis(url: Optional[str] = None) -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    _redis = aioredis.from_url(
        url or settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.store_timeout_seconds,
        socket_connect_timeout=settings.store_timeout_seconds,
    )
    # Verify connection
    await _redis.ping()
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


class RedisRevocationStore(RevocationStore):
    """RevocationStore on a redis.asyncio client."""

    def __init__(
        self,
        client: aioredis.Redis,
        timeout: float = 2.0,
        backoff: float = 0.05,
    ):
        self._client = client
        self._timeout = timeout
        self._backoff = backoff

    async def mark(self, token_id: str, ttl_seconds: int) -> bool:
        key = f"{KEY_PREFIX}{token_id}"
        created = await self._call(
            lambda: self._client.set(key, "1", ex=max(1, int(ttl_seconds)), nx=True)
        )
        return bool(created)

    async def is_marked(self, token_id: str) -> bool:
        key = f"{KEY_PREFIX}{token_id}"
        count = await self._call(lambda: self._client.exists(key))
        return count > 0

    async def _call(self, operation):
        return await call_with_timeout(
            operation,
            store="redis",
            timeout=self._timeout,
            backoff=self._backoff,
            transient=(RedisConnectionError, RedisTimeoutError),
        )
