"""
Remote store interfaces used by the read-through layer, with Redis backends.

The cache store holds values with an expiry; the lock store only needs an
atomic set-if-not-exists with a TTL. Both may point at the same Redis.
"""

from typing import Optional, Protocol, Sequence, Union

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from readthrough.errors import (
    CacheStoreReadError,
    CacheStoreWriteError,
    LockStoreUnavailableError,
)

CacheValue = Union[str, bytes]

# Transport-level failures: redis-py raises RedisError subclasses, but a
# dropped socket can still surface as a bare OSError.
STORE_ERRORS = (RedisError, OSError)


class CacheStore(Protocol):
    """Remote cache: bulk read plus single-key write with expiry."""

    async def read_many(self, keys: Sequence[str]) -> dict[str, Optional[CacheValue]]:
        ...

    async def write_with_expiry(self, key: str, value: CacheValue, ttl_seconds: int) -> None:
        ...


class LockStore(Protocol):
    """Lock store exposing set-if-not-exists with a TTL."""

    async def set_if_not_exists(self, key: str, ttl_seconds: int) -> bool:
        ...


class RedisCacheStore:
    """Cache store backed by a pooled async Redis client."""

    def __init__(self, redis: aioredis.Redis):
        self._redis = redis

    async def read_many(self, keys: Sequence[str]) -> dict[str, Optional[CacheValue]]:
        """Read all keys in one MGET round trip. Absent keys map to None."""
        keys = list(keys)
        if not keys:
            return {}
        try:
            values = await self._redis.mget(keys)
        except STORE_ERRORS as e:
            raise CacheStoreReadError(f"MGET of {len(keys)} keys failed: {e}", keys) from e
        return dict(zip(keys, values))

    async def write_with_expiry(self, key: str, value: CacheValue, ttl_seconds: int) -> None:
        try:
            await self._redis.set(key, value, ex=ttl_seconds)
        except STORE_ERRORS as e:
            raise CacheStoreWriteError(f"SET {key} failed: {e}", [key]) from e


class RedisLockStore:
    """Lock store using ``SET key flag NX EX ttl``."""

    def __init__(self, redis: aioredis.Redis, flag: str = "1"):
        self._redis = redis
        self._flag = flag

    async def set_if_not_exists(self, key: str, ttl_seconds: int) -> bool:
        """Return True only if this call created the key."""
        try:
            created = await self._redis.set(key, self._flag, nx=True, ex=ttl_seconds)
        except STORE_ERRORS as e:
            raise LockStoreUnavailableError(f"SET NX {key} failed: {e}", [key]) from e
        # redis-py returns None when NX blocks the write
        return bool(created)
