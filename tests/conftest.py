"""
Pytest configuration and fixtures.
"""

from typing import Optional, Sequence

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from readthrough.errors import CacheStoreWriteError
from readthrough.services.read_through import BatchedReadThrough
from readthrough.services.refresh_ahead import RefreshAheadCoordinator
from readthrough.services.stores import RedisCacheStore, RedisLockStore


class RecordingCompute:
    """Compute callback that resolves keys from a fixed origin and records calls."""

    def __init__(self, origin: dict):
        self.origin = origin
        self.calls: list[frozenset] = []

    def __call__(self, keys, batch):
        self.calls.append(keys)
        for key in keys:
            if key in self.origin:
                batch.write(key, self.origin[key])


class CountingCacheStore:
    """Wraps a cache store, counting calls and failing writes for chosen keys."""

    def __init__(self, inner, fail_writes: Sequence[str] = ()):
        self.inner = inner
        self.fail_writes = set(fail_writes)
        self.reads: list[list[str]] = []
        self.writes: list[tuple[str, object, int]] = []

    async def read_many(self, keys):
        self.reads.append(list(keys))
        return await self.inner.read_many(keys)

    async def write_with_expiry(self, key, value, ttl_seconds):
        self.writes.append((key, value, ttl_seconds))
        if key in self.fail_writes:
            raise CacheStoreWriteError(f"SET {key} failed: connection reset", [key])
        await self.inner.write_with_expiry(key, value, ttl_seconds)


class UnreachableLockStore:
    """Lock store whose backend is down."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error or RedisConnectionError("Connection refused")
        self.attempts = 0

    async def set_if_not_exists(self, key, ttl_seconds):
        self.attempts += 1
        raise self.error


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    """Provide an isolated fake Redis server."""
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(redis_server) -> fakeredis.FakeAsyncRedis:
    """Provide an async client on the fake server."""
    return fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)


@pytest.fixture
def cache_store(redis_client) -> CountingCacheStore:
    return CountingCacheStore(RedisCacheStore(redis_client))


@pytest.fixture
def lock_store(redis_client) -> RedisLockStore:
    return RedisLockStore(redis_client)


@pytest.fixture
def accessor(cache_store) -> BatchedReadThrough:
    return BatchedReadThrough(cache_store, default_expiry=3600)


@pytest.fixture
def coordinator(accessor, lock_store) -> RefreshAheadCoordinator:
    return RefreshAheadCoordinator(accessor, lock_store)
