"""
Batched read-through cache access with refresh-ahead coordination.
"""

from readthrough.errors import (
    CacheStoreReadError,
    CacheStoreWriteError,
    LockStoreUnavailableError,
    ReadThroughError,
)
from readthrough.services.read_through import (
    BatchedReadThrough,
    ResultMap,
    WriteBatch,
    default_miss_predicate,
    sentinel_miss_predicate,
)
from readthrough.services.refresh_ahead import RefreshAheadCoordinator
from readthrough.services.stores import CacheStore, LockStore, RedisCacheStore, RedisLockStore

__all__ = [
    "BatchedReadThrough",
    "CacheStore",
    "CacheStoreReadError",
    "CacheStoreWriteError",
    "LockStore",
    "LockStoreUnavailableError",
    "ReadThroughError",
    "RedisCacheStore",
    "RedisLockStore",
    "RefreshAheadCoordinator",
    "ResultMap",
    "WriteBatch",
    "default_miss_predicate",
    "sentinel_miss_predicate",
]
