"""
Batched read-through access to the remote cache.

Given a set of keys, one bulk read splits them into hits and misses. Hits are
returned and re-written with the same expiry, so reading a value extends its
life. All misses go to a single compute callback, which reports results
through ``WriteBatch.write``; whatever it writes is persisted and returned.

Example::

    async def load_profiles(missing, batch):
        for user_id, blob in await origin.profiles(missing):
            batch.write(user_id, blob)

    values = await accessor.fetch_batch(["u:1", "u:2"], 300, load_profiles)
"""

import inspect
import math
from datetime import timedelta
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from readthrough.config import DEFAULT_EXPIRY_SECONDS
from readthrough.services.stores import CacheStore, CacheValue
from readthrough.utils.logging import get_logger

logger = get_logger(__name__)

Duration = Union[int, float, timedelta]
MissPredicate = Callable[[CacheValue, str], bool]


class WriteBatch:
    """Values produced by one compute callback invocation."""

    __slots__ = ("_values",)

    def __init__(self):
        self._values: dict[str, CacheValue] = {}

    def write(self, key: str, value: CacheValue) -> None:
        """Record a computed value; a later write to the same key wins."""
        if value is None:
            raise TypeError(f"Cannot cache None for {key!r}; leave the key unwritten instead")
        self._values[key] = value

    def items(self):
        return self._values.items()

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values


ComputeFn = Callable[[frozenset, WriteBatch], Optional[Awaitable[Any]]]


class ResultMap(dict):
    """Resolved values by key.

    ``write_failures`` maps keys whose value could not be persisted to the
    error raised. Those values are still present in the map.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.write_failures: dict[str, Exception] = {}


def default_miss_predicate(value: CacheValue, key: str) -> bool:
    """Only unset values are misses; empty payloads are valid."""
    return value is None


def sentinel_miss_predicate(*sentinels: CacheValue) -> MissPredicate:
    """Build a predicate that also treats the given payloads as misses.

    For backends that store "empty" and "never stored" the same way, e.g.
    ``sentinel_miss_predicate(b"", "")``. Sentinels are compared with
    ``==``, so they must match the payload type the store returns: a
    client without ``decode_responses`` returns bytes, and ``""`` never
    equals ``b""``.
    """
    markers = frozenset(sentinels)

    def predicate(value: CacheValue, key: str) -> bool:
        return value is None or value in markers

    return predicate


def ttl_seconds(duration: Duration, name: str = "expiry") -> int:
    """Convert a duration to whole seconds, rounding up."""
    if isinstance(duration, timedelta):
        seconds = duration.total_seconds()
    elif isinstance(duration, bool) or not isinstance(duration, (int, float)):
        raise TypeError(f"{name} must be seconds or a timedelta, got {type(duration).__name__}")
    else:
        seconds = duration
    if not seconds > 0:
        raise ValueError(f"{name} must be positive, got {duration!r}")
    return math.ceil(seconds)


def unique_keys(keys: Iterable[str]) -> list[str]:
    """De-duplicate keys, keeping first-seen order."""
    if isinstance(keys, (str, bytes)):
        raise TypeError("keys must be a collection of cache keys, not a single key")
    return list(dict.fromkeys(keys))


async def run_compute(compute: ComputeFn, keys: Iterable[str]) -> WriteBatch:
    """Invoke a sync or async compute callback once and return its batch."""
    batch = WriteBatch()
    outcome = compute(frozenset(keys), batch)
    if inspect.isawaitable(outcome):
        await outcome
    return batch


class BatchedReadThrough:
    """Read-through accessor over a remote cache store."""

    def __init__(
        self,
        cache_store: CacheStore,
        *,
        miss_predicate: MissPredicate = default_miss_predicate,
        default_expiry: Duration = DEFAULT_EXPIRY_SECONDS,
    ):
        self.cache_store = cache_store
        self.miss_predicate = miss_predicate
        self.default_expiry = ttl_seconds(default_expiry, "default_expiry")

    def resolve_expiry(self, expiry: Optional[Duration]) -> int:
        if expiry is None:
            return self.default_expiry
        return ttl_seconds(expiry)

    def is_miss(self, value: Optional[CacheValue], key: str) -> bool:
        return value is None or self.miss_predicate(value, key)

    async def fetch_batch(
        self,
        keys: Iterable[str],
        expiry: Optional[Duration] = None,
        compute: Optional[ComputeFn] = None,
    ) -> ResultMap:
        """
        Fetch keys from the cache, computing any misses in one callback.

        Args:
            keys: Cache keys to resolve (duplicates are ignored)
            expiry: TTL for values written back; None uses the default
            compute: ``compute(missing_keys, batch)``, sync or async

        Returns:
            ResultMap of every hit plus every key the callback wrote

        Raises:
            CacheStoreReadError: the bulk read failed
        """
        requested = unique_keys(keys)
        result = ResultMap()
        if not requested:
            return result

        ttl = self.resolve_expiry(expiry)
        cached = await self.cache_store.read_many(requested)

        hits = {}
        for key in requested:
            value = cached.get(key)
            if not self.is_miss(value, key):
                hits[key] = value
        await self.persist(hits.items(), ttl, result)

        missing = [key for key in requested if key not in hits]
        logger.debug(
            "Read-through batch",
            requested=len(requested),
            hits=len(hits),
            misses=len(missing),
        )

        if missing and compute is not None:
            batch = await run_compute(compute, missing)
            await self.persist(batch.items(), ttl, result)

        return result

    async def persist(self, values: Iterable[tuple[str, CacheValue]], ttl: int, result: ResultMap) -> None:
        """Write values to the cache and into ``result``.

        A failed write is logged and recorded in ``result.write_failures``;
        the value itself stays in the result.
        """
        for key, value in values:
            result[key] = value
            try:
                await self.cache_store.write_with_expiry(key, value, ttl)
            except Exception as e:
                logger.warning("Cache write-back failed", key=key, error=str(e))
                result.write_failures[key] = e
