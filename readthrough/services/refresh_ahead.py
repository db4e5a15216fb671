"""
Refresh-ahead coordination on top of the read-through accessor.

When many processes read the same keys close to expiry, they all miss at once
and recompute together. Instead, every call first tries to create a refresh
key with ``SET NX EX refresh_interval``. The one caller that creates it
recomputes every requested key and extends the cache; everyone else does an
ordinary read-through until the refresh key expires.

Keep ``refresh_interval`` shorter than ``expiry`` (e.g. cache for 90s, refresh
every 30s) so values are replaced before readers can miss them.
"""

from typing import Iterable, Optional

from readthrough.services.read_through import (
    BatchedReadThrough,
    ComputeFn,
    Duration,
    ResultMap,
    run_compute,
    ttl_seconds,
    unique_keys,
)
from readthrough.services.stores import LockStore
from readthrough.utils.logging import get_logger, log_context

logger = get_logger(__name__)


class RefreshAheadCoordinator:
    """Elects one refresher per window; defers everyone else to read-through."""

    def __init__(self, accessor: BatchedReadThrough, lock_store: LockStore):
        self.accessor = accessor
        self.lock_store = lock_store

    async def fetch_with_refresh(
        self,
        refresh_key: str,
        refresh_interval: Duration,
        keys: Iterable[str],
        expiry: Optional[Duration] = None,
        compute: Optional[ComputeFn] = None,
    ) -> ResultMap:
        """
        Fetch keys, recomputing all of them if this caller wins the refresh.

        Args:
            refresh_key: Key used purely as the refresh lock
            refresh_interval: Lock TTL; at most one refresh per interval
            keys: Cache keys to resolve
            expiry: TTL for written values; None uses the accessor default
            compute: ``compute(keys, batch)``, sync or async

        Returns:
            ResultMap of resolved values
        """
        requested = unique_keys(keys)
        if not requested:
            return ResultMap()

        interval = ttl_seconds(refresh_interval, "refresh_interval")
        ttl = self.accessor.resolve_expiry(expiry)

        with log_context(refresh_key=refresh_key):
            if compute is not None and await self._try_acquire(refresh_key, interval):
                logger.debug("Refresh elected", keys=len(requested), interval=interval)
                batch = await run_compute(compute, requested)
                result = ResultMap()
                await self.accessor.persist(batch.items(), ttl, result)
                return result

            logger.debug("Refresh deferred to read-through", keys=len(requested))
            return await self.accessor.fetch_batch(requested, ttl, compute)

    async def _try_acquire(self, refresh_key: str, interval: int) -> bool:
        """Attempt the refresh lock; any failure counts as not acquired."""
        try:
            return await self.lock_store.set_if_not_exists(refresh_key, interval)
        except Exception as e:
            logger.warning("Could not check refresh lock", error=str(e))
            return False
