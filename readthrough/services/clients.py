"""
Process-wide Redis clients for the cache and lock stores.

Build one ``CacheClients`` at startup, connect it, and pass it (or the
coordinator from ``build_coordinator``) down to request handlers. Nothing in
this package looks clients up globally.
"""

from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as aioredis

from readthrough.config import Settings, settings as default_settings
from readthrough.services.read_through import BatchedReadThrough, MissPredicate, default_miss_predicate
from readthrough.services.refresh_ahead import RefreshAheadCoordinator
from readthrough.services.stores import STORE_ERRORS, RedisCacheStore, RedisLockStore
from readthrough.utils.logging import get_logger

logger = get_logger(__name__)


def create_redis_client(url: str, settings: Settings = default_settings) -> aioredis.Redis:
    """Create a Redis client on a bounded, blocking connection pool.

    No connection is opened until the first command.
    """
    pool = aioredis.BlockingConnectionPool.from_url(
        url,
        max_connections=settings.redis_pool_size,
        timeout=settings.redis_pool_timeout,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
        decode_responses=settings.redis_decode_responses,
    )
    return aioredis.Redis(connection_pool=pool)


def _redacted(url: str) -> str:
    return url.split("@")[-1]


@dataclass
class CacheClients:
    """Holds the cache-store and lock-store clients for the process."""

    settings: Settings = field(default_factory=lambda: default_settings)
    cache: Optional[aioredis.Redis] = None
    lock: Optional[aioredis.Redis] = None

    async def connect(self) -> None:
        """Create both clients and verify they respond.

        Clients from an earlier connect are closed first. If either ping
        fails, every client created here is closed before the error propagates.
        """
        if self.cache is not None or self.lock is not None:
            await self.close()

        self.lock = create_redis_client(self.settings.redis_url, self.settings)
        if self.settings.shares_redis:
            self.cache = self.lock
        else:
            self.cache = create_redis_client(self.settings.effective_cache_redis_url, self.settings)

        try:
            await self.lock.ping()
            if self.cache is not self.lock:
                await self.cache.ping()
        except Exception as e:
            logger.warning("Cache clients failed to connect", error=str(e))
            await self.close()
            raise

        logger.info(
            "Cache clients connected",
            cache_url=_redacted(self.settings.effective_cache_redis_url),
            lock_url=_redacted(self.settings.redis_url),
            pool_size=self.settings.redis_pool_size,
        )

    async def close(self) -> None:
        """Close both clients."""
        clients = [c for c in (self.cache, self.lock) if c is not None]
        for client in {id(c): c for c in clients}.values():
            await client.aclose()
        self.cache = None
        self.lock = None
        logger.info("Cache clients closed")

    async def health_check(self) -> dict:
        """Return health status for each store."""
        return {
            "cache": await self._ping(self.cache),
            "lock": await self._ping(self.lock),
        }

    @staticmethod
    async def _ping(client: Optional[aioredis.Redis]) -> dict:
        if client is None:
            return {"status": "unavailable", "reason": "not connected"}
        try:
            await client.ping()
            return {"status": "healthy"}
        except STORE_ERRORS as e:
            return {"status": "unhealthy", "reason": str(e)}


def build_coordinator(
    clients: CacheClients,
    miss_predicate: MissPredicate = default_miss_predicate,
) -> RefreshAheadCoordinator:
    """Wire stores, accessor and coordinator on top of connected clients."""
    if clients.cache is None or clients.lock is None:
        raise RuntimeError("CacheClients.connect() must be awaited before building a coordinator")

    accessor = BatchedReadThrough(
        RedisCacheStore(clients.cache),
        miss_predicate=miss_predicate,
        default_expiry=clients.settings.default_expiry_seconds,
    )
    lock_store = RedisLockStore(clients.lock, flag=clients.settings.refresh_lock_flag)
    return RefreshAheadCoordinator(accessor, lock_store)
