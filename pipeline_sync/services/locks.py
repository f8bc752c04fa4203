"""
Per-identity serialization of board reconciliation.

Two events for the same tracking identity must not interleave their
find-then-create sequence, or the board ends up with duplicate items.
Different identities never block each other.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from weakref import WeakValueDictionary

from redis.exceptions import LockError, RedisError

from pipeline_sync.services.redis_client import RedisClient

logger = logging.getLogger(__name__)


class IdentityLockError(Exception):
    """Raised when the distributed identity lock cannot be acquired."""
    pass


class IdentityLockManager:
    """
    Hands out one asyncio.Lock per identity name.

    Locks live in a weak-value map and disappear once no coroutine holds
    or waits on them. When a Redis client is configured, a Redis lock is
    taken as well so several worker processes are serialized too.
    """

    def __init__(self, redis_client: Optional[RedisClient] = None):
        self._locks: "WeakValueDictionary[str, asyncio.Lock]" = WeakValueDictionary()
        self._redis = redis_client

    def _local_lock(self, name: str) -> asyncio.Lock:
        lock = self._locks.get(name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[name] = lock
        return lock

    def active_count(self) -> int:
        """Number of identities with a live lock object."""
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, name: str) -> AsyncIterator[None]:
        """
        Hold the lock for an identity.

        Args:
            name: Tracking identity name

        Raises:
            IdentityLockError: If the Redis lock cannot be acquired
        """
        lock = self._local_lock(name)
        async with lock:
            if self._redis is None:
                yield
                return

            try:
                redis_lock = self._redis.identity_lock(name)
                acquired = await redis_lock.acquire()
            except (RedisError, RuntimeError) as e:
                raise IdentityLockError(f"Failed to acquire lock for {name}: {e}") from e
            if not acquired:
                raise IdentityLockError(f"Timed out acquiring lock for {name}")

            try:
                yield
            finally:
                try:
                    await redis_lock.release()
                except LockError as e:
                    # Lock expired while held; the timeout already released it
                    logger.warning(f"Identity lock for {name} expired before release: {e}")
