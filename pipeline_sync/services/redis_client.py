"""
Redis client wrapper for shared state between worker processes.

This service provides Redis operations for:
- Build monitor snapshots using strings with a TTL
- Monitor tracking using a sorted set scored by update time
- Distributed per-identity locks

Includes connection pooling and retry logic for resilience.
"""

import json
import logging
import asyncio
import time
from typing import Optional, List
from contextlib import asynccontextmanager
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.asyncio.lock import Lock
from redis.exceptions import RedisError, ConnectionError, TimeoutError

from pipeline_sync.models.build import MonitorInfo


logger = logging.getLogger(__name__)


class RedisConnectionError(Exception):
    """Raised when Redis connection fails after retries."""
    pass


class RedisClient:
    """
    Redis client wrapper with connection pooling and retry logic.

    Provides methods for:
    - Monitor snapshot storage (string operations with expiry)
    - Monitor index (sorted set operations)
    - Identity locks (redis.asyncio Lock)
    """

    # Redis key prefixes
    MONITOR_SNAPSHOT_PREFIX = "monitor:{tracking_name}:snapshot"
    MONITOR_INDEX_KEY = "monitors"
    IDENTITY_LOCK_PREFIX = "identity:{name}:lock"

    def __init__(
        self,
        redis_url: str,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        connection_timeout: int = 5,
        snapshot_ttl_seconds: int = 86400,
        lock_timeout_seconds: float = 60.0
    ):
        """
        Initialize Redis client.

        Args:
            redis_url: Redis connection URL
            max_retries: Maximum number of retry attempts for transient errors
            retry_delay: Base delay between retries (exponential backoff)
            connection_timeout: Connection timeout in seconds
            snapshot_ttl_seconds: Expiry of monitor snapshots
            lock_timeout_seconds: Auto-release time of identity locks
        """
        self._redis_url = redis_url
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._connection_timeout = connection_timeout
        self._snapshot_ttl = snapshot_ttl_seconds
        self._lock_timeout = lock_timeout_seconds

    async def initialize(self) -> None:
        """
        Initialize Redis connection pool.

        Should be called during application startup.

        Raises:
            RedisConnectionError: If connection fails
        """
        try:
            self._pool = ConnectionPool.from_url(
                self._redis_url,
                max_connections=10,
                decode_responses=True,
                socket_timeout=self._connection_timeout,
                socket_connect_timeout=self._connection_timeout
            )

            self._client = redis.Redis(connection_pool=self._pool)

            await self._client.ping()

            logger.info("Redis connection pool initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize Redis connection pool: {e}")
            raise RedisConnectionError(f"Failed to connect to Redis: {e}")

    async def close(self) -> None:
        """
        Close Redis connection pool.

        Should be called during application shutdown.
        """
        if self._client:
            await self._client.aclose()

        if self._pool:
            await self._pool.disconnect()

        logger.info("Redis connection pool closed")

    @asynccontextmanager
    async def _get_client(self):
        """
        Get Redis client with connection check.

        Yields:
            redis.Redis: Redis client instance

        Raises:
            RuntimeError: If client not initialized
        """
        if not self._client:
            raise RuntimeError("Redis client not initialized. Call initialize() first.")

        yield self._client

    async def _retry_operation(self, operation, *args, **kwargs):
        """
        Execute Redis operation with retry logic.

        Args:
            operation: Async function to execute
            *args: Positional arguments for operation
            **kwargs: Keyword arguments for operation

        Returns:
            Operation result

        Raises:
            RedisConnectionError: If operation fails after all retries
        """
        last_error = None

        for attempt in range(self._max_retries):
            try:
                return await operation(*args, **kwargs)

            except (ConnectionError, TimeoutError) as e:
                last_error = e
                if attempt < self._max_retries - 1:
                    delay = self._retry_delay * (2 ** attempt)
                    logger.warning(
                        f"Redis operation failed (attempt {attempt + 1}/{self._max_retries}), "
                        f"retrying in {delay}s: {e}"
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"Redis operation failed after {self._max_retries} attempts: {e}")

            except RedisError as e:
                # Non-transient errors, don't retry
                logger.error(f"Redis operation failed with non-transient error: {e}")
                raise

        raise RedisConnectionError(f"Redis operation failed after {self._max_retries} retries: {last_error}")

    # ========== Monitor Snapshot Operations (String + Sorted Set) ==========

    def _snapshot_key(self, tracking_name: str) -> str:
        """Get Redis key for a monitor snapshot."""
        return self.MONITOR_SNAPSHOT_PREFIX.format(tracking_name=tracking_name)

    async def save_monitor_snapshot(self, info: MonitorInfo) -> None:
        """
        Save a monitor snapshot and index it.

        Args:
            info: Snapshot to save

        Raises:
            RedisConnectionError: If operation fails after retries
        """
        async def _save():
            async with self._get_client() as client:
                key = self._snapshot_key(info.tracking_name)
                await client.set(key, info.model_dump_json(), ex=self._snapshot_ttl)
                await client.zadd(self.MONITOR_INDEX_KEY, {info.tracking_name: time.time()})
                logger.debug(f"Saved monitor snapshot for {info.tracking_name}")

        await self._retry_operation(_save)

    async def get_monitor_snapshot(self, tracking_name: str) -> Optional[MonitorInfo]:
        """
        Retrieve a monitor snapshot.

        Args:
            tracking_name: Tracking identity of the monitor

        Returns:
            MonitorInfo if found and not expired, None otherwise

        Raises:
            RedisConnectionError: If operation fails after retries
        """
        async def _get():
            async with self._get_client() as client:
                data = await client.get(self._snapshot_key(tracking_name))
                if not data:
                    return None
                return MonitorInfo(**json.loads(data))

        return await self._retry_operation(_get)

    async def list_monitor_snapshots(self) -> List[MonitorInfo]:
        """
        List all unexpired monitor snapshots, most recently updated first.

        Index entries whose snapshot has expired are pruned.

        Returns:
            List of MonitorInfo

        Raises:
            RedisConnectionError: If operation fails after retries
        """
        async def _list():
            async with self._get_client() as client:
                names = await client.zrevrange(self.MONITOR_INDEX_KEY, 0, -1)
                snapshots = []
                expired = []
                for name in names:
                    data = await client.get(self._snapshot_key(name))
                    if data:
                        snapshots.append(MonitorInfo(**json.loads(data)))
                    else:
                        expired.append(name)
                if expired:
                    await client.zrem(self.MONITOR_INDEX_KEY, *expired)
                return snapshots

        return await self._retry_operation(_list)

    # ========== Identity Lock Operations ==========

    def identity_lock(self, name: str) -> Lock:
        """
        Build a distributed lock for one tracking identity.

        Args:
            name: Tracking identity name

        Returns:
            redis.asyncio Lock usable as an async context manager

        Raises:
            RuntimeError: If client not initialized
        """
        if not self._client:
            raise RuntimeError("Redis client not initialized. Call initialize() first.")

        return self._client.lock(
            self.IDENTITY_LOCK_PREFIX.format(name=name),
            timeout=self._lock_timeout,
            blocking_timeout=self._lock_timeout
        )

    # ========== Utility Methods ==========

    async def ping(self) -> bool:
        """
        Test Redis connection.

        Returns:
            True if connection is healthy

        Raises:
            RedisConnectionError: If ping fails
        """
        async def _ping():
            async with self._get_client() as client:
                return await client.ping()

        return await self._retry_operation(_ping)
