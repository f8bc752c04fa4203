"""
Registry of detached build monitor runs.

Runs are asyncio tasks keyed by tracking identity. A new trigger for an
identity replaces the registry entry; the older run keeps going until CI
finishes but no longer publishes snapshots.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

from redis.exceptions import RedisError

from pipeline_sync.models.build import MonitorInfo
from pipeline_sync.models.events import TrackingIdentity
from pipeline_sync.services.build_monitor import BuildMonitor
from pipeline_sync.services.redis_client import RedisClient, RedisConnectionError
from pipeline_sync.utils.logging import get_logger

logger = get_logger(__name__)


class MonitorRegistry:
    """Starts build monitors and keeps their status snapshots."""

    def __init__(
        self,
        monitor: BuildMonitor,
        redis_client: Optional[RedisClient] = None,
        retention_seconds: float = 86400
    ):
        """
        Initialize the registry.

        Args:
            monitor: Build monitor executing the runs
            redis_client: Optional Redis client for cross-worker snapshots
            retention_seconds: How long snapshots of finished runs stay in memory
        """
        self._monitor = monitor
        self._redis = redis_client
        self._retention = timedelta(seconds=retention_seconds)
        self._tasks: Dict[str, asyncio.Task] = {}
        self._snapshots: Dict[str, MonitorInfo] = {}
        self._running: Set[asyncio.Task] = set()

    def start(self, identity: TrackingIdentity, job_name: str) -> MonitorInfo:
        """
        Start a detached monitor run. Must be called from the event loop.

        Args:
            identity: Tracking identity to report to
            job_name: CI job to follow

        Returns:
            Initial snapshot of the run
        """
        self.prune()
        name = identity.canonical_name
        now = datetime.now(timezone.utc)
        info = MonitorInfo(tracking_name=name, job_name=job_name, started_at=now, updated_at=now)

        if name in self._tasks and not self._tasks[name].done():
            logger.info(
                f"Replacing running monitor for {name}",
                extra={"tracking_name": name, "job_name": job_name}
            )

        self._snapshots[name] = info
        task = asyncio.create_task(
            self._monitor.run(identity, job_name, info=info, on_update=self._publish),
            name=f"monitor:{name}",
        )
        self._tasks[name] = task
        self._running.add(task)
        task.add_done_callback(lambda done: self._finished(name, done))
        return info

    def _finished(self, name: str, task: asyncio.Task) -> None:
        self._running.discard(task)
        if self._tasks.get(name) is task:
            del self._tasks[name]

    def prune(self) -> int:
        """
        Drop snapshots of finished runs older than the retention window.

        Returns:
            Number of snapshots dropped
        """
        cutoff = datetime.now(timezone.utc) - self._retention
        stale = [
            name for name, info in self._snapshots.items()
            if not self.is_running(name) and info.updated_at < cutoff
        ]
        for name in stale:
            del self._snapshots[name]
        return len(stale)

    async def _publish(self, info: MonitorInfo) -> None:
        # Superseded runs keep running but stop publishing
        if self._snapshots.get(info.tracking_name) is not info:
            return
        if self._redis is None:
            return
        try:
            await self._redis.save_monitor_snapshot(info)
        except (RedisConnectionError, RedisError) as e:
            logger.warning(
                f"Could not store monitor snapshot: {e}",
                extra={"tracking_name": info.tracking_name}
            )

    def is_running(self, tracking_name: str) -> bool:
        task = self._tasks.get(tracking_name)
        return task is not None and not task.done()

    def running_count(self) -> int:
        return len(self._running)

    async def get(self, tracking_name: str) -> Optional[MonitorInfo]:
        """
        Snapshot of the latest run for an identity.

        Local runs win; other workers' runs are read from Redis.
        """
        self.prune()
        info = self._snapshots.get(tracking_name)
        if info is not None or self._redis is None:
            return info
        try:
            return await self._redis.get_monitor_snapshot(tracking_name)
        except (RedisConnectionError, RedisError) as e:
            logger.warning(f"Could not read monitor snapshot: {e}", extra={"tracking_name": tracking_name})
            return None

    async def list(self) -> List[MonitorInfo]:
        """All known snapshots, most recently updated first."""
        self.prune()
        snapshots = dict(self._snapshots)
        if self._redis is not None:
            try:
                for info in await self._redis.list_monitor_snapshots():
                    snapshots.setdefault(info.tracking_name, info)
            except (RedisConnectionError, RedisError) as e:
                logger.warning(f"Could not list monitor snapshots: {e}")
        return sorted(snapshots.values(), key=lambda info: info.updated_at, reverse=True)

    async def close(self) -> None:
        """Cancel outstanding runs. Called on application shutdown."""
        tasks = list(self._running)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Cancelled {len(tasks)} monitor runs")
