"""
Unit tests for the monitor registry.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import RedisError

from fakes import FakeCI, FakeDocker, build
from pipeline_sync.models.build import BuildState, MonitorInfo, MonitorPhase
from pipeline_sync.models.events import TrackingIdentity
from pipeline_sync.services.build_monitor import BuildMonitor, MonitorTimings
from pipeline_sync.services.monitor_registry import MonitorRegistry


IDENTITY = TrackingIdentity(canonical_name="feature-x")


class GatedMonitor:
    """Monitor whose runs block until the gate opens."""

    def __init__(self):
        self.gate = asyncio.Event()

    async def run(self, identity, job_name, info=None, on_update=None):
        await on_update(info)
        await self.gate.wait()
        info.phase = MonitorPhase.DONE
        await on_update(info)
        return info


def fake_redis() -> MagicMock:
    client = MagicMock()
    client.save_monitor_snapshot = AsyncMock()
    client.get_monitor_snapshot = AsyncMock(return_value=None)
    client.list_monitor_snapshots = AsyncMock(return_value=[])
    return client


def snapshot(name: str, minutes_ago: int) -> MonitorInfo:
    updated = datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)
    return MonitorInfo(tracking_name=name, job_name="widget-api", started_at=updated, updated_at=updated)


@pytest.mark.asyncio
async def test_start_runs_monitor_and_publishes(reconciler, sleep):
    redis = fake_redis()
    monitor = BuildMonitor(
        FakeCI([build(4, BuildState.SUCCESS)]), reconciler, FakeDocker(), timings=MonitorTimings(), sleep=sleep
    )
    registry = MonitorRegistry(monitor, redis)

    info = registry.start(IDENTITY, "widget-api")
    assert info.phase == MonitorPhase.STARTING

    await registry._tasks["feature-x"]

    final = await registry.get("feature-x")
    assert final.phase == MonitorPhase.DONE
    assert final.build_number == 4
    assert redis.save_monitor_snapshot.await_count >= 2
    assert not registry.is_running("feature-x")


@pytest.mark.asyncio
async def test_superseded_run_stops_publishing():
    redis = fake_redis()
    monitor = GatedMonitor()
    registry = MonitorRegistry(monitor, redis)

    first = registry.start(IDENTITY, "widget-api")
    first_task = registry._tasks["feature-x"]
    await asyncio.sleep(0)
    second = registry.start(IDENTITY, "widget-api")
    second_task = registry._tasks["feature-x"]
    await asyncio.sleep(0)
    assert registry.running_count() == 2

    monitor.gate.set()
    await asyncio.gather(first_task, second_task)

    saved = [call.args[0] for call in redis.save_monitor_snapshot.await_args_list]
    assert saved[0] is first
    assert all(info is second for info in saved[1:])
    assert len(saved) == 3
    assert await registry.get("feature-x") is second


@pytest.mark.asyncio
async def test_redis_errors_do_not_break_runs():
    redis = fake_redis()
    redis.save_monitor_snapshot.side_effect = RedisError("down")
    monitor = GatedMonitor()
    registry = MonitorRegistry(monitor, redis)

    registry.start(IDENTITY, "widget-api")
    monitor.gate.set()
    result = await registry._tasks["feature-x"]

    assert result.phase == MonitorPhase.DONE


@pytest.mark.asyncio
async def test_get_falls_back_to_redis():
    redis = fake_redis()
    remote = snapshot("feature-y", minutes_ago=1)
    redis.get_monitor_snapshot.return_value = remote
    registry = MonitorRegistry(GatedMonitor(), redis)

    assert await registry.get("feature-y") is remote
    redis.get_monitor_snapshot.assert_awaited_once_with("feature-y")


@pytest.mark.asyncio
async def test_get_without_redis():
    assert await MonitorRegistry(GatedMonitor()).get("feature-x") is None


@pytest.mark.asyncio
async def test_list_merges_local_and_remote_newest_first():
    redis = fake_redis()
    redis.list_monitor_snapshots.return_value = [snapshot("feature-y", 5), snapshot("feature-x", 10)]
    monitor = GatedMonitor()
    registry = MonitorRegistry(monitor, redis)

    local = registry.start(IDENTITY, "widget-api")
    snapshots = await registry.list()

    assert [info.tracking_name for info in snapshots] == ["feature-x", "feature-y"]
    assert snapshots[0] is local

    await registry.close()


@pytest.mark.asyncio
async def test_list_tolerates_redis_errors():
    redis = fake_redis()
    redis.list_monitor_snapshots.side_effect = RedisError("down")
    registry = MonitorRegistry(GatedMonitor(), redis)

    assert await registry.list() == []


@pytest.mark.asyncio
async def test_close_cancels_running_tasks():
    registry = MonitorRegistry(GatedMonitor())

    registry.start(IDENTITY, "widget-api")
    task = registry._tasks["feature-x"]
    await asyncio.sleep(0)

    await registry.close()

    assert task.cancelled()
    assert not registry.is_running("feature-x")


@pytest.mark.asyncio
async def test_finished_runs_release_their_task():
    monitor = GatedMonitor()
    registry = MonitorRegistry(monitor)

    registry.start(IDENTITY, "widget-api")
    task = registry._tasks["feature-x"]
    monitor.gate.set()
    await task
    await asyncio.sleep(0)

    assert "feature-x" not in registry._tasks
    assert registry.running_count() == 0
    assert (await registry.get("feature-x")).phase == MonitorPhase.DONE


@pytest.mark.asyncio
async def test_stale_snapshots_are_pruned():
    registry = MonitorRegistry(GatedMonitor(), retention_seconds=60)
    registry._snapshots["feature-old"] = snapshot("feature-old", minutes_ago=5)
    registry._snapshots["feature-new"] = snapshot("feature-new", minutes_ago=0)

    assert registry.prune() == 1
    assert list(registry._snapshots) == ["feature-new"]


@pytest.mark.asyncio
async def test_running_snapshots_are_never_pruned():
    registry = MonitorRegistry(GatedMonitor(), retention_seconds=60)
    running = registry.start(IDENTITY, "widget-api")
    running.updated_at = datetime.now(timezone.utc) - timedelta(minutes=5)

    names = [info.tracking_name for info in await registry.list()]

    assert names == ["feature-x"]

    await registry.close()
