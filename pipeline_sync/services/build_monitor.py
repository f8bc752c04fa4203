"""
Build Monitor component.

Asynchronous state machine that follows one CI build to completion:

    starting -> polling -> reporting -> done

It reconciles the board at build start and at completion. Successful
builds then report the deployed container, and each pipeline stage gets
its own update last. Any failure ends the run with a synthetic failed
reconciliation; the run is never retried and nothing propagates to the
caller.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Protocol, Tuple

from pydantic import BaseModel

from pipeline_sync.models.board import ColumnValues
from pipeline_sync.models.build import (
    BuildRecord,
    BuildState,
    CITestReport,
    MonitorInfo,
    MonitorPhase,
    StageResult,
)
from pipeline_sync.models.container import ContainerRecord, ContainerSummary
from pipeline_sync.models.events import TrackingIdentity
from pipeline_sync.services import projections
from pipeline_sync.services.container_locator import locate
from pipeline_sync.services.errors import CIClientError, ContainerRuntimeError
from pipeline_sync.services.reconciler import BoardReconciler, ReconciliationFailure
from pipeline_sync.utils.logging import get_logger, log_error_with_context, log_monitor_transition
from pipeline_sync.utils.metrics import MonitorMetrics, emit_metric

logger = get_logger(__name__)


class MonitoringFailure(Exception):
    """Raised inside a monitor run when CI cannot be followed to completion."""
    pass


class CIClient(Protocol):
    async def get_last_build(self, job_name: str) -> BuildRecord: ...

    async def get_build(self, job_name: str, build_number: int) -> BuildRecord: ...

    async def get_stages(self, job_name: str, build_number: int) -> List[StageResult]: ...

    async def get_test_report(self, job_name: str, build_number: int) -> Optional[CITestReport]: ...


class ContainerRuntime(Protocol):
    async def list(self) -> List[ContainerSummary]: ...

    async def inspect(self, name: str) -> ContainerRecord: ...


class MonitorTimings(BaseModel):
    """Delays and limits of a monitor run, in seconds."""

    settle_delay: float = 10.0
    poll_interval: float = 5.0
    deploy_settle_delay: float = 5.0
    stage_update_delay: float = 2.0
    max_consecutive_poll_errors: int = 3
    timeout: Optional[float] = None


# Stage name substring -> stage kind; first match wins
STAGE_RULES: Tuple[Tuple[str, str], ...] = (
    ("test", "test"),
    ("build", "build"),
    ("deploy", "deploy"),
)


def classify_stage(name: str) -> str:
    """Classify a stage by name: 'test', 'build', 'deploy' or 'generic'."""
    lowered = name.lower()
    for needle, kind in STAGE_RULES:
        if needle in lowered:
            return kind
    return "generic"


def stage_projection(stage: StageResult, report: Optional[CITestReport] = None) -> ColumnValues:
    kind = classify_stage(stage.name)
    if kind == "test":
        return projections.stage_tests(stage, report)
    if kind == "build":
        return projections.stage_build(stage)
    if kind == "deploy":
        return projections.stage_deploy(stage)
    return projections.stage_generic(stage)


def result_comment(record: BuildRecord) -> str:
    lines = [f"Build #{record.build_number} of {record.job_name} finished: {record.state.value.upper()}"]
    if record.build_url:
        lines.append(record.build_url)
    rollup = projections.stage_rollup(record.stages)
    if rollup:
        lines.append(rollup)
    return "\n".join(lines)


UpdateCallback = Callable[[MonitorInfo], Awaitable[None]]


class BuildMonitor:
    """Follows CI builds and mirrors their progress onto the board."""

    def __init__(
        self,
        ci: CIClient,
        reconciler: BoardReconciler,
        containers: ContainerRuntime,
        timings: Optional[MonitorTimings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        self._ci = ci
        self._reconciler = reconciler
        self._containers = containers
        self._timings = timings or MonitorTimings()
        self._sleep = sleep
        self._clock = clock

    async def run(
        self,
        identity: TrackingIdentity,
        job_name: str,
        info: Optional[MonitorInfo] = None,
        on_update: Optional[UpdateCallback] = None
    ) -> MonitorInfo:
        """
        Monitor the job's latest build until it finishes.

        Args:
            identity: Tracking identity whose board item is updated
            job_name: CI job to follow
            info: Snapshot to keep current (created if not given)
            on_update: Called after every snapshot change

        Returns:
            Final snapshot; phase is always 'done'
        """
        now = datetime.now(timezone.utc)
        if info is None:
            info = MonitorInfo(
                tracking_name=identity.canonical_name,
                job_name=job_name,
                started_at=now,
                updated_at=now,
            )
        run_logger = logger.with_context(tracking_name=identity.canonical_name, job_name=job_name)
        metrics = MonitorMetrics(identity.canonical_name, job_name)
        metrics.start()

        async def transition(phase: MonitorPhase, record: Optional[BuildRecord] = None) -> None:
            info.phase = phase
            if record is not None:
                info.build_number = record.build_number
                info.build_state = record.state
            info.updated_at = datetime.now(timezone.utc)
            log_monitor_transition(
                run_logger,
                identity.canonical_name,
                job_name,
                phase.value,
                build_number=info.build_number,
                build_state=info.build_state.value if info.build_state else None,
            )
            if on_update is not None:
                await on_update(info)

        try:
            await transition(MonitorPhase.STARTING)
            await self._sleep(self._timings.settle_delay)
            record = await self._ci.get_last_build(job_name)
            metrics.build_number = record.build_number

            await self._reconcile(
                identity,
                projections.build_start(str(record.build_number), record.build_url, job_name),
                metrics,
            )
            await transition(MonitorPhase.POLLING, record)

            record = await self._poll(job_name, record, metrics, transition)
            await transition(MonitorPhase.REPORTING, record)

            # Stage list feeds the completion rollup; per-stage updates come last
            record.stages = await self._ci.get_stages(job_name, record.build_number)
            await self._reconcile(identity, projections.build_completion(record), metrics)
            await self._comment(identity, result_comment(record))

            if record.state == BuildState.SUCCESS:
                await self._report_container(identity, job_name, metrics)

            await self._report_stages(identity, record, metrics)

            await transition(MonitorPhase.DONE, record)
            metrics.complete(record.state.value)

        except Exception as e:
            # Monitor runs never propagate
            log_error_with_context(
                run_logger,
                f"Build monitoring failed for {identity.canonical_name}",
                e,
            )
            info.error = str(e) or type(e).__name__
            await self._reconcile(identity, projections.monitoring_failure(info.error), metrics)
            info.build_state = BuildState.FAILED
            metrics.complete("failed", info.error)
            try:
                await transition(MonitorPhase.DONE)
            except Exception as publish_error:
                log_error_with_context(
                    run_logger,
                    f"Could not publish final state for {identity.canonical_name}",
                    publish_error,
                )

        emit_metric(
            "monitor.duration_ms",
            metrics.duration_ms or 0,
            tracking_name=identity.canonical_name,
            status=metrics.status,
        )
        return info

    async def _poll(
        self,
        job_name: str,
        record: BuildRecord,
        metrics: MonitorMetrics,
        transition: Callable[..., Awaitable[None]]
    ) -> BuildRecord:
        started = self._clock()
        consecutive_errors = 0

        while not record.state.is_terminal:
            timeout = self._timings.timeout
            if timeout is not None and self._clock() - started > timeout:
                raise MonitoringFailure(
                    f"Build #{record.build_number} still running after {timeout}s"
                )

            await self._sleep(self._timings.poll_interval)
            try:
                polled = await self._ci.get_build(job_name, record.build_number)
            except CIClientError as e:
                consecutive_errors += 1
                metrics.record_poll(error=True)
                if consecutive_errors >= self._timings.max_consecutive_poll_errors:
                    raise MonitoringFailure(
                        f"CI unreachable for {consecutive_errors} consecutive polls: {e}"
                    ) from e
                logger.warning(
                    f"Poll of build #{record.build_number} failed ({consecutive_errors}): {e}",
                    extra={"job_name": job_name, "build_number": record.build_number}
                )
                continue

            consecutive_errors = 0
            metrics.record_poll()
            if polled.state != record.state:
                await transition(MonitorPhase.POLLING, polled)
            record = polled

        return record

    async def _report_stages(
        self,
        identity: TrackingIdentity,
        record: BuildRecord,
        metrics: MonitorMetrics
    ) -> None:
        report = None
        if any(classify_stage(stage.name) == "test" for stage in record.stages):
            report = await self._ci.get_test_report(record.job_name, record.build_number)

        for index, stage in enumerate(record.stages):
            if index:
                await self._sleep(self._timings.stage_update_delay)
            await self._reconcile(identity, stage_projection(stage, report), metrics)
            metrics.record_stage()
            logger.info(
                f"Reported stage {stage.name}: {stage.status}",
                extra={"tracking_name": identity.canonical_name, "stage": stage.name}
            )

    async def _report_container(
        self,
        identity: TrackingIdentity,
        job_name: str,
        metrics: MonitorMetrics
    ) -> None:
        await self._sleep(self._timings.deploy_settle_delay)
        try:
            containers = await self._containers.list()
            name = locate(job_name, containers)
            if name is None:
                logger.info(
                    f"No deployed container found for {job_name}",
                    extra={"tracking_name": identity.canonical_name, "job_name": job_name}
                )
                return
            record = await self._containers.inspect(name)
        except ContainerRuntimeError as e:
            logger.warning(
                f"Container lookup failed for {job_name}: {e}",
                extra={"tracking_name": identity.canonical_name, "job_name": job_name}
            )
            return

        await self._reconcile(identity, projections.container_deployed(record), metrics)

    async def _reconcile(
        self,
        identity: TrackingIdentity,
        values: ColumnValues,
        metrics: MonitorMetrics
    ) -> bool:
        try:
            await self._reconciler.upsert(identity, values)
        except ReconciliationFailure as e:
            metrics.record_board_update(False)
            logger.error(
                f"Board update failed during monitoring: {e}",
                extra={"tracking_name": identity.canonical_name}
            )
            return False
        metrics.record_board_update(True)
        return True

    async def _comment(self, identity: TrackingIdentity, body: str) -> None:
        try:
            await self._reconciler.comment(identity, body)
        except ReconciliationFailure as e:
            logger.warning(
                f"Could not post build comment: {e}",
                extra={"tracking_name": identity.canonical_name}
            )
