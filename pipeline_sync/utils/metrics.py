"""
Metrics collection and emission for observability.

This module provides metrics tracking for:
- Build monitor run time and outcome
- Poll cycles and board updates per run
- External API call latency
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pipeline_sync.utils.logging import get_logger, log_api_call

logger = get_logger(__name__)


class MonitorMetrics:
    """
    Collects metrics during a build monitor run.

    Tracks:
    - Run start/end time
    - Poll cycles and poll errors
    - Board updates and board failures
    - Stages processed
    - API call counts and latency
    """

    def __init__(self, tracking_name: str, job_name: str):
        """
        Initialize metrics collector.

        Args:
            tracking_name: Tracking identity the run reports to
            job_name: CI job being monitored
        """
        self.tracking_name = tracking_name
        self.job_name = job_name

        # Timing metrics
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.duration_ms: Optional[int] = None

        # Run metrics
        self.poll_count: int = 0
        self.poll_errors: int = 0
        self.board_updates: int = 0
        self.board_failures: int = 0
        self.stages_processed: int = 0
        self.build_number: Optional[int] = None

        # API metrics
        self.api_calls: Dict[str, int] = {}
        self.api_latencies: Dict[str, list[float]] = {}

        # Status
        self.status: str = "running"
        self.error_message: Optional[str] = None

    def start(self) -> None:
        """Mark run start."""
        self.start_time = datetime.now(timezone.utc)
        self.status = "running"

    def complete(self, status: str, error_message: Optional[str] = None) -> None:
        """
        Mark run completion and log the summary.

        Args:
            status: Final build state or 'failed' for monitoring failures
            error_message: Error message if the run failed
        """
        self.end_time = datetime.now(timezone.utc)
        self.status = status
        self.error_message = error_message

        if self.start_time:
            duration = (self.end_time - self.start_time).total_seconds()
            self.duration_ms = int(duration * 1000)

        logger.info(
            f"Build monitor run completed for {self.tracking_name}",
            extra=self.get_metrics_summary()
        )

    def record_poll(self, error: bool = False) -> None:
        self.poll_count += 1
        if error:
            self.poll_errors += 1

    def record_board_update(self, success: bool) -> None:
        if success:
            self.board_updates += 1
        else:
            self.board_failures += 1

    def record_stage(self) -> None:
        self.stages_processed += 1

    def record_api_call(self, service: str, duration_ms: float) -> None:
        """
        Record API call and latency.

        Args:
            service: Service name (e.g., 'jenkins', 'monday')
            duration_ms: Call duration in milliseconds
        """
        self.api_calls[service] = self.api_calls.get(service, 0) + 1
        self.api_latencies.setdefault(service, []).append(duration_ms)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """
        Get summary of collected metrics.

        Returns:
            Dictionary of metrics
        """
        summary: Dict[str, Any] = {
            "tracking_name": self.tracking_name,
            "job_name": self.job_name,
            "build_number": self.build_number,
            "status": self.status,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
            "poll_count": self.poll_count,
            "poll_errors": self.poll_errors,
            "board_updates": self.board_updates,
            "board_failures": self.board_failures,
            "stages_processed": self.stages_processed,
            "api_calls": self.api_calls,
        }

        if self.api_latencies:
            latency_stats = {}
            for service, latencies in self.api_latencies.items():
                if latencies:
                    latency_stats[service] = {
                        "count": len(latencies),
                        "min_ms": round(min(latencies), 2),
                        "max_ms": round(max(latencies), 2),
                        "avg_ms": round(sum(latencies) / len(latencies), 2),
                    }
            summary["api_latencies"] = latency_stats

        if self.error_message:
            summary["error_message"] = self.error_message

        return summary


@asynccontextmanager
async def track_api_call(
    service: str,
    endpoint: str,
    method: str,
    logger_adapter,
    metrics: Optional[MonitorMetrics] = None
):
    """
    Context manager to time an external API call and log it.

    Usage:
        async with track_api_call("jenkins", "/job/x/api/json", "GET", logger):
            response = await client.get(url)

    Args:
        service: Service name
        endpoint: Endpoint or command being called
        method: HTTP method or command verb
        logger_adapter: Logger for logging API calls
        metrics: Optional metrics collector to record latency on

    Yields:
        None
    """
    start_time = time.perf_counter()
    error = None

    try:
        yield
    except Exception as e:
        error = e
        raise
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000

        if metrics:
            metrics.record_api_call(service, duration_ms)

        log_api_call(
            logger_adapter,
            service=service,
            endpoint=endpoint,
            method=method,
            duration_ms=duration_ms,
            error=str(error) if error else None
        )


def emit_metric(metric_name: str, value: float, **tags: Any) -> None:
    """
    Emit a metric as a structured log event.

    Args:
        metric_name: Metric name
        value: Metric value
        **tags: Metric tags/labels
    """
    logger.info(
        f"Metric: {metric_name}",
        extra={
            "metric_name": metric_name,
            "metric_value": value,
            "metric_tags": tags,
        }
    )
