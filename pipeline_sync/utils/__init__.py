"""
Utility modules for the pipeline board sync service.
"""

from pipeline_sync.utils.logging import (
    get_logger,
    setup_logging,
    ContextLoggerAdapter,
    log_webhook_event,
    log_monitor_transition,
    log_api_call,
    log_error_with_context,
)
from pipeline_sync.utils.metrics import (
    MonitorMetrics,
    track_api_call,
    emit_metric,
)
from pipeline_sync.utils.resilience import retry_with_backoff

__all__ = [
    "get_logger",
    "setup_logging",
    "ContextLoggerAdapter",
    "log_webhook_event",
    "log_monitor_transition",
    "log_api_call",
    "log_error_with_context",
    "MonitorMetrics",
    "track_api_call",
    "emit_metric",
    "retry_with_backoff",
]
