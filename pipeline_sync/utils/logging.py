"""
Structured logging utilities with JSON formatting and context injection.

This module provides structured logging capabilities with:
- JSON formatted log output for machine-readable logs
- Context injection (tracking_name, job_name, build_number) via LoggerAdapter
- Standardized log fields across all components
- Integration with Python's standard logging module
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from logging import LogRecord
from typing import Any, Dict, MutableMapping, Optional


# Context fields promoted to top-level keys of the JSON record
CONTEXT_FIELDS = (
    "tracking_name",
    "event_kind",
    "repository",
    "job_name",
    "build_number",
    "request_id",
)

_RESERVED_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName",
}


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON with standard fields:
    - timestamp: ISO 8601 formatted timestamp
    - level: Log level (INFO, WARNING, ERROR, etc.)
    - logger: Logger name
    - message: Log message
    - tracking_name, job_name, build_number, ...: promoted context fields
    - context: Any other extra fields
    - error: Error details (when exc_info is present)
    """

    def format(self, record: LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON formatted log string
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        extra_fields = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in CONTEXT_FIELDS:
                continue
            extra_fields[key] = value

        if extra_fields:
            log_data["context"] = extra_fields

        if record.exc_info:
            log_data["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stack_trace": "".join(traceback.format_exception(*record.exc_info))
            }

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName
        }

        return json.dumps(log_data, default=str)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that injects context fields into all log records.

    This adapter allows setting context fields (tracking_name, job_name,
    build_number) that will be automatically included in all log entries.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        """
        Process log message and inject context.

        Args:
            msg: Log message
            kwargs: Log kwargs

        Returns:
            Tuple of (message, kwargs) with context injected
        """
        extra = kwargs.get("extra", {})
        for key, value in self.extra.items():
            extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **context: Any) -> "ContextLoggerAdapter":
        """
        Create a new logger adapter with additional context.

        Args:
            **context: Additional context fields

        Returns:
            New logger adapter with merged context
        """
        new_extra = dict(self.extra)
        new_extra.update(context)
        return ContextLoggerAdapter(self.logger, new_extra)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Sets up:
    - JSON formatter for all handlers
    - Console handler with appropriate log level
    - Root logger configuration

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level = log_level.upper()
    formatter = JSONFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str, **context: Any) -> ContextLoggerAdapter:
    """
    Get a context-aware logger for a module.

    Args:
        name: Logger name (typically __name__)
        **context: Initial context fields (tracking_name, job_name, etc.)

    Returns:
        Context logger adapter

    Example:
        logger = get_logger(__name__, tracking_name="feature-x")
        logger.info("Polling build")  # Will include tracking_name
    """
    base_logger = logging.getLogger(name)
    return ContextLoggerAdapter(base_logger, context)


def log_webhook_event(
    logger: logging.LoggerAdapter,
    event_kind: str,
    repository: str,
    tracking_name: Optional[str] = None,
    action: Optional[str] = None
) -> None:
    """
    Log an inbound source-control event with required fields.

    Args:
        logger: Logger to use
        event_kind: Normalized event kind (e.g., 'push', 'pull_request')
        repository: Repository full name
        tracking_name: Resolved tracking identity, if any
        action: Source-reported sub-action
    """
    extra = {
        "event_kind": event_kind,
        "repository": repository,
    }
    if tracking_name:
        extra["tracking_name"] = tracking_name
    if action:
        extra["action"] = action

    logger.info(f"Source-control event received: {event_kind}", extra=extra)


def log_monitor_transition(
    logger: logging.LoggerAdapter,
    tracking_name: str,
    job_name: str,
    phase: str,
    build_number: Optional[int] = None,
    build_state: Optional[str] = None
) -> None:
    """
    Log a build monitor phase transition.

    Args:
        logger: Logger to use
        tracking_name: Tracking identity the monitor reports to
        job_name: CI job being monitored
        phase: New phase ('starting', 'polling', 'reporting', 'done')
        build_number: Build number, once known
        build_state: Build state, once known
    """
    extra: Dict[str, Any] = {
        "tracking_name": tracking_name,
        "job_name": job_name,
        "phase": phase,
    }
    if build_number is not None:
        extra["build_number"] = build_number
    if build_state is not None:
        extra["build_state"] = build_state

    logger.info(f"Build monitor phase: {phase}", extra=extra)


def log_api_call(
    logger: logging.LoggerAdapter,
    service: str,
    endpoint: str,
    method: str,
    status_code: Optional[int] = None,
    duration_ms: Optional[float] = None,
    error: Optional[str] = None
) -> None:
    """
    Log an external API call with request/response details.

    Args:
        logger: Logger to use
        service: Service name (e.g., 'jenkins', 'monday', 'github', 'docker')
        endpoint: API endpoint or command
        method: HTTP method or command verb
        status_code: Response status code (if available)
        duration_ms: Request duration in milliseconds (if available)
        error: Error message (if request failed)
    """
    extra: Dict[str, Any] = {
        "service": service,
        "endpoint": endpoint,
        "method": method,
    }

    if status_code is not None:
        extra["status_code"] = status_code
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
    if error is not None:
        extra["error"] = error

    if error:
        logger.error(f"API call failed: {method} {endpoint}", extra=extra)
    else:
        logger.debug(f"API call: {method} {endpoint}", extra=extra)


def log_error_with_context(
    logger: logging.LoggerAdapter,
    message: str,
    error: Exception,
    **context: Any
) -> None:
    """
    Log error with full stack trace and context.

    Args:
        logger: Logger to use
        message: Error message
        error: Exception object
        **context: Additional context fields
    """
    context.setdefault("error_type", type(error).__name__)
    logger.error(
        message,
        extra=context,
        exc_info=(type(error), error, error.__traceback__)
    )
