"""
Unit tests for structured logging utilities.
"""

import json
import logging
from io import StringIO

import pytest

from pipeline_sync.utils.logging import (
    JSONFormatter,
    get_logger,
    log_api_call,
    log_error_with_context,
    log_monitor_transition,
    log_webhook_event,
)


def capture(name: str, level: int = logging.DEBUG):
    """Attach a JSON handler to a fresh logger and return (adapter, stream)."""
    logger = get_logger(name)
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    logger.logger.handlers.clear()
    logger.logger.addHandler(handler)
    logger.logger.setLevel(level)
    logger.logger.propagate = False
    return logger, stream


def last_record(stream: StringIO) -> dict:
    return json.loads(stream.getvalue().strip().splitlines()[-1])


def test_json_formatter():
    """Test JSON formatter produces valid JSON output."""
    logger, stream = capture("test.formatter")

    logger.info("Test message", extra={"tracking_name": "feature-x", "item_id": "42"})

    log_data = last_record(stream)

    assert "timestamp" in log_data
    assert log_data["level"] == "INFO"
    assert log_data["logger"] == "test.formatter"
    assert log_data["message"] == "Test message"
    assert log_data["tracking_name"] == "feature-x"
    assert log_data["context"]["item_id"] == "42"
    assert "source" in log_data


def test_get_logger_with_context():
    """Test getting logger with context."""
    logger = get_logger("test_module", tracking_name="feature-x", job_name="widget-api")

    assert logger.extra["tracking_name"] == "feature-x"
    assert logger.extra["job_name"] == "widget-api"


def test_with_context_merges_fields():
    """Test that with_context adds fields without changing the parent adapter."""
    logger, stream = capture("test.with_context")

    child = logger.with_context(tracking_name="feature-x", build_number=7)
    child.info("Polling")

    log_data = last_record(stream)
    assert log_data["tracking_name"] == "feature-x"
    assert log_data["build_number"] == 7
    assert "tracking_name" not in logger.extra


def test_log_webhook_event():
    """Test source-control event logging."""
    logger, stream = capture("test.webhook")

    log_webhook_event(logger, "push", "acme/widget-api", tracking_name="feature-x", action="push")

    log_data = last_record(stream)
    assert log_data["event_kind"] == "push"
    assert log_data["repository"] == "acme/widget-api"
    assert log_data["tracking_name"] == "feature-x"
    assert log_data["context"]["action"] == "push"


def test_log_monitor_transition():
    """Test build monitor phase logging."""
    logger, stream = capture("test.monitor")

    log_monitor_transition(logger, "feature-x", "widget-api", "polling", build_number=12, build_state="building")

    log_data = last_record(stream)
    assert log_data["tracking_name"] == "feature-x"
    assert log_data["job_name"] == "widget-api"
    assert log_data["build_number"] == 12
    assert log_data["context"]["phase"] == "polling"
    assert log_data["context"]["build_state"] == "building"


def test_log_api_call():
    """Test API call logging."""
    logger, stream = capture("test.api_call")

    log_api_call(
        logger,
        service="jenkins",
        endpoint="/job/widget-api/12/api/json",
        method="GET",
        status_code=200,
        duration_ms=150.456
    )

    log_data = last_record(stream)
    assert log_data["level"] == "DEBUG"
    assert log_data["context"]["service"] == "jenkins"
    assert log_data["context"]["status_code"] == 200
    assert log_data["context"]["duration_ms"] == 150.46


def test_log_api_call_with_error():
    """Test API call logging with error."""
    logger, stream = capture("test.api_call_error", level=logging.ERROR)

    log_api_call(
        logger,
        service="monday",
        endpoint="create_item",
        method="POST",
        error="Connection timeout"
    )

    log_data = last_record(stream)
    assert log_data["level"] == "ERROR"
    assert log_data["context"]["error"] == "Connection timeout"


def test_log_error_with_context_includes_stack_trace():
    """Test that errors are logged with type, message and trace."""
    logger, stream = capture("test.error")

    try:
        raise ValueError("bad build number")
    except ValueError as e:
        log_error_with_context(logger, "Monitoring failed", e, tracking_name="feature-x")

    log_data = last_record(stream)
    assert log_data["tracking_name"] == "feature-x"
    assert log_data["error"]["type"] == "ValueError"
    assert log_data["error"]["message"] == "bad build number"
    assert "Traceback" in log_data["error"]["stack_trace"]
    assert log_data["context"]["error_type"] == "ValueError"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
