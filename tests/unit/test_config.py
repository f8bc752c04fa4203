"""
Unit tests for configuration management.
"""

import os
from unittest.mock import patch

from pipeline_sync.config import Settings, get_settings


def test_settings_loads_from_environment():
    """Test that settings can be loaded from environment variables."""
    with patch.dict(os.environ, {
        'JENKINS_URL': 'http://jenkins.internal:8080',
        'JENKINS_USERNAME': 'ci-bot',
        'JENKINS_API_TOKEN': 'token123',
        'MONDAY_API_KEY': 'monday_key',
        'MONDAY_BOARD_ID': '987654',
        'GITHUB_WEBHOOK_SECRET': 'test_secret',
        'REDIS_URL': 'redis://localhost:6379/0',
        'LOG_LEVEL': 'DEBUG',
        'MONITOR_POLL_INTERVAL_SECONDS': '2.5',
        'STRIP_TRAILING_TICKET_ID': 'true',
    }):
        settings = Settings()

        assert settings.jenkins_url == 'http://jenkins.internal:8080'
        assert settings.jenkins_username == 'ci-bot'
        assert settings.jenkins_api_token == 'token123'
        assert settings.monday_api_key == 'monday_key'
        assert settings.monday_board_id == '987654'
        assert settings.github_webhook_secret == 'test_secret'
        assert settings.redis_url == 'redis://localhost:6379/0'
        assert settings.log_level == 'DEBUG'
        assert settings.monitor_poll_interval_seconds == 2.5
        assert settings.strip_trailing_ticket_id is True


def test_settings_has_default_values():
    """Test that settings have appropriate default values."""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(_env_file=None)

        assert settings.log_level == 'INFO'
        assert settings.redis_url is None
        assert settings.monitor_settle_delay_seconds == 10.0
        assert settings.monitor_poll_interval_seconds == 5.0
        assert settings.monitor_stage_update_delay_seconds == 2.0
        assert settings.monitor_max_consecutive_poll_errors == 3
        assert settings.monitor_timeout_seconds is None
        assert settings.board_item_name_max_length == 200
        assert settings.strip_trailing_ticket_id is False


def test_column_id_overrides_parse_from_json():
    """Test that column id overrides are read as a JSON object."""
    with patch.dict(os.environ, {
        'BOARD_COLUMN_IDS': '{"container_status": "color_abc123", "health": "text_def456"}',
    }):
        settings = Settings()

        assert settings.board_column_ids == {
            "container_status": "color_abc123",
            "health": "text_def456",
        }


def test_get_settings_is_cached():
    """Test that get_settings returns the same instance."""
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
