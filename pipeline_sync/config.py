"""
Application configuration management.
"""

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # GitHub
    github_token: Optional[str] = None
    github_api_url: str = "https://api.github.com"
    github_webhook_secret: Optional[str] = None

    # Jenkins
    jenkins_url: str = "http://localhost:8080"
    jenkins_username: str = ""
    jenkins_api_token: str = ""
    jenkins_job_name: str = "Sample-Test-API"

    # monday.com board
    monday_api_url: str = "https://api.monday.com/v2"
    monday_api_key: str = ""
    monday_board_id: str = ""
    board_column_ids: Dict[str, str] = {}  # Logical column -> board column id overrides
    board_item_name_max_length: int = 200

    # Docker
    docker_binary: str = "docker"
    docker_command_timeout_seconds: float = 30.0

    # Redis (optional, enables cross-process identity locks and monitor snapshots)
    redis_url: Optional[str] = None
    monitor_snapshot_ttl_seconds: int = 86400

    # Build monitor
    monitor_settle_delay_seconds: float = 10.0
    monitor_poll_interval_seconds: float = 5.0
    monitor_deploy_settle_delay_seconds: float = 5.0
    monitor_stage_update_delay_seconds: float = 2.0
    monitor_max_consecutive_poll_errors: int = 3
    monitor_timeout_seconds: Optional[float] = None  # None polls until CI finishes

    # Identity policies
    strip_trailing_ticket_id: bool = False

    # Admin API
    admin_api_key: Optional[str] = None  # Falls back to github_webhook_secret if not set

    # Application
    cors_allow_origins: List[str] = ["*"]
    log_level: str = "INFO"
    http_timeout_seconds: float = 30.0

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
