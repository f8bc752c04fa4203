"""
Shared fixtures for unit tests.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from fakes import ADMIN_KEY, BOARD_ID, TODAY, WEBHOOK_SECRET, FakeBoard, FakeDocker, SleepRecorder
from pipeline_sync.api.dependencies import get_container
from pipeline_sync.config import Settings, get_settings
from pipeline_sync.models.container import ContainerRecord
from pipeline_sync.services.coordinator import PipelineCoordinator
from pipeline_sync.services.locks import IdentityLockManager
from pipeline_sync.services.normalizer import WebhookNormalizer
from pipeline_sync.services.reconciler import BoardReconciler


@pytest.fixture
def board() -> FakeBoard:
    return FakeBoard()


@pytest.fixture
def reconciler(board: FakeBoard) -> BoardReconciler:
    return BoardReconciler(board, BOARD_ID, IdentityLockManager(), clock=lambda: TODAY)


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def running_container() -> ContainerRecord:
    return ContainerRecord(
        name="widget-api-prod",
        status="running",
        container_id="0123456789ab",
        image_version="acme/widget-api:1.4.2",
        exposed_ports="8080/tcp -> 0.0.0.0:8080",
        health="healthy",
        resource_usage="CPU: 0.50% | Memory: 64MiB / 1GiB",
        deployed_at="2026-01-15 10:00:00",
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        github_webhook_secret=WEBHOOK_SECRET,
        admin_api_key=ADMIN_KEY,
        jenkins_url="http://ci.example.com",
        jenkins_job_name="Sample-Test-API",
    )


@pytest.fixture
def services(test_settings, reconciler, running_container) -> SimpleNamespace:
    """Stand-in for ServiceContainer backed by in-memory collaborators."""
    docker = FakeDocker([running_container])
    registry = MagicMock()
    registry.list = AsyncMock(return_value=[])
    registry.get = AsyncMock(return_value=None)
    registry.running_count.return_value = 0
    jenkins = MagicMock()
    coordinator = PipelineCoordinator(
        WebhookNormalizer(),
        reconciler,
        registry,
        docker,
        ci_url=test_settings.jenkins_url,
        default_job_name=test_settings.jenkins_job_name,
    )
    return SimpleNamespace(
        settings=test_settings,
        coordinator=coordinator,
        docker=docker,
        jenkins=jenkins,
        registry=registry,
        reconciler=reconciler,
    )


@pytest.fixture
def api_client(services, test_settings):
    """TestClient with services and settings overridden. Startup hooks do not run."""
    from pipeline_sync.main import app

    app.dependency_overrides[get_container] = lambda: services
    app.dependency_overrides[get_settings] = lambda: test_settings
    yield TestClient(app)
    app.dependency_overrides.clear()
