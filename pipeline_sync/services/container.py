"""
Service wiring.

Builds every collaborator client and service from Settings once, at
application startup, and closes them on shutdown.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from pipeline_sync.config import Settings
from pipeline_sync.services.board_client import MondayBoardClient, resolve_column_ids
from pipeline_sync.services.build_monitor import BuildMonitor, MonitorTimings
from pipeline_sync.services.coordinator import PipelineCoordinator
from pipeline_sync.services.docker_client import DockerCLIClient
from pipeline_sync.services.github_client import GitHubClient
from pipeline_sync.services.identity import IdentityPolicy, build_policies
from pipeline_sync.services.jenkins_client import JenkinsClient
from pipeline_sync.services.locks import IdentityLockManager
from pipeline_sync.services.monitor_registry import MonitorRegistry
from pipeline_sync.services.normalizer import WebhookNormalizer
from pipeline_sync.services.reconciler import BoardReconciler
from pipeline_sync.services.redis_client import RedisClient, RedisConnectionError
from pipeline_sync.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Application-wide service instances."""

    settings: Settings
    github: GitHubClient
    jenkins: JenkinsClient
    board: MondayBoardClient
    docker: DockerCLIClient
    locks: IdentityLockManager
    reconciler: BoardReconciler
    monitor: BuildMonitor
    registry: MonitorRegistry
    coordinator: PipelineCoordinator
    redis: Optional[RedisClient] = None
    policies: List[IdentityPolicy] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceContainer":
        """
        Build all services from settings.

        Redis is only used when redis_url is configured; without it identity
        locks are process-local and monitor snapshots live in memory.
        """
        redis_client = None
        if settings.redis_url:
            redis_client = RedisClient(
                settings.redis_url,
                snapshot_ttl_seconds=settings.monitor_snapshot_ttl_seconds,
            )

        github = GitHubClient(
            api_url=settings.github_api_url,
            token=settings.github_token,
            timeout=settings.http_timeout_seconds,
        )
        jenkins = JenkinsClient(
            settings.jenkins_url,
            username=settings.jenkins_username,
            api_token=settings.jenkins_api_token,
            timeout=settings.http_timeout_seconds,
        )
        board = MondayBoardClient(
            settings.monday_api_url,
            settings.monday_api_key,
            column_ids=resolve_column_ids(settings.board_column_ids),
            timeout=settings.http_timeout_seconds,
        )
        docker = DockerCLIClient(
            binary=settings.docker_binary,
            timeout=settings.docker_command_timeout_seconds,
        )

        locks = IdentityLockManager(redis_client)
        reconciler = BoardReconciler(
            board,
            settings.monday_board_id,
            locks,
            item_name_max_length=settings.board_item_name_max_length,
        )
        monitor = BuildMonitor(
            jenkins,
            reconciler,
            docker,
            timings=MonitorTimings(
                settle_delay=settings.monitor_settle_delay_seconds,
                poll_interval=settings.monitor_poll_interval_seconds,
                deploy_settle_delay=settings.monitor_deploy_settle_delay_seconds,
                stage_update_delay=settings.monitor_stage_update_delay_seconds,
                max_consecutive_poll_errors=settings.monitor_max_consecutive_poll_errors,
                timeout=settings.monitor_timeout_seconds,
            ),
        )
        registry = MonitorRegistry(
            monitor,
            redis_client,
            retention_seconds=settings.monitor_snapshot_ttl_seconds,
        )
        policies = build_policies(settings.strip_trailing_ticket_id)
        coordinator = PipelineCoordinator(
            WebhookNormalizer(),
            reconciler,
            registry,
            docker,
            github=github,
            ci_url=jenkins.base_url,
            default_job_name=settings.jenkins_job_name,
            policies=policies,
        )

        return cls(
            settings=settings,
            github=github,
            jenkins=jenkins,
            board=board,
            docker=docker,
            locks=locks,
            reconciler=reconciler,
            monitor=monitor,
            registry=registry,
            coordinator=coordinator,
            redis=redis_client,
            policies=policies,
        )

    async def startup(self) -> None:
        """Connect to Redis, if configured. A failed connection is logged, not fatal."""
        if self.redis is None:
            logger.info("Redis not configured; using process-local locks and snapshots")
            return
        try:
            await self.redis.initialize()
            logger.info("Redis client initialized")
        except RedisConnectionError as e:
            logger.error(f"Redis unavailable at startup: {e}")

    async def close(self) -> None:
        """Cancel monitor runs and close every client."""
        await self.registry.close()
        await self.github.close()
        await self.jenkins.close()
        await self.board.close()
        if self.redis is not None:
            await self.redis.close()
        logger.info("Services closed")
