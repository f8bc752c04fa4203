"""
Pipeline Coordinator.

Per-request flow for inbound events:

    normalize -> resolve identity -> project columns -> reconcile -> [start monitor]

Deployment notifications from CI take a shorter path through the
container runtime and the reconciler.
"""

from typing import Iterable, Optional

from pydantic import BaseModel

from pipeline_sync.models.api_response import (
    ContainerStatusRefresh,
    DeploymentFailure,
    DeploymentNotification,
    DeploymentResponse,
)
from pipeline_sync.models.board import ColumnValues, ReconcileOutcome
from pipeline_sync.models.events import EventKind, PipelineEvent, TrackingIdentity
from pipeline_sync.services import projections
from pipeline_sync.services.build_monitor import ContainerRuntime
from pipeline_sync.services.container_locator import locate
from pipeline_sync.services.errors import ContainerRuntimeError, GitHubClientError
from pipeline_sync.services.github_client import GitHubClient
from pipeline_sync.services.identity import IdentityPolicy, IdentityUnresolvable, resolve_identity
from pipeline_sync.services.monitor_registry import MonitorRegistry
from pipeline_sync.services.normalizer import MAIN_BRANCHES, WebhookNormalizer
from pipeline_sync.services.reconciler import BoardReconciler, ReconciliationFailure
from pipeline_sync.utils.logging import get_logger, log_webhook_event

logger = get_logger(__name__)


class SyncResult(BaseModel):
    """Outcome of handling one source-control event."""

    event: PipelineEvent
    identity: Optional[TrackingIdentity] = None
    outcome: Optional[ReconcileOutcome] = None
    board_updated: bool = False
    monitor_started: bool = False
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.outcome == ReconcileOutcome.SKIPPED


def is_direct_main_push(event: PipelineEvent) -> bool:
    """A non-merge push onto main/master."""
    return (
        event.event_kind == EventKind.PUSH
        and event.is_main_branch
        and not event.is_merge_commit
    )


def is_merge_to_main(event: PipelineEvent) -> bool:
    """A merge commit pushed onto main/master whose feature branch is known."""
    return (
        event.event_kind == EventKind.PUSH
        and event.is_merge_commit
        and event.ref_branch in MAIN_BRANCHES
        and not event.is_main_branch
    )


def item_name_for(*candidates: Optional[str]) -> Optional[TrackingIdentity]:
    """Identity from the first non-empty candidate, with the next as fallback."""
    names = [name for name in candidates if name]
    if not names:
        return None
    secondary = next((name for name in names[1:] if name != names[0]), None)
    return TrackingIdentity(canonical_name=names[0], secondary_name=secondary)


class PipelineCoordinator:
    """Runs the ingest flows against the reconciler and monitor registry."""

    def __init__(
        self,
        normalizer: WebhookNormalizer,
        reconciler: BoardReconciler,
        registry: MonitorRegistry,
        containers: ContainerRuntime,
        github: Optional[GitHubClient] = None,
        ci_url: str = "",
        default_job_name: str = "",
        policies: Iterable[IdentityPolicy] = ()
    ):
        self._normalizer = normalizer
        self._reconciler = reconciler
        self._registry = registry
        self._containers = containers
        self._github = github
        self._ci_url = ci_url
        self._default_job = default_job_name
        self._policies = list(policies)

    # ========== Source-control events ==========

    async def _recover_merge_source(self, event: PipelineEvent) -> PipelineEvent:
        """Ask GitHub for the head branch of a merge that only names its PR."""
        if (
            self._github is None
            or event.event_kind != EventKind.PUSH
            or not event.is_merge_commit
            or event.merge_source_branch
            or event.pull_request_number is None
        ):
            return event

        try:
            head = await self._github.get_pull_request_head(
                event.repository.full_name, event.pull_request_number
            )
        except GitHubClientError as e:
            logger.warning(
                f"Could not recover head branch of PR #{event.pull_request_number}: {e}",
                extra={"repository": event.repository.full_name}
            )
            return event

        if not head:
            return event
        return event.model_copy(update={
            "merge_source_branch": head,
            "source_branch": head,
            "is_main_branch": head in MAIN_BRANCHES,
        })

    def _project(self, event: PipelineEvent, job_name: str) -> ColumnValues:
        if event.event_kind == EventKind.PULL_REQUEST:
            return projections.pull_request(event)
        if event.event_kind == EventKind.PULL_REQUEST_REVIEW:
            return projections.pull_request_review(event)
        if is_direct_main_push(event):
            return projections.direct_main_push(event, self._ci_url, job_name)
        if is_merge_to_main(event):
            return projections.merge_to_main(event, job_name)
        return projections.feature_push(event, job_name)

    async def handle_source_event(self, event_header: Optional[str], payload: object) -> SyncResult:
        """
        Handle one GitHub webhook.

        Args:
            event_header: X-GitHub-Event header value
            payload: Parsed JSON body

        Returns:
            SyncResult; board failures are reported in it, not raised

        Raises:
            MalformedPayload: If the payload is structurally unparseable
        """
        event = self._normalizer.normalize(event_header, payload)

        if event.event_kind == EventKind.UNKNOWN:
            log_webhook_event(logger, event.event_kind.value, event.repository.full_name, action=event.action)
            return SyncResult(event=event, outcome=ReconcileOutcome.SKIPPED)

        event = await self._recover_merge_source(event)
        job_name = projections.ci_job_name(event.repository, self._default_job)

        direct = is_direct_main_push(event)
        try:
            if direct:
                identity = TrackingIdentity(canonical_name=projections.DIRECT_PUSH_IDENTITY)
            else:
                identity = resolve_identity(event, self._policies)
        except IdentityUnresolvable as e:
            logger.warning(f"Skipping event: {e}", extra={"event_kind": event.event_kind.value})
            return SyncResult(event=event, outcome=ReconcileOutcome.SKIPPED)

        log_webhook_event(
            logger,
            event.event_kind.value,
            event.repository.full_name,
            tracking_name=identity.canonical_name,
            action=event.action,
        )

        result = SyncResult(event=event, identity=identity)
        try:
            reconcile = await self._reconciler.upsert(identity, self._project(event, job_name), event=event)
            result.outcome = reconcile.outcome
            result.board_updated = not reconcile.skipped
        except ReconciliationFailure as e:
            logger.error(str(e), extra={"tracking_name": identity.canonical_name})
            result.error = str(e)

        if (direct or is_merge_to_main(event)) and not result.skipped:
            self._registry.start(identity, job_name)
            result.monitor_started = True

        return result

    # ========== Deployment notifications ==========

    async def _locate_container(self, repository_name: Optional[str]) -> Optional[str]:
        if not repository_name:
            return None
        try:
            return locate(repository_name, await self._containers.list())
        except ContainerRuntimeError as e:
            logger.warning(f"Could not list containers: {e}")
            return None

    async def _upsert(self, identity: TrackingIdentity, values: ColumnValues) -> bool:
        try:
            await self._reconciler.upsert(identity, values)
            return True
        except ReconciliationFailure as e:
            logger.error(str(e), extra={"tracking_name": identity.canonical_name})
            return False

    async def handle_deployment_notification(self, notification: DeploymentNotification) -> DeploymentResponse:
        """
        Record a successful container deployment on the board.

        The container is located by repository name, falling back to the
        given container name. The board item is the branch, else the
        feature, else the container name.
        """
        container_name = (
            await self._locate_container(notification.repository_name)
            or notification.container_name
        )
        if not container_name:
            return DeploymentResponse(
                success=False,
                message="No container to inspect",
                error="container_name or a matching repository_name is required",
            )

        try:
            record = await self._containers.inspect(container_name)
        except ContainerRuntimeError as e:
            return DeploymentResponse(
                success=False,
                message="Failed to retrieve container information",
                error=str(e),
            )

        identity = item_name_for(
            notification.branch_name,
            notification.feature_name,
            notification.container_name or container_name,
        )
        board_updated = await self._upsert(
            identity,
            projections.container_deployed(
                record,
                build_number=notification.build_number,
                image_tag=notification.image_tag,
            ),
        )
        return DeploymentResponse(
            success=True,
            message="Docker deployment tracked successfully",
            container=record,
            board_updated=board_updated,
        )

    async def handle_deployment_failure(self, failure: DeploymentFailure) -> DeploymentResponse:
        """
        Record a failed deployment on the board and comment the error.

        Raises:
            ValueError: If neither feature nor branch name is given
        """
        identity = item_name_for(failure.branch_name, failure.feature_name)
        if identity is None:
            raise ValueError("feature_name or branch_name is required")

        error_message = failure.error_message or "Docker deployment failed"
        board_updated = await self._upsert(
            identity,
            projections.container_failed(error_message, failure.build_number),
        )

        try:
            await self._reconciler.comment(identity, f"Deployment failed: {error_message}")
        except ReconciliationFailure as e:
            logger.warning(f"Could not post failure comment: {e}")

        return DeploymentResponse(
            success=True,
            message="Docker deployment failure tracked",
            board_updated=board_updated,
        )

    async def refresh_container_status(self, request: ContainerStatusRefresh) -> DeploymentResponse:
        """Push a container's current status, health and resource usage onto its item."""
        try:
            record = await self._containers.inspect(request.container_name)
        except ContainerRuntimeError as e:
            return DeploymentResponse(success=False, message="Container not found", error=str(e))

        identity = item_name_for(request.branch_name, request.feature_name, request.container_name)
        board_updated = await self._upsert(identity, projections.container_status(record))
        return DeploymentResponse(
            success=True,
            message="Board updated with container status",
            container=record,
            board_updated=board_updated,
        )
