"""
Column projections.

Rule tables turning event, build and container facts into board column
values. A projection may carry empty values for facts the event lacks;
the reconciler drops them so a populated column is never blanked.
"""

from typing import Dict, Iterable, Optional

from pipeline_sync.models.board import (
    CIStatus,
    Column,
    ColumnValues,
    ContainerStatus,
    GitStatus,
    StageStatus,
)
from pipeline_sync.models.build import BuildRecord, BuildState, CITestReport, StageResult
from pipeline_sync.models.container import ContainerRecord
from pipeline_sync.models.events import PipelineEvent, RepositoryRef


DIRECT_PUSH_IDENTITY = "main-direct-push"
AUTO_TRIGGERED_BUILD = "Auto-triggered by GitHub"

CI_STATUS_BY_STATE: Dict[BuildState, CIStatus] = {
    BuildState.QUEUED: CIStatus.BUILDING,
    BuildState.BUILDING: CIStatus.BUILDING,
    BuildState.SUCCESS: CIStatus.SUCCESS,
    BuildState.FAILED: CIStatus.FAILED,
    BuildState.UNSTABLE: CIStatus.UNSTABLE,
    BuildState.ABORTED: CIStatus.ABORTED,
}

# Pull request action -> source-control status label
PULL_REQUEST_STATUS: Dict[str, GitStatus] = {
    "opened": GitStatus.OPEN,
    "reopened": GitStatus.IN_PROGRESS,
    "ready_for_review": GitStatus.IN_PROGRESS,
}

REVIEW_LABELS: Dict[str, str] = {
    "approved": "Approved",
    "changes_requested": "Changes Requested",
    "commented": "Commented",
}

# docker inspect State.Status -> container status label
CONTAINER_STATUS_BY_STATE: Dict[str, ContainerStatus] = {
    "running": ContainerStatus.RUNNING,
    "created": ContainerStatus.STARTING,
    "exited": ContainerStatus.EXITED,
    "paused": ContainerStatus.PAUSED,
    "restarting": ContainerStatus.RESTARTING,
    "removing": ContainerStatus.REMOVING,
    "dead": ContainerStatus.DEAD,
}


def ci_job_name(repository: RepositoryRef, default_job: str) -> str:
    """CI job name for a repository: its short name, else the default job."""
    return repository.short_name or default_job


def stage_label(succeeded: bool) -> StageStatus:
    return StageStatus.SUCCESS if succeeded else StageStatus.FAILED


def container_status_label(status: str) -> object:
    """Map a runtime status string ('running', 'Up 2 hours', ...) to a label."""
    lowered = status.strip().lower()
    if lowered.startswith("up"):
        return ContainerStatus.RUNNING
    for state, label in CONTAINER_STATUS_BY_STATE.items():
        if lowered.startswith(state):
            return label
    return status.strip().capitalize() or ContainerStatus.STOPPED


def _repository_columns(repository: RepositoryRef) -> ColumnValues:
    return {
        Column.REPO_NAME: repository.short_name,
        Column.REPO_URL: repository.html_url,
    }


# ========== Source-control projections ==========

def feature_push(event: PipelineEvent, job_name: str) -> ColumnValues:
    """
    Project an ordinary push.

    A merge landing on main whose feature branch cannot be named is
    recorded against main itself as Completed.
    """
    status = GitStatus.COMPLETED if event.is_main_branch and event.is_merge_commit else GitStatus.IN_PROGRESS
    return {
        Column.GITHUB_STATUS: status,
        Column.DEVELOPER: event.actor,
        Column.COMMIT_MESSAGE: event.commit_message,
        Column.PR_URL: event.pull_request_url,
        Column.BUILD_STATUS: StageStatus.PENDING,
        **_repository_columns(event.repository),
        Column.CI_JOB_NAME: job_name,
    }


def merge_to_main(event: PipelineEvent, job_name: str) -> ColumnValues:
    return {
        Column.GITHUB_STATUS: GitStatus.COMPLETED,
        Column.COMMIT_MESSAGE: event.commit_message,
        Column.CI_STATUS: CIStatus.BUILDING,
        Column.BUILD_STATUS: StageStatus.RUNNING,
        **_repository_columns(event.repository),
        Column.CI_JOB_NAME: job_name,
    }


def direct_main_push(event: PipelineEvent, ci_url: str, job_name: str) -> ColumnValues:
    return {
        Column.GITHUB_STATUS: GitStatus.DIRECT_PUSH,
        Column.DEVELOPER: event.actor,
        Column.COMMIT_MESSAGE: event.commit_message,
        **_repository_columns(event.repository),
        **build_start(
            build_number=AUTO_TRIGGERED_BUILD,
            build_url=f"{ci_url.rstrip('/')}/job/{job_name}",
            job_name=job_name,
        ),
    }


def pull_request(event: PipelineEvent) -> ColumnValues:
    """
    Project a pull request event.

    | action             | status      | extra columns                    |
    | opened             | Open        | PR URL, commit message           |
    | reopened           | In Progress | PR URL                           |
    | closed, merged     | Completed   | "Merged: <title>", PR URL, reviewer |
    | closed, not merged | Closed      | PR URL                           |
    | anything else      | In Progress |                                  |
    """
    action = event.action or ""
    values: ColumnValues = {
        Column.DEVELOPER: event.actor,
        **_repository_columns(event.repository),
    }

    if action == "closed":
        values[Column.PR_URL] = event.pull_request_url
        if event.is_merge_commit:
            values[Column.GITHUB_STATUS] = GitStatus.COMPLETED
            values[Column.COMMIT_MESSAGE] = f"Merged: {event.pull_request_title or event.commit_message}"
            if event.reviewer:
                values[Column.REVIEWER] = event.reviewer
        else:
            values[Column.GITHUB_STATUS] = GitStatus.CLOSED
        return values

    values[Column.GITHUB_STATUS] = PULL_REQUEST_STATUS.get(action, GitStatus.IN_PROGRESS)
    if action in ("opened", "reopened"):
        values[Column.PR_URL] = event.pull_request_url
    if action == "opened":
        values[Column.COMMIT_MESSAGE] = event.commit_message
    return values


def pull_request_review(event: PipelineEvent) -> ColumnValues:
    state = (event.review_state or "").lower()
    label = REVIEW_LABELS.get(state, state or "Commented")
    return {
        Column.GITHUB_STATUS: f"Review - {label}",
        Column.COMMIT_MESSAGE: f"PR Review: {label} by {event.reviewer or 'Unknown'}",
    }


# ========== Build projections ==========

def build_start(build_number: str, build_url: str, job_name: str) -> ColumnValues:
    return {
        Column.CI_STATUS: CIStatus.BUILDING,
        Column.BUILD_STATUS: StageStatus.RUNNING,
        Column.TEST_STATUS: StageStatus.RUNNING,
        Column.BUILD_NUMBER: build_number,
        Column.BUILD_URL: build_url,
        Column.CI_JOB_NAME: job_name,
    }


def stage_rollup(stages: Iterable[StageResult]) -> str:
    """One-line summary of stage results, e.g. 'Build: SUCCESS (12.3s) | Test: FAILED (4.0s)'."""
    return " | ".join(
        f"{stage.name}: {stage.status} ({stage.duration_ms / 1000:.1f}s)"
        for stage in stages
    )


def build_completion(record: BuildRecord) -> ColumnValues:
    succeeded = record.state == BuildState.SUCCESS
    timeline = stage_rollup(record.stages)
    if not timeline:
        timeline = "Build completed successfully" if succeeded else "Build failed"
    return {
        Column.CI_STATUS: CI_STATUS_BY_STATE[record.state],
        Column.BUILD_STATUS: stage_label(succeeded),
        Column.DEPLOY_STATUS: stage_label(succeeded),
        Column.BUILD_NUMBER: str(record.build_number),
        Column.BUILD_URL: record.build_url,
        Column.BUILD_TIMELINE: timeline,
    }


def monitoring_failure(error: str) -> ColumnValues:
    return {
        Column.CI_STATUS: CIStatus.FAILED,
        Column.BUILD_STATUS: StageStatus.FAILED,
        Column.DEPLOY_STATUS: StageStatus.FAILED,
        Column.BUILD_TIMELINE: "Build failed",
        Column.ERROR_MESSAGE: error,
    }


def stage_tests(stage: StageResult, report: Optional[CITestReport] = None) -> ColumnValues:
    values: ColumnValues = {Column.TEST_STATUS: stage_label(stage.succeeded)}
    if report is not None and report.total:
        values[Column.TEST_COUNT] = f"{report.passed}/{report.total}"
    else:
        values[Column.TEST_COUNT] = "N/A"
    return values


def stage_build(stage: StageResult) -> ColumnValues:
    return {Column.BUILD_STATUS: stage_label(stage.succeeded)}


def stage_deploy(stage: StageResult) -> ColumnValues:
    return {Column.DEPLOY_STATUS: stage_label(stage.succeeded)}


def stage_generic(stage: StageResult) -> ColumnValues:
    return {Column.BUILD_TIMELINE: f"Stage: {stage.name} - {stage.status}"}


# ========== Container projections ==========

def container_deployed(
    record: ContainerRecord,
    build_number: Optional[str] = None,
    image_tag: Optional[str] = None
) -> ColumnValues:
    values: ColumnValues = {
        Column.DEPLOY_STATUS: StageStatus.SUCCESS,
        Column.CONTAINER_STATUS: container_status_label(record.status),
        Column.CONTAINER_ID: record.container_id,
        Column.IMAGE_VERSION: image_tag or record.image_version,
        Column.PORTS: record.exposed_ports,
        Column.HEALTH: record.health,
        Column.RESOURCE_USAGE: record.resource_usage,
        Column.DEPLOYED_AT: record.deployed_at,
    }
    if build_number:
        values[Column.BUILD_NUMBER] = str(build_number)
    return values


def container_failed(error_message: Optional[str], build_number: Optional[str] = None) -> ColumnValues:
    values: ColumnValues = {
        Column.DEPLOY_STATUS: StageStatus.FAILED,
        Column.CONTAINER_STATUS: ContainerStatus.FAILED,
        Column.ERROR_MESSAGE: error_message or "Docker deployment failed",
    }
    if build_number:
        values[Column.BUILD_NUMBER] = str(build_number)
    return values


def container_status(record: ContainerRecord) -> ColumnValues:
    return {
        Column.CONTAINER_STATUS: container_status_label(record.status),
        Column.HEALTH: record.health,
        Column.RESOURCE_USAGE: record.resource_usage,
    }
