"""Board item and column data models."""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel


class Column(str, Enum):
    """Logical board columns, mapped to concrete board column ids by the board client."""

    GITHUB_STATUS = "github_status"
    CI_STATUS = "ci_status"
    PR_URL = "pr_url"
    BUILD_URL = "build_url"
    DEVELOPER = "developer"
    REVIEWER = "reviewer"
    LAST_UPDATED = "last_updated"
    COMMIT_MESSAGE = "commit_message"
    TEST_STATUS = "test_status"
    BUILD_STATUS = "build_status"
    DEPLOY_STATUS = "deploy_status"
    BUILD_NUMBER = "build_number"
    TEST_COUNT = "test_count"
    BUILD_TIMELINE = "build_timeline"
    REPO_NAME = "repo_name"
    REPO_URL = "repo_url"
    CI_JOB_NAME = "ci_job_name"
    CONTAINER_STATUS = "container_status"
    CONTAINER_ID = "container_id"
    IMAGE_VERSION = "image_version"
    PORTS = "ports"
    HEALTH = "health"
    RESOURCE_USAGE = "resource_usage"
    DEPLOYED_AT = "deployed_at"
    ERROR_MESSAGE = "error_message"


# Columns rendered as single-select labels; all others are plain text
STATUS_COLUMNS = frozenset({
    Column.GITHUB_STATUS,
    Column.CI_STATUS,
    Column.TEST_STATUS,
    Column.BUILD_STATUS,
    Column.DEPLOY_STATUS,
    Column.CONTAINER_STATUS,
})

# Column ids of the reference pipeline board
DEFAULT_COLUMN_IDS: Dict[Column, str] = {
    Column.GITHUB_STATUS: "color_mkxt1jnm",
    Column.CI_STATUS: "color_mkxtrhcq",
    Column.PR_URL: "text_mkxthvpn",
    Column.BUILD_URL: "text_mkxt8btk",
    Column.DEVELOPER: "text_mkxtt4m",
    Column.REVIEWER: "text_mkxtr8qw",
    Column.LAST_UPDATED: "text_mkxtag7b",
    Column.COMMIT_MESSAGE: "text_mkxtbdvy",
    Column.TEST_STATUS: "color_mkxt63hr",
    Column.BUILD_STATUS: "color_mkxthsg8",
    Column.DEPLOY_STATUS: "color_mkxtkmck",
    Column.BUILD_NUMBER: "text_mkxtcexj",
    Column.TEST_COUNT: "text_mkxtfqpp",
    Column.BUILD_TIMELINE: "text_mkxtt63z",
    Column.REPO_NAME: "text_mkxvrvpf",
    Column.REPO_URL: "text_mkxvh80n",
    Column.CI_JOB_NAME: "text_mkxvbrz7",
}


class GitStatus(str, Enum):
    """Labels of the source-control status column."""

    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CLOSED = "Closed"
    DIRECT_PUSH = "Direct Push to Main"


class CIStatus(str, Enum):
    """Labels of the CI status column."""

    NOT_STARTED = "Not Started"
    BUILDING = "Building"
    SUCCESS = "Success"
    FAILED = "Failed"
    UNSTABLE = "Unstable"
    ABORTED = "Aborted"


class StageStatus(str, Enum):
    """Labels of the test/build/deploy stage columns."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCESS = "Success"
    FAILED = "Failed"
    SKIPPED = "Skipped"


class ContainerStatus(str, Enum):
    """Labels of the container status column."""

    RUNNING = "Running"
    STARTING = "Starting"
    EXITED = "Exited"
    STOPPED = "Stopped"
    PAUSED = "Paused"
    RESTARTING = "Restarting"
    REMOVING = "Removing"
    DEAD = "Dead"
    FAILED = "Failed"


# Column values: str for text columns, a label enum or str for status columns
ColumnValues = Dict[Column, object]


class BoardItem(BaseModel):
    """Row on the external board. Never cached across requests."""

    id: str
    name: str
    columns: Dict[Column, str] = {}


class ReconcileOutcome(str, Enum):
    """What a reconcile call did on the board."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class ReconcileResult(BaseModel):
    """Result of a board upsert."""

    outcome: ReconcileOutcome
    item_id: Optional[str] = None
    item_name: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.outcome == ReconcileOutcome.SKIPPED
