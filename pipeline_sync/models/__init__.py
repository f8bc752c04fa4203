"""Data models for the pipeline board sync service."""

from .api_response import (
    ActionResult,
    BuildTriggerRequest,
    ContainerStatusRefresh,
    DeploymentFailure,
    DeploymentNotification,
    DeploymentResponse,
    SimulatedWebhook,
    WebhookResponse,
)
from .board import (
    BoardItem,
    CIStatus,
    Column,
    ColumnValues,
    ContainerStatus,
    GitStatus,
    ReconcileOutcome,
    ReconcileResult,
    StageStatus,
)
from .build import (
    BuildRecord,
    BuildState,
    CITestReport,
    MonitorInfo,
    MonitorPhase,
    StageResult,
)
from .container import ContainerRecord, ContainerSummary
from .events import EventKind, PipelineEvent, RepositoryRef, TrackingIdentity

__all__ = [
    # Event models
    "EventKind",
    "PipelineEvent",
    "RepositoryRef",
    "TrackingIdentity",
    # Board models
    "BoardItem",
    "Column",
    "ColumnValues",
    "GitStatus",
    "CIStatus",
    "StageStatus",
    "ContainerStatus",
    "ReconcileOutcome",
    "ReconcileResult",
    # Build models
    "BuildRecord",
    "BuildState",
    "StageResult",
    "CITestReport",
    "MonitorInfo",
    "MonitorPhase",
    # Container models
    "ContainerRecord",
    "ContainerSummary",
    # API models
    "WebhookResponse",
    "SimulatedWebhook",
    "DeploymentNotification",
    "DeploymentFailure",
    "DeploymentResponse",
    "ContainerStatusRefresh",
    "BuildTriggerRequest",
    "ActionResult",
]
