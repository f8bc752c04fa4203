"""API request and response data models."""

from typing import Any, Dict, Optional

from pydantic import BaseModel

from .container import ContainerRecord


class WebhookResponse(BaseModel):
    """Response from the source-control webhook handler."""

    success: bool
    message: str
    event: Optional[str] = None
    feature: Optional[str] = None
    repository: Optional[str] = None
    board_updated: Optional[bool] = None
    skipped: bool = False
    monitor_started: bool = False
    error: Optional[str] = None


class SimulatedWebhook(BaseModel):
    """Request body of the webhook simulation endpoint."""

    event_type: str = "push"
    payload: Dict[str, Any]


class DeploymentNotification(BaseModel):
    """Deployment notification sent by CI after a container rollout."""

    container_name: Optional[str] = None
    feature_name: Optional[str] = None
    branch_name: Optional[str] = None
    build_number: Optional[str] = None
    image_tag: Optional[str] = None
    repository_name: Optional[str] = None


class DeploymentFailure(BaseModel):
    """Failure notification sent by CI when a deployment fails."""

    feature_name: Optional[str] = None
    branch_name: Optional[str] = None
    error_message: Optional[str] = None
    build_number: Optional[str] = None


class ContainerStatusRefresh(BaseModel):
    """Request to push current container status onto a board item."""

    container_name: str
    feature_name: Optional[str] = None
    branch_name: Optional[str] = None


class DeploymentResponse(BaseModel):
    """Response from the deployment notification endpoints."""

    success: bool
    message: str
    container: Optional[ContainerRecord] = None
    board_updated: bool = False
    error: Optional[str] = None


class BuildTriggerRequest(BaseModel):
    """Manual CI build trigger request."""

    job_name: Optional[str] = None
    parameters: Dict[str, str] = {}


class ActionResult(BaseModel):
    """Generic result of an administrative action."""

    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
