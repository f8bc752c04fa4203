"""
Deployment notification and container management endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from pipeline_sync.api.dependencies import get_container, verify_api_key
from pipeline_sync.models.api_response import (
    ActionResult,
    ContainerStatusRefresh,
    DeploymentFailure,
    DeploymentNotification,
    DeploymentResponse,
)
from pipeline_sync.models.container import ContainerRecord
from pipeline_sync.services.container import ServiceContainer
from pipeline_sync.services.errors import ContainerRuntimeError
from pipeline_sync.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/docker", tags=["docker"])


def _failed(response: DeploymentResponse, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=response.model_dump())


@router.post("/deploy-notification", response_model=DeploymentResponse)
async def deployment_notification(
    notification: DeploymentNotification,
    container: ServiceContainer = Depends(get_container)
):
    """
    Record a container deployment reported by CI.

    Returns 502 when the container cannot be inspected; a failed board
    update is reported as board_updated false.
    """
    logger.info(
        f"Deployment notification for {notification.branch_name or notification.feature_name}",
        extra={"repository": notification.repository_name}
    )
    response = await container.coordinator.handle_deployment_notification(notification)
    if not response.success:
        return _failed(response, 502)
    return response


@router.post("/deploy-failure", response_model=DeploymentResponse)
async def deployment_failure(
    failure: DeploymentFailure,
    container: ServiceContainer = Depends(get_container)
) -> DeploymentResponse:
    """Record a failed deployment reported by CI."""
    if not failure.feature_name and not failure.branch_name:
        raise HTTPException(status_code=400, detail="Feature name or branch name is required")
    return await container.coordinator.handle_deployment_failure(failure)


@router.post(
    "/update-board",
    response_model=DeploymentResponse,
    dependencies=[Depends(verify_api_key)]
)
async def update_board(
    request: ContainerStatusRefresh,
    container: ServiceContainer = Depends(get_container)
):
    """Push a container's current status onto its board item."""
    response = await container.coordinator.refresh_container_status(request)
    if not response.success:
        return _failed(response, 404)
    return response


@router.get("/containers", dependencies=[Depends(verify_api_key)])
async def list_containers(container: ServiceContainer = Depends(get_container)) -> dict:
    """List all containers known to the runtime."""
    try:
        containers = await container.docker.list()
    except ContainerRuntimeError as e:
        logger.error(f"Failed to list containers: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    return {"success": True, "containers": [c.model_dump() for c in containers]}


@router.get(
    "/status/{name}",
    response_model=ContainerRecord,
    dependencies=[Depends(verify_api_key)]
)
async def container_status(
    name: str,
    container: ServiceContainer = Depends(get_container)
) -> ContainerRecord:
    """Inspect a single container."""
    try:
        return await container.docker.inspect(name)
    except ContainerRuntimeError as e:
        raise HTTPException(status_code=404, detail=f"Container not found or not accessible: {e}")


async def _control(container: ServiceContainer, action: str, name: str) -> ActionResult:
    operation = getattr(container.docker, action)
    try:
        await operation(name)
    except ContainerRuntimeError as e:
        logger.error(f"Failed to {action} container {name}: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    return ActionResult(success=True, message=f"Container {name} {action} requested")


@router.post("/start/{name}", response_model=ActionResult, dependencies=[Depends(verify_api_key)])
async def start_container(name: str, container: ServiceContainer = Depends(get_container)) -> ActionResult:
    return await _control(container, "start", name)


@router.post("/stop/{name}", response_model=ActionResult, dependencies=[Depends(verify_api_key)])
async def stop_container(name: str, container: ServiceContainer = Depends(get_container)) -> ActionResult:
    return await _control(container, "stop", name)


@router.post("/restart/{name}", response_model=ActionResult, dependencies=[Depends(verify_api_key)])
async def restart_container(name: str, container: ServiceContainer = Depends(get_container)) -> ActionResult:
    return await _control(container, "restart", name)


@router.get("/logs/{name}", response_model=ActionResult, dependencies=[Depends(verify_api_key)])
async def container_logs(
    name: str,
    lines: int = Query(100, ge=1, le=10000),
    container: ServiceContainer = Depends(get_container)
) -> ActionResult:
    """Return the last lines of a container's output."""
    try:
        output = await container.docker.logs(name, lines)
    except ContainerRuntimeError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return ActionResult(success=True, message=f"Last {lines} log lines of {name}", data={"logs": output})
