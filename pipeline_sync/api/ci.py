"""
CI build inspection and trigger endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pipeline_sync.api.dependencies import get_container, verify_api_key
from pipeline_sync.models.api_response import ActionResult, BuildTriggerRequest
from pipeline_sync.models.build import BuildRecord, StageResult
from pipeline_sync.services.container import ServiceContainer
from pipeline_sync.services.errors import CIClientError
from pipeline_sync.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/ci",
    tags=["ci"],
    dependencies=[Depends(verify_api_key)]
)


def _job(container: ServiceContainer, job: Optional[str]) -> str:
    return job or container.settings.jenkins_job_name


def _raise_for(error: CIClientError) -> None:
    status_code = 404 if error.status_code == 404 else 502
    raise HTTPException(status_code=status_code, detail=str(error))


async def _stages(container: ServiceContainer, record: BuildRecord) -> List[StageResult]:
    # Freestyle jobs have no workflow stages
    try:
        return await container.jenkins.get_stages(record.job_name, record.build_number)
    except CIClientError as e:
        logger.info(f"No stages for build #{record.build_number}: {e}")
        return []


@router.get("/job", response_model=ActionResult)
async def job_status(
    job: Optional[str] = Query(None),
    container: ServiceContainer = Depends(get_container)
) -> ActionResult:
    """Summary of a job and its five most recent builds."""
    job_name = _job(container, job)
    try:
        data = await container.jenkins.get_job(job_name)
    except CIClientError as e:
        _raise_for(e)

    builds = [
        {"number": build.get("number"), "url": build.get("url")}
        for build in (data.get("builds") or [])[:5]
    ]
    return ActionResult(
        success=True,
        message=f"Job {job_name}",
        data={
            "name": data.get("name", job_name),
            "url": data.get("url"),
            "color": data.get("color"),
            "builds": builds,
        },
    )


@router.get("/builds/last", response_model=ActionResult)
async def last_build(
    job: Optional[str] = Query(None),
    container: ServiceContainer = Depends(get_container)
) -> ActionResult:
    """Most recent build of a job with its stages."""
    try:
        record = await container.jenkins.get_last_build(_job(container, job))
    except CIClientError as e:
        _raise_for(e)

    record.stages = await _stages(container, record)
    return ActionResult(
        success=True,
        message=f"Build #{record.build_number}",
        data={"build": record.model_dump(mode="json")},
    )


@router.get("/builds/{build_number}", response_model=ActionResult)
async def build_info(
    build_number: int,
    job: Optional[str] = Query(None),
    container: ServiceContainer = Depends(get_container)
) -> ActionResult:
    """A specific build of a job with its stages."""
    try:
        record = await container.jenkins.get_build(_job(container, job), build_number)
    except CIClientError as e:
        _raise_for(e)

    record.stages = await _stages(container, record)
    return ActionResult(
        success=True,
        message=f"Build #{record.build_number}",
        data={"build": record.model_dump(mode="json")},
    )


@router.get("/builds/{build_number}/console", response_model=ActionResult)
async def console_output(
    build_number: int,
    job: Optional[str] = Query(None),
    container: ServiceContainer = Depends(get_container)
) -> ActionResult:
    job_name = _job(container, job)
    try:
        output = await container.jenkins.get_console_output(job_name, build_number)
    except CIClientError as e:
        _raise_for(e)
    return ActionResult(
        success=True,
        message=f"Console output of build #{build_number}",
        data={"job_name": job_name, "build_number": build_number, "output": output},
    )


@router.post("/builds/trigger", response_model=ActionResult)
async def trigger_build(
    request: BuildTriggerRequest,
    container: ServiceContainer = Depends(get_container)
) -> ActionResult:
    """Trigger a parameterized build manually."""
    job_name = _job(container, request.job_name)
    try:
        queue_url = await container.jenkins.trigger_build(job_name, request.parameters)
    except CIClientError as e:
        logger.error(f"Failed to trigger {job_name}: {e}", extra={"job_name": job_name})
        raise HTTPException(status_code=502, detail=str(e))

    logger.info(f"Triggered build of {job_name}", extra={"job_name": job_name})
    return ActionResult(
        success=True,
        message="Build triggered successfully",
        data={"job_name": job_name, "queue_url": queue_url},
    )
