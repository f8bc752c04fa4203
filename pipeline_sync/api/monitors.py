"""
Build monitor status endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from pipeline_sync.api.dependencies import get_container, verify_api_key
from pipeline_sync.models.build import MonitorInfo
from pipeline_sync.services.container import ServiceContainer

router = APIRouter(
    prefix="/api/monitors",
    tags=["monitors"],
    dependencies=[Depends(verify_api_key)]
)


@router.get("", response_model=List[MonitorInfo])
async def list_monitors(container: ServiceContainer = Depends(get_container)) -> List[MonitorInfo]:
    """All known monitor runs, most recently updated first."""
    return await container.registry.list()


@router.get("/{tracking_name}", response_model=MonitorInfo)
async def get_monitor(
    tracking_name: str,
    container: ServiceContainer = Depends(get_container)
) -> MonitorInfo:
    info = await container.registry.get(tracking_name)
    if info is None:
        raise HTTPException(status_code=404, detail=f"No monitor run for {tracking_name}")
    return info
