"""
Shared FastAPI dependencies.
"""

from fastapi import Depends, Header, HTTPException, Request

from pipeline_sync.config import Settings, get_settings
from pipeline_sync.services.container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    """Service container built at application startup."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return container


async def verify_api_key(
    x_api_key: str = Header(None),
    settings: Settings = Depends(get_settings)
) -> None:
    """
    Verify API key for admin endpoints.

    Args:
        x_api_key: API key from request header
        settings: Application settings

    Raises:
        HTTPException: If API key is invalid or missing
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="API key required")

    expected_key = settings.admin_api_key or settings.github_webhook_secret
    if not expected_key:
        raise HTTPException(status_code=503, detail="Admin API key not configured")

    if x_api_key != expected_key:
        raise HTTPException(status_code=401, detail="Invalid API key")
