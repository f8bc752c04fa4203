"""
Webhook endpoints for GitHub events.
"""

import hashlib
import hmac
import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from pipeline_sync.api.dependencies import get_container, verify_api_key
from pipeline_sync.config import Settings, get_settings
from pipeline_sync.models.api_response import SimulatedWebhook, WebhookResponse
from pipeline_sync.services.container import ServiceContainer
from pipeline_sync.services.coordinator import SyncResult
from pipeline_sync.services.normalizer import MalformedPayload
from pipeline_sync.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SIGNATURE_PREFIX = "sha256="


def verify_webhook_signature(payload: bytes, signature: Optional[str], secret: str) -> bool:
    """
    Verify a GitHub X-Hub-Signature-256 header.

    Args:
        payload: Raw request payload
        signature: Signature header, 'sha256=<hex digest>'
        secret: Webhook secret

    Returns:
        True if signature is valid, False otherwise
    """
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False

    expected_signature = hmac.new(
        secret.encode(),
        payload,
        hashlib.sha256
    ).hexdigest()

    # Constant-time comparison
    return hmac.compare_digest(signature[len(SIGNATURE_PREFIX):], expected_signature)


def build_response(result: SyncResult) -> WebhookResponse:
    """Render a coordinator result as the webhook response body."""
    event = result.event
    feature = result.identity.canonical_name if result.identity else None

    if result.skipped:
        message = f"{event.event_kind.value} event skipped"
    elif result.error:
        message = f"{event.event_kind.value} event processed, board update failed"
    else:
        message = f"{event.event_kind.value} event processed"

    return WebhookResponse(
        success=True,
        message=message,
        event=event.event_kind.value,
        feature=feature,
        repository=event.repository.full_name,
        board_updated=result.board_updated,
        skipped=result.skipped,
        monitor_started=result.monitor_started,
        error=result.error,
    )


def malformed_response(error: MalformedPayload) -> JSONResponse:
    logger.warning(f"Rejected malformed webhook payload: {error}")
    body = WebhookResponse(success=False, message="Malformed payload", error=str(error))
    return JSONResponse(status_code=400, content=body.model_dump())


async def _dispatch(container: ServiceContainer, event_header: Optional[str], payload: Any):
    try:
        result = await container.coordinator.handle_source_event(event_header, payload)
    except MalformedPayload as e:
        return malformed_response(e)
    except Exception as e:
        logger.error(f"Error handling webhook: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error processing webhook")
    return build_response(result)


@router.post("/github", response_model=WebhookResponse)
async def handle_github_webhook(
    request: Request,
    x_github_event: str = Header(None, alias="X-GitHub-Event"),
    x_hub_signature: str = Header(None, alias="X-Hub-Signature-256"),
    settings: Settings = Depends(get_settings),
    container: ServiceContainer = Depends(get_container)
):
    """
    Receive and process GitHub webhook events.

    This endpoint:
    1. Validates the webhook signature when a secret is configured
    2. Normalizes the payload into a pipeline event
    3. Upserts the board item for the event's tracking identity
    4. Starts a build monitor for pushes to main

    Returns:
        WebhookResponse; board failures are reported with success true and
        board_updated false

    Raises:
        HTTPException: If signature validation fails
    """
    payload = await request.body()

    if settings.github_webhook_secret:
        if not verify_webhook_signature(payload, x_hub_signature, settings.github_webhook_secret):
            logger.warning("Invalid webhook signature received")
            raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        payload_json = json.loads(payload)
    except ValueError:
        return malformed_response(MalformedPayload("Request body is not valid JSON"))

    return await _dispatch(container, x_github_event, payload_json)


@router.get("/test")
async def webhook_test() -> dict:
    """Liveness check of the webhook route."""
    return {"success": True, "message": "Webhook endpoint is reachable"}


@router.post(
    "/simulate/github",
    response_model=WebhookResponse,
    dependencies=[Depends(verify_api_key)]
)
async def simulate_github_webhook(
    simulated: SimulatedWebhook,
    container: ServiceContainer = Depends(get_container)
):
    """Run a GitHub payload through the pipeline without a signature check."""
    logger.info(f"Simulating {simulated.event_type} webhook")
    return await _dispatch(container, simulated.event_type, simulated.payload)
