"""Inbound trigger webhook route."""

import json
import secrets
from typing import Annotated

from fastapi import APIRouter, Header, HTTPException, Request

from autorule.api.deps import OrchestratorDep
from autorule.core.config import get_settings
from autorule.core.logging import get_logger
from autorule.models.dispatch import InboundAck

logger = get_logger(__name__)

router = APIRouter(prefix="/triggers", tags=["triggers"])


@router.post("/webhook", response_model=InboundAck, response_model_exclude_none=True, status_code=202)
async def receive_webhook(
    request: Request,
    orchestrator: OrchestratorDep,
    x_webhook_secret: Annotated[str | None, Header()] = None,
) -> InboundAck:
    """Accept a trigger event from an integration provider.

    The event is acknowledged right away; matching and execution continue
    in the background.
    """
    settings = get_settings()
    if settings.webhook_secret and not secrets.compare_digest(
        x_webhook_secret or "", settings.webhook_secret
    ):
        logger.warning("Webhook rejected: bad secret")
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        envelope = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from e

    if not isinstance(envelope, dict):
        raise HTTPException(status_code=400, detail="Webhook body must be a JSON object")

    ack = await orchestrator.receive(envelope)
    logger.info(
        "Webhook acknowledged",
        processed=ack.processed,
        reason=ack.reason,
        trigger_slug=ack.trigger_slug,
    )
    return ack
