"""Scheduled-tick route called by an external cron service."""

import secrets
from typing import Annotated

from fastapi import APIRouter, Header, HTTPException

from autorule.api.deps import OrchestratorDep
from autorule.core.config import get_settings
from autorule.core.logging import get_logger
from autorule.schemas.execution import TickResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


def verify_cron_secret(authorization: str | None) -> None:
    """Require ``Authorization: Bearer <cron_secret>``.

    Raises:
        HTTPException: 503 when no secret is configured, 401 when it does not match
    """
    cron_secret = get_settings().cron_secret
    if not cron_secret:
        logger.error("Cron secret is not configured")
        raise HTTPException(status_code=503, detail="Cron not configured")

    provided = (authorization or "").removeprefix("Bearer ").strip()
    if not secrets.compare_digest(provided, cron_secret):
        logger.warning("Unauthorized cron request")
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.api_route("/execute-scheduled-rules", methods=["GET", "POST"], response_model=TickResponse)
async def execute_scheduled_rules(
    orchestrator: OrchestratorDep,
    authorization: Annotated[str | None, Header()] = None,
) -> TickResponse:
    """Run every scheduled rule that is due."""
    verify_cron_secret(authorization)
    report = await orchestrator.run_scheduled_tick()
    return TickResponse(result=report)
