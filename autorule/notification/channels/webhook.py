"""Webhook output channel."""

from datetime import datetime, timezone

import httpx

from autorule.core.logging import get_logger
from autorule.models.notification import OutputTask
from autorule.models.rule import OutputPlatform
from autorule.notification.channels.base import OutputChannel

logger = get_logger(__name__)


class WebhookChannel(OutputChannel):
    """POSTs the run result as JSON to the destination URL."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        """Initialize HTTP client."""
        self._client = client or httpx.AsyncClient(timeout=10.0)

    @property
    def platform(self) -> str:
        return OutputPlatform.WEBHOOK.value

    async def send(self, task: OutputTask) -> bool:
        """POST ``{rule, result, message, timestamp}`` to the destination.

        Returns:
            True on any 2xx answer
        """
        body = {
            "rule": task.rule_name,
            "rule_id": task.rule_id,
            "result": task.result,
            "message": task.message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        try:
            response = await self._client.post(task.destination, json=body)
        except httpx.HTTPError as e:
            logger.error("Webhook send error", task_id=task.task_id, error=str(e))
            return False

        if response.is_success:
            logger.info("Webhook delivered", task_id=task.task_id, status_code=response.status_code)
            return True

        logger.warning(
            "Webhook send failed",
            task_id=task.task_id,
            status_code=response.status_code,
        )
        return False

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
