"""Output worker for processing the output delivery queue."""

import asyncio
from datetime import datetime, timezone

from redis.asyncio import Redis

from autorule.actions.provider import ActionProvider
from autorule.core.config import get_settings
from autorule.core.logging import get_logger
from autorule.models.notification import OutputTask
from autorule.notification.channels.action import GmailChannel, SlackChannel
from autorule.notification.channels.base import OutputChannel
from autorule.notification.channels.webhook import WebhookChannel
from autorule.observability.metrics import OUTPUT_QUEUE_LENGTH, OUTPUTS_SENT
from autorule.storage.auxiliary import OutputQueue

logger = get_logger(__name__)


class OutputWorker:
    """Worker delivering queued run results to their output platform."""

    def __init__(
        self,
        action_provider: ActionProvider,
        redis: Redis | None = None,
        channels: list[OutputChannel] | None = None,
    ):
        """Initialize worker.

        Args:
            action_provider: Tool execution service used by Slack and Gmail
            redis: Redis client (defaults to the shared pool)
            channels: Override the default channel set
        """
        self._settings = get_settings()
        self._queue = OutputQueue(redis)
        self._should_stop = False

        if channels is None:
            channels = [
                SlackChannel(action_provider),
                GmailChannel(action_provider),
                WebhookChannel(),
            ]
        self._channels: dict[str, OutputChannel] = {c.platform: c for c in channels}

    async def start(self) -> None:
        """Start processing the output queue."""
        logger.info("Output worker started")

        while not self._should_stop:
            try:
                task = await self._queue.dequeue(timeout=5)
                if task:
                    await self.process_task(task)
                OUTPUT_QUEUE_LENGTH.set(await self._queue.queue_length())
            except Exception as e:
                logger.error("Worker error", error=str(e), exc_info=True)
                await asyncio.sleep(1)

        logger.info("Output worker stopped")

    def stop(self) -> None:
        """Signal worker to stop."""
        self._should_stop = True

    async def close(self) -> None:
        """Clean up resources."""
        for channel in self._channels.values():
            await channel.close()

    async def process_task(self, task: OutputTask) -> bool:
        """Deliver a single output task.

        Failed deliveries are requeued with exponential backoff until
        ``output_max_retry`` is exhausted, then parked in the dead letter list.

        Returns:
            True if delivered
        """
        if task.retry_after and task.retry_after > datetime.now(timezone.utc):
            # Not yet due; put it back and yield to other tasks
            await self._queue.enqueue(task)
            await asyncio.sleep(min((task.retry_after - datetime.now(timezone.utc)).total_seconds(), 1.0))
            return False

        platform = task.platform.value
        channel = self._channels.get(platform)
        if not channel:
            logger.warning("Unknown output platform", platform=platform, task_id=task.task_id)
            await self._queue.move_to_dead_letter(task)
            return False

        try:
            success = await channel.send(task)
        except Exception as e:
            logger.error("Channel send error", platform=platform, error=str(e))
            success = False

        OUTPUTS_SENT.labels(platform=platform, status="success" if success else "failure").inc()

        if success:
            logger.info("Output processed", task_id=task.task_id, platform=platform)
            return True

        if task.should_retry(self._settings.output_max_retry):
            delay = await self._queue.requeue_with_delay(task)
            logger.info(
                "Output requeued for retry",
                task_id=task.task_id,
                retry_count=task.retry_count,
                delay_seconds=delay,
            )
        else:
            await self._queue.move_to_dead_letter(task)
            logger.warning("Output moved to dead letter", task_id=task.task_id)
        return False
