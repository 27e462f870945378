"""Post-run notification and output queuing."""

import uuid

from redis.asyncio import Redis

from autorule.core.logging import get_logger
from autorule.models.execution import RuleExecutionResult
from autorule.models.notification import Notification, NotificationType, OutputTask
from autorule.models.rule import OutputPlatform, Rule
from autorule.storage.auxiliary import NotificationStore, OutputQueue

logger = get_logger(__name__)

BODY_LIMIT = 200


class OutputDispatcher:
    """Creates in-app notifications and queues output deliveries for runs."""

    def __init__(self, redis: Redis | None = None):
        """Initialize dispatcher.

        Args:
            redis: Redis client (defaults to the shared pool)
        """
        self._queue = OutputQueue(redis)
        self._notifications = NotificationStore(redis)

    async def notify(
        self,
        rule: Rule,
        user_id: str,
        result: RuleExecutionResult,
        message: str | None = None,
        fallback_body: str = "Rule executed successfully.",
    ) -> Notification:
        """Create the in-app notification for a run.

        Args:
            rule: Rule that ran
            user_id: Owner to notify
            result: Run result
            message: Formatted output, used as the body of a successful run
            fallback_body: Body when a successful run produced no output
        """
        notification = self.build_notification(rule, user_id, result, message, fallback_body)
        await self._notifications.create(notification)
        logger.debug("Notification created", notification_id=notification.id, rule_id=rule.id)
        return notification

    async def dispatch_output(
        self,
        rule: Rule,
        user_id: str,
        result: RuleExecutionResult,
        message: str,
    ) -> OutputTask | None:
        """Queue delivery of a run result to the rule's output platform.

        Returns:
            The queued task, or None when the rule has no output platform
        """
        output_config = rule.output_config
        if output_config.platform == OutputPlatform.NONE or not output_config.destination:
            return None

        task = OutputTask(
            task_id=f"output_{uuid.uuid4().hex[:12]}",
            rule_id=rule.id,
            rule_name=rule.name,
            user_id=user_id,
            platform=output_config.platform,
            destination=output_config.destination,
            message=message,
            result=result.model_dump(mode="json"),
        )
        await self._queue.enqueue(task)

        logger.info(
            "Output queued",
            task_id=task.task_id,
            rule_id=rule.id,
            platform=task.platform.value,
        )
        return task

    @staticmethod
    def build_notification(
        rule: Rule,
        user_id: str,
        result: RuleExecutionResult,
        message: str | None = None,
        fallback_body: str = "Rule executed successfully.",
    ) -> Notification:
        if result.success:
            title = f"{rule.name} completed"
            body = (message or result.output or "")[:BODY_LIMIT] or fallback_body
            kind = NotificationType.EXECUTION_SUCCESS
        else:
            title = f"{rule.name} failed"
            body = (result.error or "")[:BODY_LIMIT] or "An unknown error occurred."
            kind = NotificationType.EXECUTION_FAILURE

        return Notification(
            id=NotificationStore.generate_id(),
            user_id=user_id,
            type=kind,
            title=title,
            body=body,
            rule_id=rule.id,
            rule_name=rule.name,
        )
