"""Output channels that deliver through the action provider."""

from abc import abstractmethod
from typing import Any

from autorule.actions.provider import ActionProvider
from autorule.core.exceptions import ActionExecutionError
from autorule.core.logging import get_logger
from autorule.models.notification import OutputTask
from autorule.models.rule import OutputPlatform
from autorule.notification.channels.base import OutputChannel

logger = get_logger(__name__)


class ActionOutputChannel(OutputChannel):
    """Sends output by calling a provider tool on behalf of the rule owner."""

    tool_name: str = ""

    def __init__(self, action_provider: ActionProvider):
        self._actions = action_provider

    @abstractmethod
    def build_arguments(self, task: OutputTask) -> dict[str, Any]:
        """Tool arguments carrying the task's destination and message."""
        pass

    async def send(self, task: OutputTask) -> bool:
        try:
            await self._actions.execute(self.tool_name, self.build_arguments(task), task.user_id)
        except ActionExecutionError as e:
            logger.warning(
                "Output delivery failed",
                platform=self.platform,
                task_id=task.task_id,
                error=e.message,
            )
            return False

        logger.info("Output delivered", platform=self.platform, task_id=task.task_id)
        return True


class SlackChannel(ActionOutputChannel):
    """Posts the message to a Slack channel."""

    tool_name = "SLACK_SENDS_A_MESSAGE_TO_A_SLACK_CHANNEL"

    @property
    def platform(self) -> str:
        return OutputPlatform.SLACK.value

    def build_arguments(self, task: OutputTask) -> dict[str, Any]:
        return {"channel": task.destination, "text": task.message}


class GmailChannel(ActionOutputChannel):
    """Emails the message to the destination address."""

    tool_name = "GMAIL_SEND_EMAIL"

    @property
    def platform(self) -> str:
        return OutputPlatform.GMAIL.value

    def build_arguments(self, task: OutputTask) -> dict[str, Any]:
        return {
            "recipient_email": task.destination,
            "subject": f"Automation Result: {task.rule_name}",
            "body": task.message,
        }
