"""Notification and output delivery domain models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from autorule.models.rule import OutputPlatform


class NotificationType(str, Enum):
    """In-app notification type."""

    EXECUTION_SUCCESS = "execution_success"
    EXECUTION_FAILURE = "execution_failure"


class Notification(BaseModel):
    """In-app notification created after every rule run."""

    id: str = Field(..., description="Notification identifier")
    user_id: str
    type: NotificationType
    title: str
    body: str = Field(default="", max_length=200)
    rule_id: str | None = None
    rule_name: str | None = None
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class OutputTask(BaseModel):
    """Queued delivery of a run result to its output platform."""

    task_id: str = Field(..., description="Task unique identifier")
    rule_id: str = Field(..., description="Rule that produced the result")
    rule_name: str
    user_id: str
    platform: OutputPlatform
    destination: str
    message: str = Field(..., description="Formatted output message")
    result: dict[str, Any] = Field(
        default_factory=dict,
        description="Serialized execution result (webhook body)",
    )
    retry_count: int = Field(default=0, ge=0, description="Current retry count")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    retry_after: datetime | None = Field(
        default=None,
        description="Earliest retry time (for delayed retries)",
    )

    def should_retry(self, max_retry: int) -> bool:
        """Check if task should be retried."""
        return self.retry_count < max_retry

    def calculate_retry_delay(self, base_delay: float = 1.0) -> float:
        """Calculate exponential backoff delay in seconds."""
        return base_delay * (2 ** self.retry_count)
