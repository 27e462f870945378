"""Invocation, log, notification and scheduler API schemas."""

from typing import Literal

from pydantic import BaseModel, Field

from autorule.models.dispatch import TickReport
from autorule.models.execution import ExecutionLogEntry, ExecutionLogStats
from autorule.models.notification import Notification


class ChatMessage(BaseModel):
    """One message of the conversation a manual invocation came from."""

    role: Literal["user", "assistant", "system"] = "user"
    content: str


class InvokeRequest(BaseModel):
    """Manual rule invocation request."""

    rule_id: str = Field(..., min_length=1, description="Rule to run")
    context: str = Field(default="", description="Free text handed to the rule")
    conversation_history: list[ChatMessage] = Field(default_factory=list)


class LogListResponse(BaseModel):
    """Page of execution log entries plus statistics."""

    logs: list[ExecutionLogEntry]
    total: int
    stats: ExecutionLogStats


class NotificationListResponse(BaseModel):
    """A user's notifications, newest first."""

    notifications: list[Notification]
    unread: int


class TickResponse(BaseModel):
    """Result of a scheduled tick request."""

    success: bool = True
    result: TickReport
