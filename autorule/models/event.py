"""Trigger event domain models."""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

MANUAL_TRIGGER_SLUG = "MANUAL_INVOCATION"
SCHEDULED_TRIGGER_SLUG = "SCHEDULED_EXECUTION"


class ConnectedAccount(BaseModel):
    """Provider account the event was delivered for."""

    id: str = Field(default="")
    user_id: str = Field(default="")
    status: str = Field(default="ACTIVE")


class TriggerMetadata(BaseModel):
    """Provider metadata attached to a trigger event."""

    toolkit_slug: str = Field(default="UNKNOWN")
    trigger_slug: str = Field(default="UNKNOWN_TRIGGER")
    trigger_id: str = Field(default="")
    trigger_config: dict[str, Any] = Field(default_factory=dict)
    connected_account: ConnectedAccount = Field(default_factory=ConnectedAccount)


class TriggerEvent(BaseModel):
    """Canonical normalized event.

    Built per inbound request and never persisted as-is; only the derived
    execution log entry is stored.
    """

    id: str = Field(..., description="Event identifier")
    uuid: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="De-duplication key",
    )
    trigger_slug: str = Field(..., description="Trigger type, e.g. 'GMAIL_NEW_GMAIL_MESSAGE'")
    toolkit_slug: str = Field(default="UNKNOWN", description="Inferred provider")
    user_id: str = Field(..., description="Owning user")
    payload: dict[str, Any] = Field(default_factory=dict, description="Event data")
    original_payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Raw envelope kept for debugging",
    )
    metadata: TriggerMetadata = Field(default_factory=TriggerMetadata)
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def synthetic(
        cls,
        user_id: str,
        trigger_slug: str,
        toolkit_slug: str,
        payload: dict[str, Any],
    ) -> "TriggerEvent":
        """Build an event for manual or scheduled runs."""
        prefix = toolkit_slug.lower()
        event_id = f"{prefix}_{uuid.uuid4().hex[:12]}"
        return cls(
            id=event_id,
            uuid=event_id,
            trigger_slug=trigger_slug,
            toolkit_slug=toolkit_slug,
            user_id=user_id,
            payload=payload,
            original_payload=dict(payload),
            metadata=TriggerMetadata(
                toolkit_slug=toolkit_slug,
                trigger_slug=trigger_slug,
                connected_account=ConnectedAccount(id=user_id, user_id=user_id),
            ),
        )

    def summary(self, max_fields: int = 20) -> dict[str, Any]:
        """Compact view of the event handed to decision capabilities."""
        items = list(self.payload.items())[:max_fields]
        return {
            "trigger_slug": self.trigger_slug,
            "toolkit_slug": self.toolkit_slug,
            "payload": dict(items),
        }
