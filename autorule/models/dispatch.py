"""Dispatch pipeline result models."""

from enum import Enum

from pydantic import BaseModel, Field

from autorule.models.execution import RuleExecutionResult


class DispatchState(str, Enum):
    """Stages an inbound event passes through."""

    RECEIVED = "received"
    NORMALIZED = "normalized"
    MATCHED = "matched"
    EXECUTING = "executing"
    LOGGED = "logged"
    NOTIFIED = "notified"
    REJECTED = "rejected"


class RejectReason(str, Enum):
    """Why an event was not executed."""

    NO_USER_ID = "no_user_id"
    NO_ACTIVE_RULES = "no_active_rules"
    NO_TRIGGER_ELIGIBLE_RULES = "no_trigger_eligible_rules"
    NO_ACCEPTING_RULES = "no_accepting_rules"
    NO_MATCH = "no_match"
    DUPLICATE_EVENT = "duplicate_event"
    INTERNAL_ERROR = "internal_error"


class InboundAck(BaseModel):
    """Immediate answer to an inbound event, sent before matching."""

    received: bool = True
    processed: bool
    reason: str | None = None
    trigger_id: str | None = None
    trigger_slug: str | None = None


class DispatchOutcome(BaseModel):
    """Where an event's dispatch ended."""

    state: DispatchState
    reason: RejectReason | None = None
    rule_id: str | None = None
    rule_name: str | None = None
    confidence: float | None = None
    result: RuleExecutionResult | None = None

    @classmethod
    def rejected(cls, reason: RejectReason) -> "DispatchOutcome":
        return cls(state=DispatchState.REJECTED, reason=reason)


class TickError(BaseModel):
    """A scheduled rule that failed during a tick."""

    rule_id: str
    rule_name: str
    error: str


class TickReport(BaseModel):
    """Summary of one scheduler tick."""

    rules_processed: int = 0
    rules_succeeded: int = 0
    rules_failed: int = 0
    errors: list[TickError] = Field(default_factory=list)
    duration_ms: int = 0
