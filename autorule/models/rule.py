"""Rule domain models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, model_validator

from autorule.engine.schedule import next_run_after


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class ActivationMode(str, Enum):
    """How a rule may be started."""

    TRIGGER = "trigger"
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    ALL = "all"


class ScheduleInterval(str, Enum):
    """Preset intervals for scheduled rules."""

    FIFTEEN_MINUTES = "15min"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


class OutputPlatform(str, Enum):
    """Where run results are delivered."""

    SLACK = "slack"
    GMAIL = "gmail"
    WEBHOOK = "webhook"
    NONE = "none"


class OutputFormat(str, Enum):
    """How run results are rendered."""

    SUMMARY = "summary"
    DETAILED = "detailed"
    RAW = "raw"


class InstructionStep(BaseModel):
    """Free-text step interpreted by the step interpreter."""

    type: Literal["instruction"] = "instruction"
    content: str = Field(..., min_length=1, description="Human language instruction")


class ActionStep(BaseModel):
    """Direct call of a named external tool."""

    type: Literal["action"] = "action"
    tool_name: str = Field(..., min_length=1, description="Tool name, e.g. 'GMAIL_SEND_EMAIL'")
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Tool parameters; strings may contain {{ ... }} references",
    )


ExecutionStep = Annotated[Union[InstructionStep, ActionStep], Field(discriminator="type")]


class OutputConfig(BaseModel):
    """Output destination for run results."""

    platform: OutputPlatform = Field(default=OutputPlatform.NONE)
    destination: str | None = Field(
        default=None,
        description="Channel ID, email address or webhook URL",
    )
    format: OutputFormat = Field(default=OutputFormat.SUMMARY)
    template: str | None = Field(
        default=None,
        description="Message template with {{result}} placeholders",
    )

    @model_validator(mode="after")
    def validate_destination(self) -> "OutputConfig":
        """Every real platform needs somewhere to deliver to."""
        if self.platform != OutputPlatform.NONE and not self.destination:
            raise ValueError(f"destination is required for platform '{self.platform.value}'")
        return self


class Rule(BaseModel):
    """Complete execution rule."""

    id: str = Field(..., description="Rule unique identifier")
    user_id: str = Field(..., description="Owning user")
    name: str = Field(..., description="Rule name")
    description: str | None = Field(default=None)
    is_active: bool = Field(default=True)
    priority: int = Field(default=0, description="Higher wins")
    accepted_triggers: list[str] = Field(
        default_factory=list,
        description="Accepted trigger slugs (empty accepts every trigger)",
    )
    topic_condition: str = Field(..., description="When the rule should fire")
    execution_steps: list[ExecutionStep] = Field(default_factory=list)
    output_config: OutputConfig = Field(default_factory=OutputConfig)
    execution_count: int = Field(default=0, ge=0)
    last_executed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    activation_mode: ActivationMode = Field(default=ActivationMode.TRIGGER)
    schedule_enabled: bool = Field(default=False)
    schedule_interval: ScheduleInterval | None = None
    schedule_last_run: datetime | None = None
    schedule_next_run: datetime | None = None

    def supports(self, mode: ActivationMode) -> bool:
        """Check whether the rule can be started in the given mode."""
        return self.activation_mode in (mode, ActivationMode.ALL)

    def accepts_trigger(self, trigger_slug: str) -> bool:
        """Check if the rule accepts the trigger slug."""
        if not self.accepted_triggers:
            return True  # No restriction means accept all
        return trigger_slug in self.accepted_triggers

    def is_due(self, now: datetime) -> bool:
        """Check whether a scheduled run is due at ``now``."""
        return (
            self.schedule_enabled
            and self.is_active
            and self.supports(ActivationMode.SCHEDULED)
            and self.schedule_next_run is not None
            and now >= self.schedule_next_run
        )

    def reschedule(self, now: datetime) -> None:
        """Recompute the next run from ``now`` (or clear it when unscheduled)."""
        if self.schedule_enabled and self.schedule_interval:
            self.schedule_next_run = next_run_after(now, self.schedule_interval.value)
        else:
            self.schedule_next_run = None
