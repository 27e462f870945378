"""Rule API schemas."""

from pydantic import BaseModel, Field, model_validator

from autorule.models.rule import (
    ActivationMode,
    ExecutionStep,
    OutputConfig,
    Rule,
    ScheduleInterval,
)


class RuleCreate(BaseModel):
    """Schema for creating a new rule."""

    name: str = Field(..., min_length=1, max_length=100, description="Rule name")
    description: str | None = Field(default=None, max_length=500, description="Rule description")
    is_active: bool = Field(default=True, description="Whether rule is active")
    priority: int = Field(default=0, description="Rule priority, higher wins")
    accepted_triggers: list[str] = Field(
        default_factory=list,
        description="Accepted trigger slugs (empty accepts every trigger)",
    )
    topic_condition: str = Field(..., min_length=1, description="When the rule should fire")
    execution_steps: list[ExecutionStep] = Field(..., description="Ordered steps")
    output_config: OutputConfig = Field(default_factory=OutputConfig)
    activation_mode: ActivationMode = Field(default=ActivationMode.TRIGGER)
    schedule_enabled: bool = Field(default=False)
    schedule_interval: ScheduleInterval | None = None

    @model_validator(mode="after")
    def validate_schedule(self) -> "RuleCreate":
        """An enabled schedule needs an interval."""
        if self.schedule_enabled and self.schedule_interval is None:
            raise ValueError("schedule_interval is required when schedule_enabled is true")
        return self


class RuleUpdate(BaseModel):
    """Schema for partially updating an existing rule."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None
    priority: int | None = None
    accepted_triggers: list[str] | None = None
    topic_condition: str | None = Field(default=None, min_length=1)
    execution_steps: list[ExecutionStep] | None = None
    output_config: OutputConfig | None = None
    activation_mode: ActivationMode | None = None
    schedule_enabled: bool | None = None
    schedule_interval: ScheduleInterval | None = None


class RuleStatusUpdate(BaseModel):
    """Schema for switching a rule on or off."""

    is_active: bool = Field(..., description="Whether rule is active")


class RuleEnvelope(BaseModel):
    """Single rule response."""

    rule: Rule
    success: bool = True


class RuleListResponse(BaseModel):
    """List of rules owned by the caller."""

    rules: list[Rule]


class ManualRuleSummary(BaseModel):
    """Rule entry offered for manual invocation."""

    id: str
    name: str
    description: str | None = None


class ManualRuleListResponse(BaseModel):
    """Rules the caller can invoke by hand."""

    rules: list[ManualRuleSummary]


class RuleTemplate(BaseModel):
    """Pre-built rule the user can copy and customize."""

    id: str
    name: str
    description: str
    category: str
    template: RuleCreate


class RuleTemplateListResponse(BaseModel):
    """Every built-in template, also grouped by category."""

    templates: list[RuleTemplate]
    categories: dict[str, list[str]]
