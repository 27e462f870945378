"""Execution result and log domain models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ExecutionStatus(str, Enum):
    """Overall status of a rule run."""

    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL = "partial"


class StepResult(BaseModel):
    """Outcome of a single step."""

    model_config = ConfigDict(frozen=True)

    step_index: int = Field(..., ge=0)
    type: Literal["instruction", "action"]
    success: bool
    result: Any | None = None
    error: str | None = None


def derive_status(step_results: list[StepResult]) -> ExecutionStatus:
    """Success iff every step succeeded, failure iff none did, else partial."""
    successes = sum(1 for r in step_results if r.success)
    if step_results and successes == len(step_results):
        return ExecutionStatus.SUCCESS
    if successes == 0:
        return ExecutionStatus.FAILURE
    return ExecutionStatus.PARTIAL


class RuleExecutionResult(BaseModel):
    """Aggregate result of running a rule's steps."""

    success: bool
    rule_id: str
    rule_name: str
    trigger_slug: str
    step_results: list[StepResult] = Field(default_factory=list)
    output: str | None = None
    error: str | None = None
    executed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> ExecutionStatus:
        if not self.step_results and self.success:
            return ExecutionStatus.SUCCESS
        return derive_status(self.step_results)


class ExecutionLogEntry(BaseModel):
    """Persisted record of one rule run."""

    id: str = Field(..., description="Log entry identifier")
    rule_id: str
    rule_name: str
    user_id: str
    trigger_slug: str
    status: ExecutionStatus
    steps: list[StepResult] = Field(default_factory=list)
    output_text: str | None = None
    error_text: str | None = None
    duration_ms: int | None = Field(default=None, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ExecutionLogStats(BaseModel):
    """Rolling statistics computed from a set of log entries."""

    total_runs: int = 0
    success_rate: float = 0.0
    avg_duration_ms: int = 0

    @classmethod
    def from_entries(cls, entries: list[ExecutionLogEntry]) -> "ExecutionLogStats":
        total = len(entries)
        if total == 0:
            return cls()
        successes = sum(1 for e in entries if e.status == ExecutionStatus.SUCCESS)
        durations = [e.duration_ms for e in entries if e.duration_ms is not None]
        avg = round(sum(durations) / len(durations)) if durations else 0
        return cls(
            total_runs=total,
            success_rate=successes / total * 100,
            avg_duration_ms=avg,
        )
