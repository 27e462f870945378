"""Sequential step execution for rules."""

import json
import time
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

from autorule.actions.provider import ActionProvider
from autorule.core.logging import get_logger
from autorule.engine.expression import UNRESOLVED, build_reference_names, resolve_parameters
from autorule.models.event import TriggerEvent
from autorule.models.execution import RuleExecutionResult, StepResult
from autorule.models.rule import ActionStep, InstructionStep, OutputConfig, OutputFormat, Rule
from autorule.observability.metrics import STEP_FAILURES

logger = get_logger(__name__)

DEADLINE_EXCEEDED = "Step timed out: execution deadline exceeded"


@dataclass
class StepContext:
    """What a step can see while it runs."""

    rule: Rule
    event: TriggerEvent
    step_index: int = 0
    previous_results: list[Any] = field(default_factory=list)
    conversation_history: list[dict[str, str]] = field(default_factory=list)

    @property
    def user_id(self) -> str:
        return self.event.user_id

    def successful_results(self) -> list[str]:
        """Text of every earlier step that produced a result."""
        return [result_text(r) for r in self.previous_results if r is not UNRESOLVED]


class StepInterpreter(Protocol):
    """Turns a natural language instruction into a result."""

    async def interpret(self, instruction: str, context: StepContext) -> Any:
        """Carry out the instruction and return its result; raise on failure."""
        ...


def result_text(value: Any) -> str:
    """Render a step result as text."""
    if value is None or value is UNRESOLVED:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


def format_output(result: RuleExecutionResult, output_config: OutputConfig) -> str:
    """Render a run result for notification, logging and delivery.

    Args:
        result: Run result whose ``output`` holds the last successful step's text
        output_config: Rule output configuration

    Returns:
        Formatted message
    """
    raw = result.output or ""
    if output_config.template:
        return output_config.template.replace("{{result}}", raw)

    if output_config.format == OutputFormat.SUMMARY:
        outcome = "successfully" if result.success else "with errors"
        return f'Rule "{result.rule_name}" executed {outcome}.\n\n{raw}'
    if output_config.format == OutputFormat.DETAILED:
        return json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False)
    return raw


class StepExecutor:
    """Runs a rule's steps in order and tracks partial failures.

    Every step runs even if an earlier one failed. A step either produces a
    result or an error string; exceptions never escape ``execute``.
    """

    def __init__(self, interpreter: StepInterpreter, action_provider: ActionProvider):
        """Initialize executor.

        Args:
            interpreter: Capability that handles instruction steps
            action_provider: Tool execution service for action steps
        """
        self._interpreter = interpreter
        self._actions = action_provider

    async def execute(
        self,
        rule: Rule,
        event: TriggerEvent,
        conversation_history: list[dict[str, str]] | None = None,
        deadline: float | None = None,
    ) -> RuleExecutionResult:
        """Execute every step of a rule.

        Args:
            rule: Rule to run
            event: Triggering (or synthetic) event
            conversation_history: Chat messages of a manual invocation
            deadline: ``time.monotonic()`` value after which no step may start

        Returns:
            Aggregate result with one StepResult per step
        """
        base_context = StepContext(
            rule=rule,
            event=event,
            conversation_history=list(conversation_history or []),
        )
        previous_results: list[Any] = []
        step_results: list[StepResult] = []
        last_output: str | None = None

        logger.info(
            "Executing rule",
            rule_id=rule.id,
            rule_name=rule.name,
            steps=len(rule.execution_steps),
            trigger_slug=event.trigger_slug,
        )

        for index, step in enumerate(rule.execution_steps):
            # Each step gets its own view; earlier contexts stay frozen.
            context = replace(
                base_context,
                step_index=index,
                previous_results=list(previous_results),
                conversation_history=list(base_context.conversation_history),
            )

            if deadline is not None and time.monotonic() >= deadline:
                step_result = StepResult(
                    step_index=index,
                    type=step.type,
                    success=False,
                    error=DEADLINE_EXCEEDED,
                )
            else:
                step_result = await self._run_step(step, index, context)

            step_results.append(step_result)
            if step_result.success:
                previous_results.append(step_result.result)
                last_output = result_text(step_result.result)
            else:
                previous_results.append(UNRESOLVED)
                STEP_FAILURES.labels(step_type=step.type).inc()
                logger.warning(
                    "Step failed",
                    rule_id=rule.id,
                    step_index=index,
                    step_type=step.type,
                    error=step_result.error,
                )

        success = all(r.success for r in step_results)
        first_error = next((r.error for r in step_results if not r.success), None)

        return RuleExecutionResult(
            success=success,
            rule_id=rule.id,
            rule_name=rule.name,
            trigger_slug=event.trigger_slug,
            step_results=step_results,
            output=last_output,
            error=first_error,
        )

    async def _run_step(
        self,
        step: InstructionStep | ActionStep,
        index: int,
        context: StepContext,
    ) -> StepResult:
        try:
            if isinstance(step, InstructionStep):
                value = await self._interpreter.interpret(step.content, context)
            else:
                value = await self._run_action(step, context)
        except Exception as e:
            return StepResult(
                step_index=index,
                type=step.type,
                success=False,
                error=str(e) or type(e).__name__,
            )

        return StepResult(
            step_index=index,
            type=step.type,
            success=True,
            result=value if value is not None else f"{step.type.capitalize()} completed",
        )

    async def _run_action(self, step: ActionStep, context: StepContext) -> Any:
        names = build_reference_names(
            context.event.payload,
            context.previous_results,
            context.event.trigger_slug,
        )
        parameters = resolve_parameters(step.parameters, names)
        return await self._actions.execute(step.tool_name, parameters, context.user_id)
