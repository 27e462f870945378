"""Dispatch pipeline tying normalization, matching, execution and logging together.

Inbound events are acknowledged first and processed in a detached task.
Manual and scheduled runs skip matching and go straight to execution. Every
run ends with the same bookkeeping: an execution log entry, an in-app
notification, run counters and, when configured, a queued output delivery.
Bookkeeping failures are logged and never reach the caller.
"""

import asyncio
import time
from collections.abc import Coroutine, Mapping
from datetime import datetime
from typing import Any

from redis.asyncio import Redis

from autorule.actions.provider import ActionProvider, HttpActionProvider
from autorule.core.config import Settings, get_settings
from autorule.core.exceptions import (
    RuleInactiveError,
    RuleNotFoundError,
    UnsupportedActivationModeError,
)
from autorule.core.logging import get_logger
from autorule.engine.executor import StepExecutor, StepInterpreter, format_output
from autorule.engine.matcher import DecisionStrategy, RuleMatcher, accepting, trigger_eligible
from autorule.engine.normalizer import NormalizationFailure, build_trigger_event, normalize
from autorule.models.dispatch import (
    DispatchOutcome,
    DispatchState,
    InboundAck,
    RejectReason,
    TickError,
    TickReport,
)
from autorule.models.event import MANUAL_TRIGGER_SLUG, SCHEDULED_TRIGGER_SLUG, TriggerEvent
from autorule.models.execution import ExecutionLogEntry, RuleExecutionResult
from autorule.models.rule import ActivationMode, Rule, utcnow
from autorule.notification.dispatcher import OutputDispatcher
from autorule.observability.metrics import (
    DISPATCH_OUTCOMES,
    EVENTS_RECEIVED,
    RULE_RUN_DURATION,
    RULE_RUNS,
    TICK_DURATION,
)
from autorule.observability.tracing import TraceContext
from autorule.storage.auxiliary import IdempotencyStore
from autorule.storage.log_store import ExecutionLogStore, generate_log_id
from autorule.storage.rule_store import RuleStore

logger = get_logger(__name__)

ORIGIN_TRIGGER = "trigger"
ORIGIN_MANUAL = "manual"
ORIGIN_SCHEDULED = "scheduled"


def format_conversation(history: list[dict[str, str]]) -> str:
    """Flatten chat messages into the text handed to manual runs."""
    lines = []
    for message in history:
        speaker = "User" if message.get("role") == "user" else "Assistant"
        lines.append(f"{speaker}: {message.get('content', '')}")
    return "\n\n".join(lines)


class DispatchOrchestrator:
    """Routes events and invocations to rule executions."""

    def __init__(
        self,
        rule_store: RuleStore,
        log_store: ExecutionLogStore,
        matcher: RuleMatcher,
        executor: StepExecutor,
        output_dispatcher: OutputDispatcher,
        idempotency: IdempotencyStore,
        settings: Settings | None = None,
        resources: list[Any] | None = None,
    ):
        self._rules = rule_store
        self._logs = log_store
        self._matcher = matcher
        self._executor = executor
        self._output = output_dispatcher
        self._idempotency = idempotency
        self._settings = settings or get_settings()
        self._tasks: set[asyncio.Task] = set()
        # Clients this orchestrator created and must close
        self._resources = list(resources or [])

    # Inbound events

    async def receive(self, envelope: Mapping[str, Any]) -> InboundAck:
        """Acknowledge an inbound envelope and process it in the background.

        Only normalization and a coarse "does this user have any active
        rule" check happen before the acknowledgement.
        """
        normalized = normalize(envelope)
        if isinstance(normalized, NormalizationFailure):
            self._count_outcome(DispatchOutcome.rejected(RejectReason.NO_USER_ID))
            logger.warning("Inbound event rejected", reason=normalized.reason)
            return InboundAck(processed=False, reason=RejectReason.NO_USER_ID.value)

        try:
            event = build_trigger_event(normalized)
            EVENTS_RECEIVED.labels(trigger_slug=event.trigger_slug).inc()

            if not await self._rules.has_active_rules(event.user_id):
                self._count_outcome(DispatchOutcome.rejected(RejectReason.NO_ACTIVE_RULES))
                logger.info("User has no active rules", user_id=event.user_id)
                return InboundAck(
                    processed=False,
                    reason=RejectReason.NO_ACTIVE_RULES.value,
                    trigger_id=event.id,
                    trigger_slug=event.trigger_slug,
                )

            self.spawn(self.process_event(event))
        except Exception as e:
            # Still acknowledged; the reason carries the failure
            self._count_outcome(DispatchOutcome.rejected(RejectReason.INTERNAL_ERROR))
            logger.error("Inbound event failed before dispatch", error=str(e), exc_info=True)
            return InboundAck(processed=False, reason=RejectReason.INTERNAL_ERROR.value)

        return InboundAck(
            processed=True,
            trigger_id=event.id,
            trigger_slug=event.trigger_slug,
        )

    async def process_event(self, event: TriggerEvent) -> DispatchOutcome:
        """Run the full pipeline for one normalized event."""
        with TraceContext(user_id=event.user_id, trigger_slug=event.trigger_slug):
            outcome = await self._process_event(event)
        self._count_outcome(outcome)
        return outcome

    async def _process_event(self, event: TriggerEvent) -> DispatchOutcome:
        logger.info("Processing event", event_id=event.id, event_uuid=event.uuid)

        if not await self._idempotency.mark_processed(event.uuid):
            logger.info("Event already processed", event_uuid=event.uuid)
            return DispatchOutcome.rejected(RejectReason.DUPLICATE_EVENT)

        rules = await self._rules.list_active(event.user_id)
        if not rules:
            return DispatchOutcome.rejected(RejectReason.NO_ACTIVE_RULES)

        eligible = trigger_eligible(rules)
        if not eligible:
            logger.info("No trigger-eligible rules", user_id=event.user_id)
            return DispatchOutcome.rejected(RejectReason.NO_TRIGGER_ELIGIBLE_RULES)

        candidates = accepting(eligible, event.trigger_slug)
        if not candidates:
            logger.info("No rule accepts trigger", user_id=event.user_id)
            return DispatchOutcome.rejected(RejectReason.NO_ACCEPTING_RULES)

        match = await self._matcher.match(event, candidates)
        if match is None:
            logger.info("No rule matched", user_id=event.user_id, candidates=len(candidates))
            return DispatchOutcome.rejected(RejectReason.NO_MATCH)

        result, state = await self._run(match.rule, event, ORIGIN_TRIGGER)
        return DispatchOutcome(
            state=state,
            rule_id=match.rule.id,
            rule_name=match.rule.name,
            confidence=match.confidence,
            result=result,
        )

    # Manual invocation

    async def invoke_manual(
        self,
        user_id: str,
        rule_id: str,
        context: str = "",
        conversation_history: list[dict[str, str]] | None = None,
    ) -> RuleExecutionResult:
        """Run a rule on explicit request of its owner.

        Raises:
            RuleNotFoundError: If the rule does not exist or is not owned by the caller
            RuleInactiveError: If the rule is switched off
            UnsupportedActivationModeError: If the rule cannot be invoked manually
        """
        rule = await self._rules.get_for_user(rule_id, user_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        if not rule.is_active:
            raise RuleInactiveError(rule_id)
        if not rule.supports(ActivationMode.MANUAL):
            raise UnsupportedActivationModeError(rule_id, rule.activation_mode.value, "manual")

        history = list(conversation_history or [])
        payload: dict[str, Any] = {
            "user_context": context,
            "invoked_at": utcnow().isoformat(),
        }
        if history:
            payload["conversation_history"] = format_conversation(history)

        event = TriggerEvent.synthetic(user_id, MANUAL_TRIGGER_SLUG, "manual", payload)
        with TraceContext(user_id=user_id, rule_id=rule.id):
            logger.info("Manual invocation", rule_name=rule.name)
            result, _ = await self._run(rule, event, ORIGIN_MANUAL, conversation_history=history)
        return result

    # Scheduled execution

    async def run_scheduled_tick(self, now: datetime | None = None) -> TickReport:
        """Execute every rule due at ``now``.

        Each rule's schedule is advanced atomically before it runs, so
        overlapping ticks execute a rule at most once per due period. The
        whole batch shares one deadline.
        """
        now = now or utcnow()
        started = time.monotonic()
        deadline = started + self._settings.scheduled_batch_timeout_seconds
        report = TickReport()

        due = await self._rules.due_rules(now)
        logger.info("Scheduled tick", due_rules=len(due))

        for rule in due:
            report.rules_processed += 1
            try:
                claimed = await self._rules.claim_scheduled_run(rule.id, now)
                if claimed is None:
                    # Another tick advanced it first
                    report.rules_processed -= 1
                    logger.debug("Scheduled run already claimed", rule_id=rule.id)
                    continue

                event = TriggerEvent.synthetic(
                    claimed.user_id,
                    SCHEDULED_TRIGGER_SLUG,
                    "scheduled",
                    {
                        "scheduled_at": now.isoformat(),
                        "interval": claimed.schedule_interval.value if claimed.schedule_interval else None,
                    },
                )
                with TraceContext(user_id=claimed.user_id, rule_id=claimed.id):
                    result, _ = await self._run(claimed, event, ORIGIN_SCHEDULED, deadline=deadline)

                if result.success:
                    report.rules_succeeded += 1
                else:
                    report.rules_failed += 1
                    report.errors.append(
                        TickError(rule_id=rule.id, rule_name=rule.name, error=result.error or "Unknown error")
                    )
            except Exception as e:
                report.rules_failed += 1
                report.errors.append(TickError(rule_id=rule.id, rule_name=rule.name, error=str(e) or type(e).__name__))
                logger.error("Scheduled rule failed", rule_id=rule.id, error=str(e), exc_info=True)

        elapsed = time.monotonic() - started
        report.duration_ms = int(elapsed * 1000)
        TICK_DURATION.observe(elapsed)
        logger.info(
            "Scheduled tick complete",
            processed=report.rules_processed,
            succeeded=report.rules_succeeded,
            failed=report.rules_failed,
            duration_ms=report.duration_ms,
        )
        return report

    # Detached tasks

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run a coroutine detached from the caller, keeping a reference until it ends."""
        task = asyncio.create_task(self._guarded(coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every detached task to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def close(self) -> None:
        """Drain detached work, then close the clients this orchestrator owns."""
        await self.drain()
        for resource in self._resources:
            try:
                await resource.close()
            except Exception as e:
                logger.warning("Failed to close client", client=type(resource).__name__, error=str(e))
        self._resources.clear()

    @staticmethod
    async def _guarded(coro: Coroutine[Any, Any, Any]) -> Any:
        try:
            return await coro
        except Exception as e:
            logger.error("Background dispatch failed", error=str(e), exc_info=True)
            return None

    # Execution and bookkeeping

    async def _run(
        self,
        rule: Rule,
        event: TriggerEvent,
        origin: str,
        conversation_history: list[dict[str, str]] | None = None,
        deadline: float | None = None,
    ) -> tuple[RuleExecutionResult, DispatchState]:
        started = time.monotonic()
        result = await self._executor.execute(rule, event, conversation_history, deadline)
        elapsed = time.monotonic() - started

        RULE_RUNS.labels(origin=origin, status=result.status.value).inc()
        RULE_RUN_DURATION.labels(origin=origin).observe(elapsed)
        logger.info(
            "Rule executed",
            rule_id=rule.id,
            origin=origin,
            status=result.status.value,
            duration_ms=int(elapsed * 1000),
        )

        state = await self._record(rule, event, result, int(elapsed * 1000), origin)
        return result, state

    async def _record(
        self,
        rule: Rule,
        event: TriggerEvent,
        result: RuleExecutionResult,
        duration_ms: int,
        origin: str,
    ) -> DispatchState:
        state = DispatchState.EXECUTING
        message = format_output(result, rule.output_config)

        try:
            await self._logs.append(
                ExecutionLogEntry(
                    id=generate_log_id(),
                    rule_id=rule.id,
                    rule_name=rule.name,
                    user_id=event.user_id,
                    trigger_slug=event.trigger_slug,
                    status=result.status,
                    steps=result.step_results,
                    output_text=message if result.output is not None else None,
                    error_text=result.error,
                    duration_ms=duration_ms,
                )
            )
            state = DispatchState.LOGGED
        except Exception as e:
            logger.error("Failed to save execution log", rule_id=rule.id, error=str(e))

        try:
            fallback = "Scheduled rule executed successfully." if origin == ORIGIN_SCHEDULED else "Rule executed successfully."
            await self._output.notify(rule, event.user_id, result, message, fallback)
            if state == DispatchState.LOGGED:
                state = DispatchState.NOTIFIED
        except Exception as e:
            logger.error("Failed to create notification", rule_id=rule.id, error=str(e))

        # Scheduled runs were already counted when the schedule advanced
        try:
            if origin == ORIGIN_MANUAL:
                await self._rules.record_manual_run(rule.id)
            elif origin == ORIGIN_TRIGGER:
                await self._rules.record_triggered_run(rule.id)
        except Exception as e:
            logger.error("Failed to update run counters", rule_id=rule.id, error=str(e))

        try:
            await self._output.dispatch_output(rule, event.user_id, result, message)
        except Exception as e:
            logger.error("Failed to queue output", rule_id=rule.id, error=str(e))

        return state

    @staticmethod
    def _count_outcome(outcome: DispatchOutcome) -> None:
        DISPATCH_OUTCOMES.labels(
            state=outcome.state.value,
            reason=outcome.reason.value if outcome.reason else "",
        ).inc()


def create_orchestrator(
    redis: Redis | None = None,
    action_provider: ActionProvider | None = None,
    strategy: DecisionStrategy | None = None,
    interpreter: StepInterpreter | None = None,
) -> DispatchOrchestrator:
    """Wire an orchestrator from settings, defaulting to the LLM collaborators.

    Collaborators built here are closed by ``DispatchOrchestrator.close``;
    ones passed in stay owned by the caller.
    """
    settings = get_settings()
    owned: list[Any] = []

    if action_provider is None:
        action_provider = HttpActionProvider()
        owned.append(action_provider)
    if strategy is None:
        from autorule.engine.llm.engine import LLMDecisionStrategy

        strategy = LLMDecisionStrategy(redis)
        owned.append(strategy)
    if interpreter is None:
        from autorule.engine.llm.interpreter import LLMStepInterpreter

        interpreter = LLMStepInterpreter(action_provider)
        owned.append(interpreter)

    return DispatchOrchestrator(
        rule_store=RuleStore(redis),
        log_store=ExecutionLogStore(redis),
        matcher=RuleMatcher(strategy, settings.match_confidence_threshold),
        executor=StepExecutor(interpreter, action_provider),
        output_dispatcher=OutputDispatcher(redis),
        idempotency=IdempotencyStore(redis),
        settings=settings,
        resources=owned,
    )
