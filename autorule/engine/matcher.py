"""Rule matcher selecting the rule that should handle an event."""

import json
from dataclasses import dataclass
from typing import Protocol

from autorule.core.logging import get_logger
from autorule.engine.llm.parser import Decision
from autorule.models.event import TriggerEvent
from autorule.models.rule import ActivationMode, Rule
from autorule.observability.metrics import MATCH_DECISIONS

logger = get_logger(__name__)


class DecisionStrategy(Protocol):
    """Judges whether an event satisfies a free-text condition."""

    async def decide(self, condition_text: str, event_summary: str) -> Decision:
        ...


@dataclass
class RuleMatch:
    """The rule chosen for an event."""

    rule: Rule
    confidence: float
    reasoning: str


def trigger_eligible(rules: list[Rule]) -> list[Rule]:
    """Active rules that can be started by an inbound event."""
    return [r for r in rules if r.is_active and r.supports(ActivationMode.TRIGGER)]


def accepting(rules: list[Rule], trigger_slug: str) -> list[Rule]:
    """Rules whose trigger list accepts the slug."""
    return [r for r in rules if r.accepts_trigger(trigger_slug)]


def candidate_order(rules: list[Rule]) -> list[Rule]:
    """Priority descending, then name ascending."""
    return sorted(rules, key=lambda r: (-r.priority, r.name))


def summarize_event(event: TriggerEvent) -> str:
    """Text summary of an event handed to the decision strategy."""
    summary = event.summary()
    return (
        f"Type: {summary['trigger_slug']} (from {summary['toolkit_slug']})\n"
        f"Payload: {json.dumps(summary['payload'], ensure_ascii=False, default=str)}"
    )


class RuleMatcher:
    """Evaluates candidates in order and returns the first accepted one.

    At most one rule is selected per event. A candidate is accepted when its
    decision matches with a confidence at or above the threshold.
    """

    def __init__(self, strategy: DecisionStrategy, threshold: float = 0.7):
        """Initialize matcher.

        Args:
            strategy: Decision capability used for every candidate
            threshold: Minimum confidence for a match
        """
        self._strategy = strategy
        self._threshold = threshold

    async def match(self, event: TriggerEvent, candidates: list[Rule]) -> RuleMatch | None:
        """Pick the rule that should handle ``event``.

        Args:
            event: Normalized trigger event
            candidates: Rules owned by the event's user

        Returns:
            The winning match, or None if no candidate was accepted
        """
        eligible = candidate_order(accepting(trigger_eligible(candidates), event.trigger_slug))
        if not eligible:
            return None

        event_summary = summarize_event(event)

        for rule in eligible:
            try:
                decision = await self._strategy.decide(rule.topic_condition, event_summary)
            except Exception as e:
                MATCH_DECISIONS.labels(outcome="error").inc()
                logger.error(
                    "Match decision failed",
                    rule_id=rule.id,
                    error=str(e),
                )
                continue

            if decision.matches and decision.confidence >= self._threshold:
                MATCH_DECISIONS.labels(outcome="accepted").inc()
                logger.info(
                    "Rule matched",
                    rule_id=rule.id,
                    rule_name=rule.name,
                    confidence=decision.confidence,
                )
                return RuleMatch(
                    rule=rule,
                    confidence=decision.confidence,
                    reasoning=decision.reasoning,
                )

            MATCH_DECISIONS.labels(outcome="rejected").inc()
            logger.debug(
                "Rule not matched",
                rule_id=rule.id,
                matches=decision.matches,
                confidence=decision.confidence,
                reasoning=decision.reasoning,
            )

        return None
