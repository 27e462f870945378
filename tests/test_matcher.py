"""Tests for rule matching."""

import pytest

from autorule.engine.llm.parser import Decision
from autorule.engine.matcher import RuleMatcher, candidate_order, summarize_event
from autorule.models.rule import ActivationMode
from tests.stubs import StubStrategy

YES = Decision(matches=True, confidence=0.9, reasoning="yes")


@pytest.mark.asyncio
async def test_first_accepted_candidate_wins(make_rule, make_event) -> None:
    rules = [
        make_rule(id="a", name="A", priority=1, topic_condition="cond a"),
        make_rule(id="b", name="B", priority=5, topic_condition="cond b"),
        make_rule(id="c", name="C", priority=5, topic_condition="cond c"),
    ]
    strategy = StubStrategy({"cond a": YES, "cond b": YES, "cond c": YES})

    match = await RuleMatcher(strategy).match(make_event(), rules)

    assert match.rule.id == "b"
    assert match.confidence == 0.9
    assert strategy.calls == ["cond b"]


@pytest.mark.asyncio
async def test_low_confidence_is_rejected(make_rule, make_event) -> None:
    rules = [
        make_rule(id="a", name="A", priority=2, topic_condition="weak"),
        make_rule(id="b", name="B", priority=1, topic_condition="strong"),
    ]
    strategy = StubStrategy({
        "weak": Decision(matches=True, confidence=0.69, reasoning="unsure"),
        "strong": Decision(matches=True, confidence=0.7, reasoning="sure"),
    })

    match = await RuleMatcher(strategy, threshold=0.7).match(make_event(), rules)

    assert match.rule.id == "b"
    assert strategy.calls == ["weak", "strong"]


@pytest.mark.asyncio
async def test_strategy_error_counts_as_no_match(make_rule, make_event) -> None:
    rules = [
        make_rule(id="a", name="A", priority=2, topic_condition="broken"),
        make_rule(id="b", name="B", priority=1, topic_condition="ok"),
    ]
    strategy = StubStrategy({"broken": RuntimeError("boom"), "ok": YES})

    match = await RuleMatcher(strategy).match(make_event(), rules)

    assert match.rule.id == "b"


@pytest.mark.asyncio
async def test_filters_inactive_manual_and_unaccepted(make_rule, make_event) -> None:
    rules = [
        make_rule(id="off", is_active=False),
        make_rule(id="manual", activation_mode=ActivationMode.MANUAL),
        make_rule(id="slack", accepted_triggers=["SLACK_NEW_MESSAGE"]),
    ]
    strategy = StubStrategy(default=YES)

    assert await RuleMatcher(strategy).match(make_event(), rules) is None
    assert strategy.calls == []


@pytest.mark.asyncio
async def test_no_match(make_rule, make_event) -> None:
    strategy = StubStrategy()

    assert await RuleMatcher(strategy).match(make_event(), [make_rule()]) is None


def test_candidate_order_breaks_ties_by_name(make_rule) -> None:
    rules = [make_rule(id="z", name="Zed"), make_rule(id="a", name="Alpha"), make_rule(id="p", name="P", priority=3)]

    assert [r.id for r in candidate_order(rules)] == ["p", "a", "z"]


def test_summarize_event(make_event) -> None:
    summary = summarize_event(make_event())

    assert "GMAIL_NEW_GMAIL_MESSAGE" in summary
    assert "Invoice #42" in summary
