"""Tests for sequential step execution."""

import json
import time

import pytest

from autorule.engine.executor import DEADLINE_EXCEEDED, StepExecutor, format_output
from autorule.models.execution import ExecutionStatus, RuleExecutionResult
from autorule.models.rule import OutputConfig, OutputFormat
from tests.stubs import StubActionProvider, StubInterpreter


def instruction(content: str) -> dict:
    return {"type": "instruction", "content": content}


def action(tool_name: str, **parameters) -> dict:
    return {"type": "action", "tool_name": tool_name, "parameters": parameters}


@pytest.mark.asyncio
async def test_failed_middle_step_gives_partial(make_rule, make_event) -> None:
    interpreter = StubInterpreter(failing={"second"})
    executor = StepExecutor(interpreter, StubActionProvider())
    rule = make_rule(execution_steps=[instruction("first"), instruction("second"), instruction("third")])

    result = await executor.execute(rule, make_event())

    assert len(result.step_results) == 3
    assert [r.success for r in result.step_results] == [True, False, True]
    assert result.status == ExecutionStatus.PARTIAL
    assert result.success is False
    assert result.error == "cannot do: second"
    assert result.output == "done: third"
    assert [call[0] for call in interpreter.calls] == ["first", "second", "third"]


@pytest.mark.asyncio
async def test_all_steps_succeed(make_rule, make_event) -> None:
    actions = StubActionProvider(results={"SLACK_SEND": {"ts": "1.2"}})
    executor = StepExecutor(StubInterpreter(), actions)
    rule = make_rule(execution_steps=[instruction("read"), action("SLACK_SEND", text="hi")])

    result = await executor.execute(rule, make_event())

    assert result.status == ExecutionStatus.SUCCESS
    assert result.success
    assert result.output == json.dumps({"ts": "1.2"})
    assert actions.calls == [("SLACK_SEND", {"text": "hi"}, "u1")]


@pytest.mark.asyncio
async def test_all_steps_fail(make_rule, make_event) -> None:
    executor = StepExecutor(StubInterpreter(failing={"a"}), StubActionProvider(failing={"T"}))
    rule = make_rule(execution_steps=[instruction("a"), action("T")])

    result = await executor.execute(rule, make_event())

    assert result.status == ExecutionStatus.FAILURE
    assert result.output is None
    assert result.error == "cannot do: a"


@pytest.mark.asyncio
async def test_zero_steps_is_success(make_rule, make_event) -> None:
    executor = StepExecutor(StubInterpreter(), StubActionProvider())

    result = await executor.execute(make_rule(execution_steps=[]), make_event())

    assert result.success
    assert result.step_results == []
    assert result.status == ExecutionStatus.SUCCESS


@pytest.mark.asyncio
async def test_action_parameters_resolve_references(make_rule, make_event) -> None:
    actions = StubActionProvider()
    executor = StepExecutor(StubInterpreter(), actions)
    rule = make_rule(execution_steps=[
        instruction("summarize"),
        action(
            "GMAIL_SEND_EMAIL",
            subject="Re: {{ event['subject'] }}",
            body="{{ steps[0] }}",
            amount="{{ event['amount'] }}",
            meta={"source": "{{ trigger }}"},
        ),
    ])

    result = await executor.execute(rule, make_event())

    assert result.success
    _, parameters, _ = actions.calls[0]
    assert parameters == {
        "subject": "Re: Invoice #42",
        "body": "done: summarize",
        "amount": 120,
        "meta": {"source": "GMAIL_NEW_GMAIL_MESSAGE"},
    }


@pytest.mark.asyncio
async def test_reference_to_failed_step_fails_the_action(make_rule, make_event) -> None:
    actions = StubActionProvider()
    executor = StepExecutor(StubInterpreter(failing={"fetch"}), actions)
    rule = make_rule(execution_steps=[instruction("fetch"), action("POST", body="{{ steps[0] }}")])

    result = await executor.execute(rule, make_event())

    assert result.status == ExecutionStatus.FAILURE
    assert "steps[0]" in result.step_results[1].error
    assert actions.calls == []


@pytest.mark.asyncio
async def test_missing_event_field_fails_the_action(make_rule, make_event) -> None:
    executor = StepExecutor(StubInterpreter(), StubActionProvider())
    rule = make_rule(execution_steps=[action("POST", body="{{ event['nope'] }}")])

    result = await executor.execute(rule, make_event())

    assert not result.step_results[0].success


@pytest.mark.asyncio
async def test_expired_deadline_stops_steps_from_starting(make_rule, make_event) -> None:
    interpreter = StubInterpreter()
    executor = StepExecutor(interpreter, StubActionProvider())
    rule = make_rule(execution_steps=[instruction("a"), instruction("b")])

    result = await executor.execute(rule, make_event(), deadline=time.monotonic() - 1)

    assert interpreter.calls == []
    assert [r.error for r in result.step_results] == [DEADLINE_EXCEEDED, DEADLINE_EXCEEDED]
    assert result.status == ExecutionStatus.FAILURE


@pytest.mark.asyncio
async def test_instruction_sees_previous_results_and_conversation(make_rule, make_event) -> None:
    interpreter = StubInterpreter(failing={"b"})
    executor = StepExecutor(interpreter, StubActionProvider())
    rule = make_rule(execution_steps=[instruction("a"), instruction("b"), instruction("c")])
    history = [{"role": "user", "content": "hello"}]

    await executor.execute(rule, make_event(), conversation_history=history)

    context = interpreter.calls[-1][1]
    assert context.successful_results() == ["done: a"]
    assert context.conversation_history == history
    assert context.user_id == "u1"


@pytest.mark.asyncio
async def test_each_step_keeps_its_own_context(make_rule, make_event) -> None:
    interpreter = StubInterpreter()
    executor = StepExecutor(interpreter, StubActionProvider())
    rule = make_rule(execution_steps=[instruction("a"), instruction("b"), instruction("c")])

    await executor.execute(rule, make_event())

    contexts = [call[1] for call in interpreter.calls]
    assert [c.step_index for c in contexts] == [0, 1, 2]
    assert [c.successful_results() for c in contexts] == [[], ["done: a"], ["done: a", "done: b"]]


def make_result(**overrides) -> RuleExecutionResult:
    data = {
        "success": True,
        "rule_id": "rule_1",
        "rule_name": "Digest",
        "trigger_slug": "MANUAL_INVOCATION",
        "output": "3 new invoices",
    }
    data.update(overrides)
    return RuleExecutionResult(**data)


def test_format_output_summary() -> None:
    assert format_output(make_result(), OutputConfig()) == 'Rule "Digest" executed successfully.\n\n3 new invoices'
    assert format_output(make_result(success=False), OutputConfig()).startswith('Rule "Digest" executed with errors.')


def test_format_output_template_wins() -> None:
    config = OutputConfig(template="Result: {{result}}!", format=OutputFormat.RAW)

    assert format_output(make_result(), config) == "Result: 3 new invoices!"


def test_format_output_raw_and_detailed() -> None:
    assert format_output(make_result(), OutputConfig(format=OutputFormat.RAW)) == "3 new invoices"

    detailed = json.loads(format_output(make_result(), OutputConfig(format=OutputFormat.DETAILED)))
    assert detailed["rule_name"] == "Digest"
    assert detailed["status"] == "success"
