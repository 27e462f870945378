"""Tests for output channels and the output worker."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from autorule.models.notification import OutputTask
from autorule.models.rule import OutputPlatform
from autorule.notification.channels.action import ActionOutputChannel, GmailChannel, SlackChannel
from autorule.notification.channels.webhook import WebhookChannel
from autorule.notification.worker import OutputWorker
from autorule.storage.redis_client import RedisKeys
from tests.stubs import StubActionProvider


def make_task(platform: OutputPlatform = OutputPlatform.SLACK, **overrides) -> OutputTask:
    data = {
        "task_id": "output_1",
        "rule_id": "rule_1",
        "rule_name": "Digest",
        "user_id": "u1",
        "platform": platform,
        "destination": "C123",
        "message": "3 new invoices",
        "result": {"success": True},
    }
    data.update(overrides)
    return OutputTask(**data)


@pytest.mark.asyncio
async def test_slack_channel_calls_provider_tool() -> None:
    actions = StubActionProvider()

    assert await SlackChannel(actions).send(make_task())
    assert actions.calls == [
        ("SLACK_SENDS_A_MESSAGE_TO_A_SLACK_CHANNEL", {"channel": "C123", "text": "3 new invoices"}, "u1"),
    ]


@pytest.mark.asyncio
async def test_gmail_channel_failure_returns_false() -> None:
    actions = StubActionProvider(failing={"GMAIL_SEND_EMAIL"})

    sent = await GmailChannel(actions).send(make_task(OutputPlatform.GMAIL, destination="a@b.c"))

    assert not sent
    _, arguments, _ = actions.calls[0]
    assert arguments["subject"] == "Automation Result: Digest"
    assert arguments["recipient_email"] == "a@b.c"


def test_action_channel_requires_arguments_builder() -> None:
    class TeamsChannel(ActionOutputChannel):
        tool_name = "TEAMS_POST_MESSAGE"

        @property
        def platform(self) -> str:
            return "teams"

    with pytest.raises(TypeError):
        TeamsChannel(StubActionProvider())


@pytest.mark.asyncio
async def test_webhook_channel_posts_result() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    channel = WebhookChannel(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    task = make_task(OutputPlatform.WEBHOOK, destination="https://hooks.example.com/x")

    assert await channel.send(task)
    await channel.close()

    assert str(seen[0].url) == "https://hooks.example.com/x"
    assert b'"rule":"Digest"' in seen[0].content.replace(b" ", b"")


@pytest.mark.asyncio
async def test_webhook_channel_error_status() -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    channel = WebhookChannel(client)

    assert not await channel.send(make_task(OutputPlatform.WEBHOOK, destination="https://x.example"))
    await channel.close()


@pytest.mark.asyncio
async def test_worker_delivers(redis) -> None:
    actions = StubActionProvider()
    worker = OutputWorker(actions, redis)

    assert await worker.process_task(make_task())
    assert len(actions.calls) == 1
    await worker.close()


@pytest.mark.asyncio
async def test_worker_requeues_then_dead_letters(redis) -> None:
    actions = StubActionProvider(failing={"SLACK_SENDS_A_MESSAGE_TO_A_SLACK_CHANNEL"})
    worker = OutputWorker(actions, redis, channels=[SlackChannel(actions)])

    assert not await worker.process_task(make_task())
    assert await redis.llen(RedisKeys.OUTPUT_QUEUE) == 1
    requeued = OutputTask.model_validate_json(await redis.rpop(RedisKeys.OUTPUT_QUEUE))
    assert requeued.retry_count == 1
    assert requeued.retry_after is not None

    exhausted = make_task(retry_count=3)
    assert not await worker.process_task(exhausted)
    assert await redis.llen(RedisKeys.OUTPUT_DEAD_LETTER) == 1


@pytest.mark.asyncio
async def test_worker_unknown_platform_goes_to_dead_letter(redis) -> None:
    worker = OutputWorker(StubActionProvider(), redis, channels=[])

    assert not await worker.process_task(make_task())
    assert await redis.llen(RedisKeys.OUTPUT_DEAD_LETTER) == 1


@pytest.mark.asyncio
async def test_worker_defers_task_not_yet_due(redis) -> None:
    actions = StubActionProvider()
    worker = OutputWorker(actions, redis, channels=[SlackChannel(actions)])
    later = datetime.now(timezone.utc) + timedelta(milliseconds=50)

    assert not await worker.process_task(make_task(retry_after=later))
    assert actions.calls == []
    assert await redis.llen(RedisKeys.OUTPUT_QUEUE) == 1
