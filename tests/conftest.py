"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from typing import Any, AsyncIterator
from zoneinfo import ZoneInfo

import fakeredis
import pytest
import pytest_asyncio

from autorule.core.config import get_settings
from autorule.models.event import TriggerEvent
from autorule.models.rule import Rule


@pytest_asyncio.fixture
async def redis() -> AsyncIterator[fakeredis.FakeAsyncRedis]:
    """In-memory Redis for store tests."""
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_rule():
    """Factory for rules with sensible defaults."""

    def _make(**overrides: Any) -> Rule:
        data: dict[str, Any] = {
            "id": "rule_1",
            "user_id": "u1",
            "name": "Forward invoices",
            "topic_condition": "Emails that contain an invoice",
            "execution_steps": [{"type": "instruction", "content": "Summarize the email"}],
        }
        data.update(overrides)
        return Rule.model_validate(data)

    return _make


@pytest.fixture
def make_event():
    """Factory for normalized trigger events."""

    def _make(**overrides: Any) -> TriggerEvent:
        data: dict[str, Any] = {
            "id": "msg_1",
            "uuid": "log_1",
            "trigger_slug": "GMAIL_NEW_GMAIL_MESSAGE",
            "toolkit_slug": "GMAIL",
            "user_id": "u1",
            "payload": {"subject": "Invoice #42", "sender": "billing@example.com", "amount": 120},
        }
        data.update(overrides)
        return TriggerEvent.model_validate(data)

    return _make


@pytest.fixture
def metadata_envelope() -> dict:
    """Inbound envelope in the current ``metadata`` wire format."""
    return {
        "id": "evt_001",
        "type": "composio.trigger.message",
        "metadata": {
            "log_id": "log_abc",
            "trigger_slug": "GMAIL_NEW_GMAIL_MESSAGE",
            "trigger_id": "ti_123",
            "connected_account_id": "ca_1",
            "user_id": "u1",
        },
        "data": {
            "message_id": "msg_1",
            "subject": "Invoice #42",
            "sender": "billing@example.com",
        },
    }


@pytest.fixture
def new_york_schedule(monkeypatch):
    """Anchor daily and weekly schedules to the America/New_York wall clock."""
    monkeypatch.setenv("SCHEDULE_TIMEZONE", "America/New_York")
    get_settings.cache_clear()
    yield ZoneInfo("America/New_York")
    get_settings.cache_clear()
