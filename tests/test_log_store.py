"""Tests for the execution log store."""

from datetime import datetime, timedelta, timezone

import pytest

from autorule.models.execution import ExecutionLogEntry, ExecutionStatus
from autorule.storage.log_store import ExecutionLogStore, generate_log_id


def entry(rule_id: str = "rule_1", status: ExecutionStatus = ExecutionStatus.SUCCESS, **kwargs) -> ExecutionLogEntry:
    data = {
        "id": generate_log_id(),
        "rule_id": rule_id,
        "rule_name": "Rule",
        "user_id": "u1",
        "trigger_slug": "MANUAL_INVOCATION",
        "status": status,
        "duration_ms": 100,
    }
    data.update(kwargs)
    return ExecutionLogEntry(**data)


@pytest.mark.asyncio
async def test_list_newest_first(redis) -> None:
    store = ExecutionLogStore(redis)
    base = datetime(2026, 3, 10, tzinfo=timezone.utc)
    older = await store.append(entry(created_at=base))
    newer = await store.append(entry(created_at=base + timedelta(minutes=1)))

    entries, total = await store.list_by_rule("rule_1")

    assert total == 2
    assert [e.id for e in entries] == [newer.id, older.id]
    assert [e.id for e in await store.recent("u1", limit=1)] == [newer.id]


@pytest.mark.asyncio
async def test_pagination(redis) -> None:
    store = ExecutionLogStore(redis)
    base = datetime(2026, 3, 10, tzinfo=timezone.utc)
    for i in range(5):
        await store.append(entry(created_at=base + timedelta(seconds=i)))

    page, total = await store.list_by_user("u1", limit=2, offset=2)
    empty, _ = await store.list_by_user("u1", limit=2, offset=10)

    assert total == 5
    assert len(page) == 2
    assert empty == []


@pytest.mark.asyncio
async def test_stats(redis) -> None:
    store = ExecutionLogStore(redis)
    await store.append(entry(duration_ms=100))
    await store.append(entry(duration_ms=300))
    await store.append(entry(status=ExecutionStatus.PARTIAL, duration_ms=200))
    await store.append(entry(rule_id="rule_2", status=ExecutionStatus.FAILURE, duration_ms=50))

    rule_stats = await store.stats_for_rule("rule_1")
    user_stats = await store.stats_for_user("u1")

    assert rule_stats.total_runs == 3
    assert rule_stats.success_rate == pytest.approx(200 / 3)
    assert rule_stats.avg_duration_ms == 200
    assert user_stats.total_runs == 4


@pytest.mark.asyncio
async def test_stats_empty(redis) -> None:
    stats = await ExecutionLogStore(redis).stats_for_rule("nothing")

    assert stats.total_runs == 0
    assert stats.success_rate == 0.0


@pytest.mark.asyncio
async def test_retention_purge(redis) -> None:
    store = ExecutionLogStore(redis)
    now = datetime(2026, 3, 10, tzinfo=timezone.utc)
    old = await store.append(entry(created_at=now - timedelta(days=40)))
    fresh = await store.append(entry(created_at=now - timedelta(days=1)))

    deleted = await store.delete_older_than(30, now=now)

    assert deleted == 1
    assert await store.get(old.id) is None
    assert await store.get(fresh.id) is not None
    entries, total = await store.list_by_rule("rule_1")
    assert total == 1
    assert entries[0].id == fresh.id
