"""Tests for the Redis rule store."""

from datetime import datetime, timedelta, timezone

import pytest

from autorule.models.rule import ActivationMode, ScheduleInterval
from autorule.storage.rule_store import RuleStore


def scheduled(make_rule, **overrides):
    data = {
        "activation_mode": ActivationMode.SCHEDULED,
        "schedule_enabled": True,
        "schedule_interval": ScheduleInterval.DAILY,
    }
    data.update(overrides)
    return make_rule(**data)


@pytest.mark.asyncio
async def test_create_and_get(redis, make_rule) -> None:
    store = RuleStore(redis)
    await store.create(make_rule())

    rule = await store.get("rule_1")

    assert rule is not None
    assert rule.name == "Forward invoices"
    assert await store.get_for_user("rule_1", "someone_else") is None


@pytest.mark.asyncio
async def test_create_schedules_first_run(redis, make_rule, now) -> None:
    store = RuleStore(redis)

    rule = await store.create(scheduled(make_rule), now=now)

    assert rule.schedule_next_run == now + timedelta(days=1)


@pytest.mark.asyncio
async def test_list_orders_by_priority(redis, make_rule) -> None:
    store = RuleStore(redis)
    await store.create(make_rule(id="low", priority=1))
    await store.create(make_rule(id="high", priority=10))
    await store.create(make_rule(id="off", priority=50, is_active=False))

    assert [r.id for r in await store.list_by_user("u1")] == ["off", "high", "low"]
    assert [r.id for r in await store.list_active("u1")] == ["high", "low"]
    assert await store.has_active_rules("u1")
    assert not await store.has_active_rules("u2")


@pytest.mark.asyncio
async def test_list_manual(redis, make_rule) -> None:
    store = RuleStore(redis)
    await store.create(make_rule(id="t", activation_mode=ActivationMode.TRIGGER))
    await store.create(make_rule(id="m", activation_mode=ActivationMode.MANUAL))
    await store.create(make_rule(id="a", activation_mode=ActivationMode.ALL))

    assert {r.id for r in await store.list_manual("u1")} == {"m", "a"}


@pytest.mark.asyncio
async def test_delete(redis, make_rule) -> None:
    store = RuleStore(redis)
    await store.create(scheduled(make_rule))

    assert await store.delete("rule_1")
    assert await store.get("rule_1") is None
    assert await store.list_by_user("u1") == []
    assert not await store.delete("rule_1")


@pytest.mark.asyncio
async def test_daily_rule_keeps_its_slot(redis, make_rule, now) -> None:
    store = RuleStore(redis)
    yesterday_nine = now.replace(hour=9) - timedelta(days=1)
    rule = await store.create(scheduled(make_rule), now=now - timedelta(days=2))
    # Pin the slot to yesterday 09:00
    rule.schedule_next_run = yesterday_nine
    async with redis.pipeline(transaction=True) as pipe:
        store._queue_write(pipe, rule)
        await pipe.execute()

    due = await store.due_rules(now)
    assert [r.id for r in due] == ["rule_1"]

    updated = await store.record_scheduled_run("rule_1", ScheduleInterval.DAILY, now)

    assert updated.schedule_next_run == now.replace(hour=9) + timedelta(days=1)
    assert updated.schedule_last_run == now
    assert updated.execution_count == 1
    assert await store.due_rules(now) == []


@pytest.mark.asyncio
async def test_daily_slot_follows_local_clock_across_dst(redis, make_rule, new_york_schedule) -> None:
    store = RuleStore(redis)
    # Saturday 09:00 EST; clocks spring forward early on Sunday 2026-03-08
    slot = datetime(2026, 3, 7, 9, 0, tzinfo=new_york_schedule)
    ran_at = datetime(2026, 3, 7, 10, 0, tzinfo=new_york_schedule)
    rule = await store.create(scheduled(make_rule), now=slot - timedelta(days=1))
    assert rule.schedule_next_run == slot

    updated = await store.record_scheduled_run("rule_1", ScheduleInterval.DAILY, ran_at)

    assert updated.schedule_next_run == datetime(2026, 3, 8, 13, 0, tzinfo=timezone.utc)
    assert updated.schedule_next_run.astimezone(new_york_schedule).hour == 9


@pytest.mark.asyncio
async def test_due_rules_skips_inactive_and_future(redis, make_rule, now) -> None:
    store = RuleStore(redis)
    await store.create(scheduled(make_rule, id="due"), now=now - timedelta(days=2))
    await store.create(scheduled(make_rule, id="inactive", is_active=False), now=now - timedelta(days=2))
    await store.create(scheduled(make_rule, id="future"), now=now)

    assert [r.id for r in await store.due_rules(now)] == ["due"]


@pytest.mark.asyncio
async def test_claim_is_exclusive(redis, make_rule, now) -> None:
    store = RuleStore(redis)
    await store.create(scheduled(make_rule), now=now - timedelta(days=1))

    first = await store.claim_scheduled_run("rule_1", now)
    second = await store.claim_scheduled_run("rule_1", now)

    assert first is not None
    assert first.execution_count == 0
    assert second is None
    stored = await store.get("rule_1")
    assert stored.execution_count == 1
    assert stored.schedule_next_run > now


@pytest.mark.asyncio
async def test_interval_change_reanchors_on_now(redis, make_rule, now) -> None:
    store = RuleStore(redis)
    await store.create(scheduled(make_rule), now=now - timedelta(hours=5))

    updated = await store.update("rule_1", {"schedule_interval": ScheduleInterval.HOURLY}, now=now)

    assert updated.schedule_next_run == now + timedelta(hours=1)


@pytest.mark.asyncio
async def test_disabling_schedule_clears_next_run(redis, make_rule, now) -> None:
    store = RuleStore(redis)
    await store.create(scheduled(make_rule), now=now - timedelta(days=2))

    updated = await store.update("rule_1", {"schedule_enabled": False}, now=now)

    assert updated.schedule_next_run is None
    assert await store.due_rules(now) == []


@pytest.mark.asyncio
async def test_update_ignores_immutable_fields(redis, make_rule) -> None:
    store = RuleStore(redis)
    await store.create(make_rule())

    updated = await store.update("rule_1", {"user_id": "intruder", "name": "Renamed"})

    assert updated.user_id == "u1"
    assert updated.name == "Renamed"


@pytest.mark.asyncio
async def test_manual_and_triggered_runs_leave_schedule_alone(redis, make_rule, now) -> None:
    store = RuleStore(redis)
    rule = await store.create(scheduled(make_rule, activation_mode=ActivationMode.ALL), now=now)

    await store.record_manual_run("rule_1")
    updated = await store.record_triggered_run("rule_1")

    assert updated.execution_count == 2
    assert updated.schedule_next_run == rule.schedule_next_run
    assert updated.schedule_last_run is None


@pytest.mark.asyncio
async def test_set_active(redis, make_rule) -> None:
    store = RuleStore(redis)
    await store.create(make_rule())

    updated = await store.set_active("rule_1", False)

    assert updated.is_active is False
    assert await store.set_active("missing", True) is None
