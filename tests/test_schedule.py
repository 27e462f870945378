"""Tests for schedule interval arithmetic."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from autorule.engine.schedule import advance_schedule, interval_delta, next_run_after, schedule_zone


def test_interval_deltas() -> None:
    assert interval_delta("15min") == timedelta(minutes=15)
    assert interval_delta("hourly") == timedelta(hours=1)
    assert interval_delta("daily") == timedelta(days=1)
    assert interval_delta("weekly") == timedelta(weeks=1)


def test_unknown_interval_raises() -> None:
    with pytest.raises(ValueError):
        interval_delta("monthly")


def test_next_run_after() -> None:
    anchor = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
    assert next_run_after(anchor, "hourly") == datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)


def test_advance_keeps_time_of_day() -> None:
    previous = datetime(2026, 3, 9, 9, 0, tzinfo=timezone.utc)
    now = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)

    assert advance_schedule(previous, "daily", now) == datetime(2026, 3, 11, 9, 0, tzinfo=timezone.utc)


def test_advance_skips_missed_slots() -> None:
    previous = datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc)
    now = datetime(2026, 3, 10, 10, 20, tzinfo=timezone.utc)

    assert advance_schedule(previous, "15min", now) == datetime(2026, 3, 10, 10, 30, tzinfo=timezone.utc)


def test_advance_exactly_on_slot_moves_forward() -> None:
    now = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)

    assert advance_schedule(now, "hourly", now) == now + timedelta(hours=1)


def test_advance_without_anchor_starts_from_now() -> None:
    now = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)

    assert advance_schedule(None, "weekly", now) == now + timedelta(weeks=1)


NEW_YORK = ZoneInfo("America/New_York")


def test_daily_step_keeps_local_time_over_spring_forward() -> None:
    anchor = datetime(2026, 3, 7, 9, 0, tzinfo=NEW_YORK)

    next_run = next_run_after(anchor, "daily", tz="America/New_York")

    assert next_run == datetime(2026, 3, 8, 13, 0, tzinfo=timezone.utc)
    assert next_run.tzinfo == timezone.utc


def test_advance_over_fall_back_does_not_skip_todays_slot() -> None:
    previous = datetime(2026, 10, 31, 9, 0, tzinfo=NEW_YORK)
    # More than a day after the previous slot, but still before 09:00 local
    now = datetime(2026, 11, 1, 8, 30, tzinfo=NEW_YORK)

    next_run = advance_schedule(previous, "daily", now, tz="America/New_York")

    assert next_run == datetime(2026, 11, 1, 9, 0, tzinfo=NEW_YORK)


def test_advance_missed_days_across_dst() -> None:
    previous = datetime(2026, 3, 1, 9, 0, tzinfo=NEW_YORK)
    now = datetime(2026, 3, 10, 8, 0, tzinfo=NEW_YORK)

    next_run = advance_schedule(previous, "daily", now, tz="America/New_York")

    assert next_run.astimezone(NEW_YORK) == datetime(2026, 3, 10, 9, 0, tzinfo=NEW_YORK)


def test_hourly_steps_use_elapsed_time_across_dst() -> None:
    # 01:30 EST is followed an hour later by 03:30 EDT
    anchor = datetime(2026, 3, 8, 6, 30, tzinfo=timezone.utc)

    assert next_run_after(anchor, "hourly", tz="America/New_York") == anchor + timedelta(hours=1)


def test_schedule_zone_defaults_to_settings(new_york_schedule) -> None:
    assert schedule_zone() == new_york_schedule
    assert schedule_zone("Europe/Berlin") == ZoneInfo("Europe/Berlin")
