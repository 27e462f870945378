"""Calendar arithmetic for scheduled rules."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from autorule.core.config import get_settings

INTERVAL_DELTAS: dict[str, timedelta] = {
    "15min": timedelta(minutes=15),
    "hourly": timedelta(hours=1),
    "daily": timedelta(days=1),
    "weekly": timedelta(weeks=1),
}

# Stepped on the local wall clock of the schedule zone; shorter intervals use elapsed time.
WALL_CLOCK_INTERVALS = frozenset({"daily", "weekly"})


def interval_delta(interval: str) -> timedelta:
    """Look up the calendar step of a schedule interval.

    Raises:
        ValueError: If the interval is unknown
    """
    try:
        return INTERVAL_DELTAS[interval]
    except KeyError:
        raise ValueError(f"Unknown schedule interval: {interval}") from None


def schedule_zone(tz: str | None = None) -> ZoneInfo:
    """Zone whose wall clock anchors daily and weekly runs."""
    return ZoneInfo(tz or get_settings().schedule_timezone)


def _shift(value: datetime, interval: str, steps: int, zone: ZoneInfo) -> datetime:
    delta = interval_delta(interval) * steps
    if interval in WALL_CLOCK_INTERVALS:
        return (value.astimezone(zone) + delta).astimezone(timezone.utc)
    return (value + delta).astimezone(timezone.utc)


def next_run_after(anchor: datetime, interval: str, tz: str | None = None) -> datetime:
    """Return ``anchor`` plus one interval, in UTC.

    Daily and weekly steps add days on the local wall clock of ``tz``
    (``schedule_timezone`` by default), so a daily rule at 09:00 stays at
    09:00 across a DST change.
    """
    return _shift(anchor, interval, 1, schedule_zone(tz))


def advance_schedule(
    previous_next_run: datetime | None,
    interval: str,
    now: datetime,
    tz: str | None = None,
) -> datetime:
    """Compute the next run after a scheduled execution at ``now``.

    The rule keeps its slot: the previous next-run is stepped forward by
    whole intervals until it lies strictly after ``now``. A daily rule due
    yesterday at 09:00 and run today at 10:00 is next due tomorrow at 09:00.
    Without a previous slot the next run is one interval from ``now``.

    Args:
        previous_next_run: Next-run marker the execution consumed
        interval: Schedule interval value
        now: Execution time
        tz: IANA zone for wall-clock steps (defaults to ``schedule_timezone``)

    Returns:
        New next-run timestamp in UTC, always later than ``now``
    """
    zone = schedule_zone(tz)
    if previous_next_run is None or previous_next_run > now:
        return _shift(now, interval, 1, zone)

    # Jump close to ``now`` instead of stepping over each missed slot; the
    # estimate may be off by one around a DST change, so correct both ways.
    steps = max((now - previous_next_run) // interval_delta(interval), 1)
    while steps > 1 and _shift(previous_next_run, interval, steps - 1, zone) > now:
        steps -= 1
    candidate = _shift(previous_next_run, interval, steps, zone)
    while candidate <= now:
        steps += 1
        candidate = _shift(previous_next_run, interval, steps, zone)
    return candidate
