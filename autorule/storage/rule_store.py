"""Rule storage operations."""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import WatchError

from autorule.core.logging import get_logger
from autorule.engine.schedule import advance_schedule
from autorule.models.rule import ActivationMode, Rule, ScheduleInterval, utcnow
from autorule.storage.redis_client import RedisKeys, get_redis

logger = get_logger(__name__)

# Fields whose change re-anchors the schedule on "now"
SCHEDULE_FIELDS = frozenset({"schedule_enabled", "schedule_interval", "activation_mode"})


def _ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def sort_by_priority(rules: list[Rule]) -> list[Rule]:
    """Priority descending, most recently updated first on ties."""
    return sorted(rules, key=lambda r: (r.priority, r.updated_at), reverse=True)


class RuleStore:
    """Rule storage operations using Redis.

    Every mutation is a read-modify-write of the whole rule record inside a
    WATCH/MULTI transaction, so overlapping scheduler ticks cannot
    double-advance or skip a schedule.
    """

    MAX_TX_RETRIES = 10

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def create(self, rule: Rule, now: datetime | None = None) -> Rule:
        """Create a new rule.

        A rule created with an enabled schedule gets its first next-run one
        interval from now.
        """
        now = now or utcnow()
        rule.created_at = now
        rule.updated_at = now
        rule.reschedule(now)

        async with self.redis.pipeline(transaction=True) as pipe:
            self._queue_write(pipe, rule)
            pipe.sadd(RedisKeys.rules_by_user(rule.user_id), rule.id)
            await pipe.execute()

        logger.info("Rule created", rule_id=rule.id, user_id=rule.user_id)
        return rule

    async def get(self, rule_id: str) -> Rule | None:
        """Get a rule by ID."""
        data = await self.redis.hget(RedisKeys.rule_detail(rule_id), "config")
        if not data:
            return None
        return Rule.model_validate_json(data)

    async def get_for_user(self, rule_id: str, user_id: str) -> Rule | None:
        """Get a rule only if it belongs to ``user_id``."""
        rule = await self.get(rule_id)
        if rule is None or rule.user_id != user_id:
            return None
        return rule

    async def update(
        self,
        rule_id: str,
        changes: dict[str, Any],
        now: datetime | None = None,
    ) -> Rule | None:
        """Apply a partial update.

        Changing the interval, the schedule switch or the activation mode
        recomputes the next run from ``now`` instead of the old anchor.

        Raises:
            pydantic.ValidationError: If the merged rule is invalid
        """
        now = now or utcnow()
        immutable = {"id", "user_id", "created_at", "execution_count"}
        changes = {k: v for k, v in changes.items() if k not in immutable}

        def apply(rule: Rule) -> Rule:
            merged = rule.model_dump()
            merged.update(changes)
            updated = Rule.model_validate(merged)
            updated.updated_at = now
            if SCHEDULE_FIELDS & changes.keys():
                updated.reschedule(now)
            return updated

        return await self._mutate(rule_id, apply)

    async def set_active(self, rule_id: str, is_active: bool) -> Rule | None:
        """Switch a rule on or off."""
        now = utcnow()

        def apply(rule: Rule) -> Rule:
            rule.is_active = is_active
            rule.updated_at = now
            return rule

        return await self._mutate(rule_id, apply)

    async def delete(self, rule_id: str) -> bool:
        """Delete a rule.

        Returns:
            True if deleted, False if not found
        """
        existing = await self.get(rule_id)
        if not existing:
            return False

        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.srem(RedisKeys.rules_by_user(existing.user_id), rule_id)
            pipe.zrem(RedisKeys.RULE_SCHEDULE, rule_id)
            pipe.delete(RedisKeys.rule_detail(rule_id))
            await pipe.execute()

        logger.info("Rule deleted", rule_id=rule_id)
        return True

    async def list_by_user(self, user_id: str) -> list[Rule]:
        """List every rule owned by a user, priority order."""
        rule_ids = await self.redis.smembers(RedisKeys.rules_by_user(user_id))
        rules = []
        for rule_id in rule_ids:
            rule = await self.get(rule_id)
            if rule:
                rules.append(rule)
        return sort_by_priority(rules)

    async def list_active(self, user_id: str) -> list[Rule]:
        """List a user's active rules, priority order."""
        return [r for r in await self.list_by_user(user_id) if r.is_active]

    async def list_manual(self, user_id: str) -> list[Rule]:
        """List active rules that can be invoked by hand."""
        return [
            r for r in await self.list_active(user_id)
            if r.supports(ActivationMode.MANUAL)
        ]

    async def has_active_rules(self, user_id: str) -> bool:
        """Coarse check used before accepting an inbound event."""
        return bool(await self.list_active(user_id))

    async def due_rules(self, now: datetime) -> list[Rule]:
        """List rules due at ``now``, earliest next-run first."""
        rule_ids = await self.redis.zrangebyscore(
            RedisKeys.RULE_SCHEDULE,
            min="-inf",
            max=_ms(now),
        )
        due = []
        for rule_id in rule_ids:
            rule = await self.get(rule_id)
            if rule and rule.is_due(now):
                due.append(rule)
        due.sort(key=lambda r: r.schedule_next_run)
        return due

    async def record_scheduled_run(
        self,
        rule_id: str,
        interval: ScheduleInterval | str,
        now: datetime,
    ) -> Rule | None:
        """Advance a rule's schedule after a scheduled execution.

        Sets the last run to ``now``, moves the next run to the rule's next
        slot after ``now`` and bumps the run counter.
        """
        interval_value = interval.value if isinstance(interval, ScheduleInterval) else interval

        def apply(rule: Rule) -> Rule:
            rule.schedule_last_run = now
            rule.schedule_next_run = advance_schedule(rule.schedule_next_run, interval_value, now)
            rule.execution_count += 1
            rule.last_executed_at = now
            return rule

        return await self._mutate(rule_id, apply)

    async def claim_scheduled_run(
        self,
        rule_id: str,
        now: datetime,
    ) -> Rule | None:
        """Advance the schedule only if the rule is still due.

        Returns the rule as it was before the claim, or None when another
        tick already advanced it.
        """
        claimed: list[Rule] = []

        def apply(rule: Rule) -> Rule | None:
            if not rule.is_due(now) or rule.schedule_interval is None:
                return None
            claimed.append(rule.model_copy(deep=True))
            rule.schedule_last_run = now
            rule.schedule_next_run = advance_schedule(
                rule.schedule_next_run, rule.schedule_interval.value, now
            )
            rule.execution_count += 1
            rule.last_executed_at = now
            return rule

        await self._mutate(rule_id, apply)
        return claimed[-1] if claimed else None

    async def record_manual_run(self, rule_id: str, now: datetime | None = None) -> Rule | None:
        """Count a manual run without touching schedule fields."""
        return await self._record_run(rule_id, now or utcnow())

    async def record_triggered_run(self, rule_id: str, now: datetime | None = None) -> Rule | None:
        """Count an event-triggered run without touching schedule fields."""
        return await self._record_run(rule_id, now or utcnow())

    async def _record_run(self, rule_id: str, now: datetime) -> Rule | None:
        def apply(rule: Rule) -> Rule:
            rule.execution_count += 1
            rule.last_executed_at = now
            return rule

        return await self._mutate(rule_id, apply)

    async def _mutate(
        self,
        rule_id: str,
        apply: Callable[[Rule], Rule | None],
    ) -> Rule | None:
        """Atomically read, transform and write back one rule record.

        ``apply`` may return None to abort without writing.
        """
        key = RedisKeys.rule_detail(rule_id)
        for attempt in range(self.MAX_TX_RETRIES):
            async with self.redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    data = await pipe.hget(key, "config")
                    if not data:
                        await pipe.unwatch()
                        return None
                    rule = apply(Rule.model_validate_json(data))
                    if rule is None:
                        await pipe.unwatch()
                        return None
                    pipe.multi()
                    self._queue_write(pipe, rule)
                    await pipe.execute()
                    return rule
                except WatchError:
                    logger.debug("Rule write conflict, retrying", rule_id=rule_id, attempt=attempt)
                    continue
        raise RuntimeError(f"Could not update rule {rule_id}: too many concurrent writers")

    @staticmethod
    def _queue_write(pipe: Any, rule: Rule) -> None:
        """Queue the record and schedule index writes on a pipeline."""
        pipe.hset(
            RedisKeys.rule_detail(rule.id),
            mapping={
                "config": rule.model_dump_json(),
                "user_id": rule.user_id,
                "is_active": str(rule.is_active).lower(),
                "updated_at": str(_ms(rule.updated_at)),
            },
        )
        if rule.schedule_enabled and rule.schedule_next_run is not None:
            pipe.zadd(RedisKeys.RULE_SCHEDULE, {rule.id: _ms(rule.schedule_next_run)})
        else:
            pipe.zrem(RedisKeys.RULE_SCHEDULE, rule.id)
