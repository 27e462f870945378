"""Execution log storage operations."""

import uuid
from datetime import datetime, timedelta, timezone

from redis.asyncio import Redis

from autorule.core.logging import get_logger
from autorule.models.execution import ExecutionLogEntry, ExecutionLogStats
from autorule.storage.redis_client import RedisKeys, get_redis

logger = get_logger(__name__)


def generate_log_id() -> str:
    """Generate a log entry identifier."""
    return f"log_{uuid.uuid4().hex[:16]}"


class ExecutionLogStore:
    """Append-only audit trail of rule runs using Redis Sorted Sets.

    Entries are indexed per rule and per user, scored by creation time, so
    list queries come back newest first. Statistics are computed on read.
    """

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def append(self, entry: ExecutionLogEntry) -> ExecutionLogEntry:
        """Persist a new log entry.

        Args:
            entry: Entry to insert

        Returns:
            The stored entry
        """
        score = entry.created_at.timestamp() * 1000
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.set(RedisKeys.log_detail(entry.id), entry.model_dump_json())
            pipe.zadd(RedisKeys.logs_by_rule(entry.rule_id), {entry.id: score})
            pipe.zadd(RedisKeys.logs_by_user(entry.user_id), {entry.id: score})
            pipe.zadd(RedisKeys.LOG_ALL, {entry.id: score})
            await pipe.execute()

        logger.debug(
            "Execution log appended",
            log_id=entry.id,
            rule_id=entry.rule_id,
            status=entry.status.value,
        )
        return entry

    async def get(self, log_id: str) -> ExecutionLogEntry | None:
        """Get a single entry."""
        data = await self.redis.get(RedisKeys.log_detail(log_id))
        if not data:
            return None
        return ExecutionLogEntry.model_validate_json(data)

    async def list_by_rule(
        self,
        rule_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ExecutionLogEntry], int]:
        """List a rule's runs, newest first.

        Returns:
            Tuple of (page of entries, total count)
        """
        return await self._page(RedisKeys.logs_by_rule(rule_id), limit, offset)

    async def list_by_user(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ExecutionLogEntry], int]:
        """List a user's runs across all rules, newest first."""
        return await self._page(RedisKeys.logs_by_user(user_id), limit, offset)

    async def recent(self, user_id: str, limit: int = 10) -> list[ExecutionLogEntry]:
        """Most recent runs of a user."""
        entries, _ = await self.list_by_user(user_id, limit=limit)
        return entries

    async def stats_for_rule(self, rule_id: str) -> ExecutionLogStats:
        """Success rate and latency over all runs of a rule."""
        return ExecutionLogStats.from_entries(await self._load_all(RedisKeys.logs_by_rule(rule_id)))

    async def stats_for_user(self, user_id: str) -> ExecutionLogStats:
        """Success rate and latency over all runs of a user."""
        return ExecutionLogStats.from_entries(await self._load_all(RedisKeys.logs_by_user(user_id)))

    async def delete_older_than(self, days: int, now: datetime | None = None) -> int:
        """Retention purge of entries older than ``days``.

        Returns:
            Number of entries removed
        """
        now = now or datetime.now(timezone.utc)
        cutoff = (now - timedelta(days=days)).timestamp() * 1000
        log_ids = await self.redis.zrangebyscore(RedisKeys.LOG_ALL, "-inf", f"({cutoff}")

        deleted = 0
        for log_id in log_ids:
            entry = await self.get(log_id)
            async with self.redis.pipeline(transaction=True) as pipe:
                if entry:
                    pipe.zrem(RedisKeys.logs_by_rule(entry.rule_id), log_id)
                    pipe.zrem(RedisKeys.logs_by_user(entry.user_id), log_id)
                pipe.delete(RedisKeys.log_detail(log_id))
                pipe.zrem(RedisKeys.LOG_ALL, log_id)
                await pipe.execute()
            deleted += 1

        if deleted:
            logger.info("Execution logs purged", deleted=deleted, older_than_days=days)
        return deleted

    async def _page(
        self,
        index_key: str,
        limit: int,
        offset: int,
    ) -> tuple[list[ExecutionLogEntry], int]:
        total = await self.redis.zcard(index_key)
        if limit <= 0 or offset >= total:
            return [], total
        log_ids = await self.redis.zrevrange(index_key, offset, offset + limit - 1)
        return await self._load(log_ids), total

    async def _load_all(self, index_key: str) -> list[ExecutionLogEntry]:
        log_ids = await self.redis.zrevrange(index_key, 0, -1)
        return await self._load(log_ids)

    async def _load(self, log_ids: list[str]) -> list[ExecutionLogEntry]:
        if not log_ids:
            return []
        raw = await self.redis.mget([RedisKeys.log_detail(log_id) for log_id in log_ids])
        return [ExecutionLogEntry.model_validate_json(data) for data in raw if data]
