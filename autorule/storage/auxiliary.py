"""Auxiliary storage operations (idempotency, caching, queues, notifications)."""

import json
import uuid
from datetime import datetime, timedelta, timezone

from redis.asyncio import Redis

from autorule.core.config import get_settings
from autorule.models.notification import Notification, OutputTask
from autorule.storage.redis_client import RedisKeys, get_redis


class IdempotencyStore:
    """Inbound event de-duplication keyed by the event uuid."""

    TTL_SECONDS = 3600  # 1 hour

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def is_processed(self, event_uuid: str) -> bool:
        """Check if an event has already been dispatched."""
        return await self.redis.exists(RedisKeys.processed(event_uuid)) > 0

    async def mark_processed(self, event_uuid: str) -> bool:
        """Mark an event as dispatched.

        Returns:
            True if newly marked, False if already existed
        """
        result = await self.redis.set(
            RedisKeys.processed(event_uuid),
            "1",
            nx=True,
            ex=self.TTL_SECONDS,
        )
        return bool(result)


class MatchCacheStore:
    """Short-lived cache of rule match decisions."""

    def __init__(self, redis: Redis | None = None, ttl_seconds: int | None = None):
        self._redis = redis
        self._ttl = ttl_seconds if ttl_seconds is not None else get_settings().match_cache_seconds

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def get(self, rule_id: str, context_hash: str) -> dict | None:
        """Get a cached decision."""
        if self._ttl <= 0:
            return None
        data = await self.redis.get(RedisKeys.match_cache(rule_id, context_hash))
        if data:
            return json.loads(data)
        return None

    async def set(self, rule_id: str, context_hash: str, result: dict) -> None:
        """Cache a decision."""
        if self._ttl <= 0:
            return
        await self.redis.setex(
            RedisKeys.match_cache(rule_id, context_hash),
            self._ttl,
            json.dumps(result),
        )


class OutputQueue:
    """Queue of pending output deliveries."""

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def enqueue(self, task: OutputTask) -> None:
        """Add a task to the queue."""
        await self.redis.lpush(RedisKeys.OUTPUT_QUEUE, task.model_dump_json())

    async def dequeue(self, timeout: int = 5) -> OutputTask | None:
        """Block for the next task.

        Args:
            timeout: Blocking timeout in seconds
        """
        result = await self.redis.brpop(RedisKeys.OUTPUT_QUEUE, timeout=timeout)
        if result:
            _, data = result
            return OutputTask.model_validate_json(data)
        return None

    async def requeue_with_delay(self, task: OutputTask) -> float:
        """Requeue a failed task with its backoff delay recorded.

        Returns:
            Backoff delay in seconds
        """
        delay = task.calculate_retry_delay()
        task.retry_count += 1
        task.retry_after = datetime.now(timezone.utc) + timedelta(seconds=delay)
        await self.enqueue(task)
        return delay

    async def move_to_dead_letter(self, task: OutputTask) -> None:
        """Park a task that exhausted its retries."""
        await self.redis.lpush(RedisKeys.OUTPUT_DEAD_LETTER, task.model_dump_json())

    async def queue_length(self) -> int:
        """Number of tasks waiting."""
        return await self.redis.llen(RedisKeys.OUTPUT_QUEUE)


class NotificationStore:
    """In-app notifications, newest first per user."""

    MAX_PER_USER = 200

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    @staticmethod
    def generate_id() -> str:
        return f"ntf_{uuid.uuid4().hex[:16]}"

    async def create(self, notification: Notification) -> Notification:
        """Store a notification and trim the user's backlog."""
        index_key = RedisKeys.notifications_by_user(notification.user_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.set(RedisKeys.notification_detail(notification.id), notification.model_dump_json())
            pipe.zadd(index_key, {notification.id: notification.created_at.timestamp() * 1000})
            await pipe.execute()

        overflow = await self.redis.zrange(index_key, 0, -self.MAX_PER_USER - 1)
        if overflow:
            await self.redis.zrem(index_key, *overflow)
            await self.redis.delete(*[RedisKeys.notification_detail(n) for n in overflow])
        return notification

    async def get(self, notification_id: str) -> Notification | None:
        data = await self.redis.get(RedisKeys.notification_detail(notification_id))
        if not data:
            return None
        return Notification.model_validate_json(data)

    async def list_by_user(
        self,
        user_id: str,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[Notification]:
        """List a user's notifications, newest first."""
        ids = await self.redis.zrevrange(RedisKeys.notifications_by_user(user_id), 0, -1)
        notifications = []
        for notification_id in ids:
            notification = await self.get(notification_id)
            if notification is None or (unread_only and notification.read):
                continue
            notifications.append(notification)
            if len(notifications) >= limit:
                break
        return notifications

    async def mark_read(self, notification_id: str, user_id: str) -> bool:
        """Mark one notification read.

        Returns:
            False if it does not exist or belongs to someone else
        """
        notification = await self.get(notification_id)
        if notification is None or notification.user_id != user_id:
            return False
        notification.read = True
        await self.redis.set(RedisKeys.notification_detail(notification_id), notification.model_dump_json())
        return True

    async def mark_all_read(self, user_id: str) -> int:
        """Mark every notification of a user read.

        Returns:
            Number of notifications changed
        """
        changed = 0
        for notification in await self.list_by_user(user_id, unread_only=True, limit=self.MAX_PER_USER):
            if await self.mark_read(notification.id, user_id):
                changed += 1
        return changed
