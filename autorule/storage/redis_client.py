"""Redis client management."""

import redis.asyncio as redis
from redis.asyncio import Redis

from autorule.core.config import get_settings

# Global connection pool
_pool: redis.ConnectionPool | None = None


async def init_redis_pool() -> None:
    """Initialize Redis connection pool."""
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            max_connections=20,
        )


async def close_redis_pool() -> None:
    """Close Redis connection pool."""
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None


def get_redis() -> Redis:
    """Get Redis client from pool.

    Raises:
        RuntimeError: If pool not initialized
    """
    if _pool is None:
        raise RuntimeError("Redis pool not initialized. Call init_redis_pool() first.")
    return redis.Redis(connection_pool=_pool)


class RedisKeys:
    """Redis key patterns."""

    # Rules
    RULE_DETAIL = "autorule:rules:detail:{rule_id}"
    RULE_BY_USER = "autorule:rules:user:{user_id}"
    RULE_SCHEDULE = "autorule:rules:schedule"

    # Execution log
    LOG_DETAIL = "autorule:logs:detail:{log_id}"
    LOG_BY_RULE = "autorule:logs:rule:{rule_id}"
    LOG_BY_USER = "autorule:logs:user:{user_id}"
    LOG_ALL = "autorule:logs:all"

    # Notifications
    NOTIFICATION_DETAIL = "autorule:notifications:detail:{notification_id}"
    NOTIFICATION_BY_USER = "autorule:notifications:user:{user_id}"

    # Auxiliary
    PROCESSED = "autorule:processed:{event_uuid}"
    MATCH_CACHE = "autorule:match_cache:{rule_id}:{context_hash}"
    OUTPUT_QUEUE = "autorule:output:queue"
    OUTPUT_DEAD_LETTER = "autorule:output:dead_letter"

    @classmethod
    def rule_detail(cls, rule_id: str) -> str:
        return cls.RULE_DETAIL.format(rule_id=rule_id)

    @classmethod
    def rules_by_user(cls, user_id: str) -> str:
        return cls.RULE_BY_USER.format(user_id=user_id)

    @classmethod
    def log_detail(cls, log_id: str) -> str:
        return cls.LOG_DETAIL.format(log_id=log_id)

    @classmethod
    def logs_by_rule(cls, rule_id: str) -> str:
        return cls.LOG_BY_RULE.format(rule_id=rule_id)

    @classmethod
    def logs_by_user(cls, user_id: str) -> str:
        return cls.LOG_BY_USER.format(user_id=user_id)

    @classmethod
    def notification_detail(cls, notification_id: str) -> str:
        return cls.NOTIFICATION_DETAIL.format(notification_id=notification_id)

    @classmethod
    def notifications_by_user(cls, user_id: str) -> str:
        return cls.NOTIFICATION_BY_USER.format(user_id=user_id)

    @classmethod
    def processed(cls, event_uuid: str) -> str:
        return cls.PROCESSED.format(event_uuid=event_uuid)

    @classmethod
    def match_cache(cls, rule_id: str, context_hash: str) -> str:
        return cls.MATCH_CACHE.format(rule_id=rule_id, context_hash=context_hash)
