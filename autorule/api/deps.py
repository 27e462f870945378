"""API dependency injection."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException

from autorule.dispatch.orchestrator import DispatchOrchestrator, create_orchestrator
from autorule.storage.auxiliary import NotificationStore
from autorule.storage.log_store import ExecutionLogStore
from autorule.storage.redis_client import get_redis
from autorule.storage.rule_store import RuleStore

_orchestrator: DispatchOrchestrator | None = None


def get_rule_store() -> RuleStore:
    """Get rule store instance."""
    return RuleStore(get_redis())


def get_log_store() -> ExecutionLogStore:
    """Get execution log store instance."""
    return ExecutionLogStore(get_redis())


def get_notification_store() -> NotificationStore:
    """Get notification store instance."""
    return NotificationStore(get_redis())


def get_orchestrator() -> DispatchOrchestrator:
    """Get the process-wide orchestrator.

    Shared so detached dispatch tasks stay referenced across requests.
    """
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = create_orchestrator(get_redis())
    return _orchestrator


async def shutdown_orchestrator() -> None:
    """Wait for in-flight dispatches, close its clients and drop the shared orchestrator."""
    global _orchestrator
    if _orchestrator is not None:
        await _orchestrator.close()
    _orchestrator = None


def get_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    """Caller identity from the X-User-Id header."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


# Type aliases for dependency injection
RuleStoreDep = Annotated[RuleStore, Depends(get_rule_store)]
LogStoreDep = Annotated[ExecutionLogStore, Depends(get_log_store)]
NotificationStoreDep = Annotated[NotificationStore, Depends(get_notification_store)]
OrchestratorDep = Annotated[DispatchOrchestrator, Depends(get_orchestrator)]
UserIdDep = Annotated[str, Depends(get_user_id)]
