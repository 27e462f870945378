"""Execution log API routes."""

from fastapi import APIRouter, HTTPException, Query

from autorule.api.deps import LogStoreDep, RuleStoreDep, UserIdDep
from autorule.schemas.execution import LogListResponse

router = APIRouter(prefix="/logs", tags=["logs"])


@router.get("", response_model=LogListResponse)
async def list_logs(
    logs: LogStoreDep,
    rules: RuleStoreDep,
    user_id: UserIdDep,
    rule_id: str | None = Query(default=None, description="Restrict to one rule"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> LogListResponse:
    """Execution history of the caller, newest first."""
    if rule_id:
        if not await rules.get_for_user(rule_id, user_id):
            raise HTTPException(status_code=404, detail="Rule not found")
        entries, total = await logs.list_by_rule(rule_id, limit=limit, offset=offset)
        stats = await logs.stats_for_rule(rule_id)
    else:
        entries, total = await logs.list_by_user(user_id, limit=limit, offset=offset)
        stats = await logs.stats_for_user(user_id)

    return LogListResponse(logs=entries, total=total, stats=stats)
