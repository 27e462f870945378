"""Rule management and manual invocation API routes."""

import uuid

from fastapi import APIRouter, HTTPException, Query
from pydantic import ValidationError

from autorule.api.deps import LogStoreDep, OrchestratorDep, RuleStoreDep, UserIdDep
from autorule.models.execution import RuleExecutionResult
from autorule.models.rule import Rule
from autorule.schemas.common import SuccessResponse
from autorule.schemas.execution import InvokeRequest, LogListResponse
from autorule.schemas.rule import (
    ManualRuleListResponse,
    ManualRuleSummary,
    RuleCreate,
    RuleEnvelope,
    RuleListResponse,
    RuleStatusUpdate,
    RuleTemplateListResponse,
    RuleUpdate,
)
from autorule.templates import RULE_TEMPLATES, templates_by_category

router = APIRouter(prefix="/rules", tags=["rules"])


def generate_rule_id() -> str:
    return f"rule_{uuid.uuid4().hex[:12]}"


@router.post("", response_model=RuleEnvelope, status_code=201)
async def create_rule(
    data: RuleCreate,
    store: RuleStoreDep,
    user_id: UserIdDep,
) -> RuleEnvelope:
    """Create a new rule."""
    rule = Rule(
        id=generate_rule_id(),
        user_id=user_id,
        **data.model_dump(),
    )
    created = await store.create(rule)
    return RuleEnvelope(rule=created)


@router.get("", response_model=RuleListResponse)
async def list_rules(
    store: RuleStoreDep,
    user_id: UserIdDep,
    active_only: bool = Query(default=False, description="Only return active rules"),
) -> RuleListResponse:
    """List the caller's rules, highest priority first."""
    rules = await (store.list_active(user_id) if active_only else store.list_by_user(user_id))
    return RuleListResponse(rules=rules)


@router.get("/templates", response_model=RuleTemplateListResponse)
async def list_templates() -> RuleTemplateListResponse:
    """List built-in rule templates."""
    return RuleTemplateListResponse(
        templates=RULE_TEMPLATES,
        categories=templates_by_category(),
    )


@router.get("/manual", response_model=ManualRuleListResponse)
async def list_manual_rules(
    store: RuleStoreDep,
    user_id: UserIdDep,
) -> ManualRuleListResponse:
    """List rules the caller can invoke by hand."""
    rules = await store.list_manual(user_id)
    return ManualRuleListResponse(
        rules=[ManualRuleSummary(id=r.id, name=r.name, description=r.description) for r in rules]
    )


@router.post("/invoke", response_model=RuleExecutionResult)
async def invoke_rule(
    data: InvokeRequest,
    orchestrator: OrchestratorDep,
    user_id: UserIdDep,
) -> RuleExecutionResult:
    """Run a rule immediately.

    Domain errors (unknown rule, inactive rule, wrong activation mode) are
    translated by the application's exception handlers.
    """
    return await orchestrator.invoke_manual(
        user_id,
        data.rule_id,
        data.context,
        [m.model_dump() for m in data.conversation_history],
    )


@router.get("/{rule_id}", response_model=RuleEnvelope)
async def get_rule(
    rule_id: str,
    store: RuleStoreDep,
    user_id: UserIdDep,
) -> RuleEnvelope:
    """Get a single rule by ID."""
    rule = await store.get_for_user(rule_id, user_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")
    return RuleEnvelope(rule=rule)


@router.patch("/{rule_id}", response_model=RuleEnvelope)
async def update_rule(
    rule_id: str,
    data: RuleUpdate,
    store: RuleStoreDep,
    user_id: UserIdDep,
) -> RuleEnvelope:
    """Partially update an existing rule."""
    if not await store.get_for_user(rule_id, user_id):
        raise HTTPException(status_code=404, detail="Rule not found")

    try:
        updated = await store.update(rule_id, data.model_dump(exclude_unset=True))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e.errors()[0]["msg"])) from e

    if not updated:
        raise HTTPException(status_code=404, detail="Rule not found")
    return RuleEnvelope(rule=updated)


@router.delete("/{rule_id}", response_model=SuccessResponse)
async def delete_rule(
    rule_id: str,
    store: RuleStoreDep,
    user_id: UserIdDep,
) -> SuccessResponse:
    """Delete a rule."""
    if not await store.get_for_user(rule_id, user_id):
        raise HTTPException(status_code=404, detail="Rule not found")
    await store.delete(rule_id)
    return SuccessResponse()


@router.patch("/{rule_id}/status", response_model=RuleEnvelope)
async def update_rule_status(
    rule_id: str,
    data: RuleStatusUpdate,
    store: RuleStoreDep,
    user_id: UserIdDep,
) -> RuleEnvelope:
    """Activate or deactivate a rule."""
    if not await store.get_for_user(rule_id, user_id):
        raise HTTPException(status_code=404, detail="Rule not found")

    updated = await store.set_active(rule_id, data.is_active)
    if not updated:
        raise HTTPException(status_code=404, detail="Rule not found")
    return RuleEnvelope(rule=updated)


@router.get("/{rule_id}/logs", response_model=LogListResponse)
async def list_rule_logs(
    rule_id: str,
    store: RuleStoreDep,
    logs: LogStoreDep,
    user_id: UserIdDep,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> LogListResponse:
    """Execution history of one rule."""
    if not await store.get_for_user(rule_id, user_id):
        raise HTTPException(status_code=404, detail="Rule not found")

    entries, total = await logs.list_by_rule(rule_id, limit=limit, offset=offset)
    stats = await logs.stats_for_rule(rule_id)
    return LogListResponse(logs=entries, total=total, stats=stats)
