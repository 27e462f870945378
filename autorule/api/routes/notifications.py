"""In-app notification routes."""

from fastapi import APIRouter, HTTPException, Query

from autorule.api.deps import NotificationStoreDep, UserIdDep
from autorule.schemas.common import SuccessResponse
from autorule.schemas.execution import NotificationListResponse

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    store: NotificationStoreDep,
    user_id: UserIdDep,
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
) -> NotificationListResponse:
    """List the caller's notifications, newest first."""
    notifications = await store.list_by_user(user_id, unread_only=unread_only, limit=limit)
    unread = await store.list_by_user(user_id, unread_only=True, limit=store.MAX_PER_USER)
    return NotificationListResponse(notifications=notifications, unread=len(unread))


@router.post("/read-all", response_model=SuccessResponse)
async def mark_all_read(
    store: NotificationStoreDep,
    user_id: UserIdDep,
) -> SuccessResponse:
    """Mark every notification of the caller read."""
    changed = await store.mark_all_read(user_id)
    return SuccessResponse(updated=changed)


@router.post("/{notification_id}/read", response_model=SuccessResponse)
async def mark_read(
    notification_id: str,
    store: NotificationStoreDep,
    user_id: UserIdDep,
) -> SuccessResponse:
    """Mark one notification read."""
    if not await store.mark_read(notification_id, user_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return SuccessResponse(updated=1)
