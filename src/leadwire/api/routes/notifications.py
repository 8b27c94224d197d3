"""Notification routes for the authenticated user.

Polling clients call /notifications/poll with the timestamp of their last
check; the response carries only buffered (realtime) entries newer than it.
"""

from fastapi import APIRouter, HTTPException, Query

from leadwire.api.auth import CurrentUser, CurrentUserDep
from leadwire.infra.time import parse_iso, utc_now
from leadwire.services.wiring import get_pipeline

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/poll")
def poll_notifications(
    last_check: str | None = Query(None),
    user: CurrentUser = CurrentUserDep,
) -> dict:
    """Realtime notifications since last_check (ISO 8601), plus unread count."""
    since = None
    if last_check:
        since = parse_iso(last_check)
        if since is None:
            raise HTTPException(status_code=400, detail="Invalid last_check timestamp")

    dispatcher = get_pipeline().notifications
    return {
        "success": True,
        "data": dispatcher.get_pending(user.id, since),
        "unreadCount": dispatcher.unread_count(user.id),
        "timestamp": utc_now().isoformat().replace("+00:00", "Z"),
    }


@router.get("")
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    user: CurrentUser = CurrentUserDep,
) -> dict:
    """Paginated durable notifications, newest first."""
    data = get_pipeline().notifications.list_for_user(
        user.id, page=page, limit=limit, unread_only=unread_only
    )
    return {"success": True, "data": data}


@router.get("/count")
def unread_count(user: CurrentUser = CurrentUserDep) -> dict:
    return {
        "success": True,
        "data": {"unreadCount": get_pipeline().notifications.unread_count(user.id)},
    }


@router.post("/read-all")
def mark_all_read(user: CurrentUser = CurrentUserDep) -> dict:
    count = get_pipeline().notifications.mark_all_read(user.id)
    return {"success": True, "data": {"updated": count}}


@router.post("/{notification_id}/read")
def mark_read(notification_id: int, user: CurrentUser = CurrentUserDep) -> dict:
    if not get_pipeline().notifications.mark_read(notification_id, user.id):
        raise HTTPException(status_code=404, detail="Notification not found or already read")
    return {"success": True}


@router.delete("/{notification_id}")
def delete_notification(notification_id: int, user: CurrentUser = CurrentUserDep) -> dict:
    if not get_pipeline().notifications.delete(notification_id, user.id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"success": True}
