"""
Notifications Router

In-app notification center.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from pawpath.dependencies import Services, get_identity, get_services
from pawpath.models.identity import Identity
from pawpath.models.notification import NotificationResponse


router = APIRouter()


class NotificationListResponse(BaseModel):
    """List of notifications with unread count."""
    notifications: List[NotificationResponse]
    unread_count: int


@router.get("", response_model=NotificationListResponse)
async def get_notifications(
    limit: Optional[int] = Query(None, ge=1, le=200),
    unread_only: bool = False,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Get the caller's notifications, newest first."""
    notifications = await services.notifications.get_notifications(
        identity, limit=limit, unread_only=unread_only
    )
    unread_count = await services.notifications.get_unread_count(identity)

    return NotificationListResponse(
        notifications=[NotificationResponse(**n.model_dump()) for n in notifications],
        unread_count=unread_count,
    )


@router.put("/read-all")
async def mark_all_read(
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Mark all notifications as read."""
    count = await services.notifications.mark_all_read(identity)

    return {
        "success": True,
        "count": count,
        "message": f"Marked {count} notifications as read"
    }


@router.put("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Mark a notification as read."""
    await services.notifications.mark_read(identity, notification_id)

    return {"success": True, "message": "Notification marked as read"}
