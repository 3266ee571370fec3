"""
Notification Model - Defines the notification schema for the in-app
notification center.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from pawpath.utils.timezone_utils import utc_now


class NotificationType(str, Enum):
    """Type of notification."""

    NEW_REQUEST_NEARBY = "new_request_nearby"
    REQUEST_CANCELLED = "request_cancelled"
    OFFER_RECEIVED = "offer_received"
    OFFER_ACCEPTED = "offer_accepted"
    WALKER_ARRIVED = "walker_arrived"
    WALK_STARTED = "walk_started"
    WALK_COMPLETED = "walk_completed"
    WALK_CANCELLED = "walk_cancelled"
    REVIEW_RECEIVED = "review_received"


class Notification(BaseModel):
    """
    Notification model for MongoDB.

    Fields:
    - notification_id: Unique UUID
    - user_id: Target user
    - type: Notification type for UI rendering
    - title: Notification title
    - message: Notification body
    - link: Client route the notification opens
    - data: Additional data (e.g., request_id, assignment_id)
    - read: Whether user has read the notification
    - created_at: When notification was created
    """

    notification_id: str = Field(..., description="Unique notification ID")
    user_id: str = Field(..., description="Target user ID")
    type: NotificationType
    title: str = Field(..., description="Notification title")
    message: str = Field(..., description="Notification body")
    link: Optional[str] = Field(None, description="Client route")
    data: Optional[dict] = Field(None, description="Additional data")
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)

    class Config:
        use_enum_values = True


class NotificationResponse(BaseModel):
    """Response model for notification."""

    notification_id: str
    type: str
    title: str
    message: str
    link: Optional[str]
    data: Optional[dict]
    read: bool
    created_at: datetime
