"""
Walk Assignment Model

The binding contract created when an owner accepts an offer.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from pawpath.models.identity import Role
from pawpath.utils.timezone_utils import utc_now


class AssignmentStatus(str, Enum):
    """Status of a walk assignment."""

    SCHEDULED = "scheduled"  # Offer accepted, walk not started
    IN_PROGRESS = "in_progress"  # Walker picked up the dog
    COMPLETED = "completed"  # Walk finished (terminal)
    CANCELLED = "cancelled"  # Cancelled by a party (terminal)


# Stored statuses are plain strings (use_enum_values), so the sets hold values
TERMINAL_STATUSES = frozenset({
    AssignmentStatus.COMPLETED.value,
    AssignmentStatus.CANCELLED.value,
})
ACTIVE_STATUSES = frozenset({
    AssignmentStatus.SCHEDULED.value,
    AssignmentStatus.IN_PROGRESS.value,
})
PHOTO_STATUSES = frozenset({
    AssignmentStatus.SCHEDULED.value,
    AssignmentStatus.IN_PROGRESS.value,
    AssignmentStatus.COMPLETED.value,
})


class WalkPhoto(BaseModel):
    """Reference to an uploaded walk photo. Bytes live in file storage."""

    photo_id: str
    url: str
    uploaded_by: str
    uploaded_at: datetime = Field(default_factory=utc_now)


class WalkReport(BaseModel):
    """Walker's report filed on completion."""

    did_pee: bool = False
    did_poop: bool = False
    behavior_rating: Optional[int] = Field(None, ge=1, le=5)
    notes: Optional[str] = Field(None, max_length=1000)


class WalkAssignment(BaseModel):
    """
    Walk assignment model for MongoDB.

    Never deleted, only transitioned. Timestamps are set only for the
    transitions actually reached.

    Fields:
    - assignment_id: Unique UUID
    - request_id: Originating walk request
    - offer_id: Accepted offer
    - walker_id: Assigned walker
    - owner_id: Request owner (copied from the request)
    - agreed_price: Price of the accepted offer
    - status: Current status
    - walker_arrived_at/started_at/completed_at/cancelled_at: Transition times
    - payment_confirmed/paid_at: Set by the owner after completion
    - photos: Append-only walk evidence
    """

    assignment_id: str = Field(..., description="Unique assignment ID")
    request_id: str = Field(..., description="Originating walk request")
    offer_id: str = Field(..., description="Accepted offer")
    walker_id: str = Field(..., description="Assigned walker")
    owner_id: str = Field(..., description="Request owner")
    agreed_price: float = Field(..., gt=0)
    status: AssignmentStatus = Field(default=AssignmentStatus.SCHEDULED)
    walker_arrived_at: Optional[datetime] = Field(None)
    started_at: Optional[datetime] = Field(None)
    completed_at: Optional[datetime] = Field(None)
    cancelled_at: Optional[datetime] = Field(None)
    cancelled_by: Optional[Role] = Field(None)
    cancel_reason: Optional[str] = Field(None)
    early_end_reason: Optional[str] = Field(None)
    report: Optional[WalkReport] = Field(None)
    payment_confirmed: bool = Field(default=False)
    paid_at: Optional[datetime] = Field(None)
    photos: List[WalkPhoto] = Field(default_factory=list)
    version: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Config:
        use_enum_values = True
        validate_assignment = True

    def involves(self, user_id: str) -> bool:
        return user_id in (self.walker_id, self.owner_id)


class CancelAssignmentRequest(BaseModel):
    """Body for cancelling an assignment."""

    reason: Optional[str] = Field(None, max_length=500)


class CompleteAssignmentRequest(BaseModel):
    """Body for completing a walk."""

    report: Optional[WalkReport] = None
    early_end_reason: Optional[str] = Field(None, max_length=500)


class AddPhotosRequest(BaseModel):
    """Photo references returned by the file-storage layer."""

    urls: List[str] = Field(..., min_length=1)
