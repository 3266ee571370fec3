"""
Walk Request Model

Defines the walk request schema for MongoDB persistence.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from pawpath.utils.timezone_utils import utc_now


class WalkRequestStatus(str, Enum):
    """Status of a walk request."""

    OPEN = "open"  # Accepting offers
    ASSIGNED = "assigned"  # An offer was accepted
    CANCELLED = "cancelled"  # Owner cancelled
    EXPIRED = "expired"  # Closed by the expiry batch job


class WalkRequest(BaseModel):
    """
    Walk request model for MongoDB.

    Fields:
    - request_id: Unique UUID for the request
    - owner_id: Owner who posted the request
    - dog_id: Dog to be walked (managed by the profile layer)
    - date: Walk date (YYYY-MM-DD)
    - start_time: Walk start (HH:MM)
    - duration_minutes: Planned walk duration
    - latitude/longitude: Pickup point, optional
    - zone: Free-text neighborhood label used for zone matching
    - suggested_price: Owner's price suggestion
    - details: Free-text notes for walkers
    - status: Current status of the request
    - assignment_id: Assignment currently governing the request
    """

    request_id: str = Field(..., description="Unique request ID")
    owner_id: str = Field(..., description="Owner who created the request")
    dog_id: str = Field(..., description="Dog reference")
    date: str = Field(..., description="Walk date (YYYY-MM-DD)")
    start_time: str = Field(..., description="Start time (HH:MM)")
    duration_minutes: int = Field(..., gt=0)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    zone: str = Field(..., description="Neighborhood label")
    suggested_price: float = Field(..., gt=0)
    details: Optional[str] = Field(None)
    status: WalkRequestStatus = Field(default=WalkRequestStatus.OPEN)
    assignment_id: Optional[str] = Field(None)
    version: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Config:
        use_enum_values = True
        validate_assignment = True

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class WalkRequestCreate(BaseModel):
    """Data required to create a new walk request."""

    dog_id: str = Field(..., min_length=1)
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    start_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    duration_minutes: int = Field(..., gt=0, le=480)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    zone: str = Field(..., min_length=1, max_length=200)
    suggested_price: float = Field(..., gt=0)
    details: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def _coordinates_together(self) -> "WalkRequestCreate":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be provided together")
        return self


class WalkRequestUpdate(BaseModel):
    """Fields the owner may change while the request is open."""

    date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    start_time: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    duration_minutes: Optional[int] = Field(None, gt=0, le=480)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    zone: Optional[str] = Field(None, min_length=1, max_length=200)
    suggested_price: Optional[float] = Field(None, gt=0)
    details: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def _coordinates_together(self) -> "WalkRequestUpdate":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be provided together")
        return self
