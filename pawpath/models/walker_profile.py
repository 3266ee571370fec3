"""Walker Profile Model - Service area and denormalized rating of a walker."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from pawpath.models.walk_assignment import WalkAssignment
from pawpath.utils.timezone_utils import utc_now


class WalkerProfile(BaseModel):
    """
    Walker profile for MongoDB.

    Fields:
    - user_id: Walker's user ID
    - service_radius_km: Radius of the service area (default applies when unset)
    - latitude/longitude: Home coordinate, optional
    - base_zone/base_city: Named service area, optional
    - is_available: Whether the walker wants new-request alerts
    - average_rating: Mean of every review rating on the walker's assignments.
      Derived; recomputed in full on each new review.
    - review_count: Number of reviews behind average_rating
    """
    user_id: str = Field(..., description="Walker user ID")
    service_radius_km: Optional[float] = Field(None)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    base_zone: Optional[str] = Field(None)
    base_city: Optional[str] = Field(None)
    is_available: bool = Field(default=True)
    average_rating: Optional[float] = Field(None, ge=1, le=5)
    review_count: int = Field(default=0, ge=0)
    version: int = Field(default=0)
    updated_at: datetime = Field(default_factory=utc_now)

    class Config:
        validate_assignment = True

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def zone_needle(self) -> Optional[str]:
        """Base zone, falling back to base city. Blank values count as unset."""
        for value in (self.base_zone, self.base_city):
            if value and value.strip():
                return value.strip()
        return None


class ServiceAreaUpdate(BaseModel):
    """Service area fields a walker may change."""
    service_radius_km: Optional[float] = Field(None, gt=0, le=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    base_zone: Optional[str] = Field(None, max_length=200)
    base_city: Optional[str] = Field(None, max_length=200)
    is_available: Optional[bool] = None

    @model_validator(mode="after")
    def _coordinates_together(self) -> "ServiceAreaUpdate":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be provided together")
        return self

    @model_validator(mode="after")
    def _availability_not_null(self) -> "ServiceAreaUpdate":
        # Omitting the field keeps the current value; null is not a state
        if "is_available" in self.model_fields_set and self.is_available is None:
            raise ValueError("is_available must be true or false")
        return self


class WalkerStats(BaseModel):
    """Walker dashboard figures."""
    walker_id: str
    completed_walks: int
    average_rating: Optional[float]
    review_count: int
    gross_earnings: float


class WalkerPayments(BaseModel):
    """
    Page of the walker's completed walks with payment totals.

    Totals cover every completed walk in the date range, not just the page.
    """
    items: List[WalkAssignment]
    total: int
    page: int
    limit: int
    pages: int
    gross_total: float
    paid_total: float
    pending_total: float
    paid_count: int
    pending_count: int
