"""Route Point Model - GPS trace of a running walk."""

from datetime import datetime

from pydantic import BaseModel, Field

from pawpath.utils.timezone_utils import utc_now


class RoutePoint(BaseModel):
    """
    One location fix reported by the walker while the walk is in progress.

    Append-only; the route of a walk is its points ordered by recorded_at.
    """
    point_id: str = Field(..., description="Unique point ID")
    assignment_id: str = Field(..., description="Walk assignment being traced")
    walker_id: str = Field(..., description="Walker who reported the fix")
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    recorded_at: datetime = Field(default_factory=utc_now)

    class Config:
        frozen = True


class LocationUpdate(BaseModel):
    """Body of a location report."""
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
