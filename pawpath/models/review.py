"""Review Model - Owner's review of a completed walk."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from pawpath.utils.timezone_utils import utc_now


class Review(BaseModel):
    """
    Review left by the request owner once an assignment is completed.

    Exactly one per assignment, immutable after creation. Ratings feed the
    walker's average rating.
    """
    review_id: str = Field(..., description="Unique review ID")
    assignment_id: str = Field(..., description="Reviewed walk assignment")
    author_id: str = Field(..., description="Owner who wrote the review")
    walker_id: str = Field(..., description="Walker being reviewed")
    rating: int = Field(..., ge=1, le=5, description="1-5 star rating")
    comment: Optional[str] = Field(None)
    created_at: datetime = Field(default_factory=utc_now)

    class Config:
        frozen = True


class ReviewCreate(BaseModel):
    """Data required to submit a review."""
    assignment_id: str = Field(..., min_length=1)
    rating: int
    comment: Optional[str] = None


class ReviewResponse(BaseModel):
    """Review response for API."""
    review_id: str
    assignment_id: str
    author_id: str
    walker_id: str
    rating: int
    comment: Optional[str]
    created_at: datetime
