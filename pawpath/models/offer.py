"""Offer Model - A walker's bid on an open walk request."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from pawpath.utils.timezone_utils import utc_now


class OfferStatus(str, Enum):
    """Status of an offer."""
    PENDING = "pending"    # Waiting for the owner's decision
    ACCEPTED = "accepted"  # Became the walk assignment
    REJECTED = "rejected"  # Declined, superseded or withdrawn


class Offer(BaseModel):
    """
    Offer model for MongoDB.

    A walker holds at most one non-rejected offer per request. At most one
    offer per request is ACCEPTED at any time.
    """
    offer_id: str = Field(..., description="Unique offer ID")
    request_id: str = Field(..., description="Walk request this offer targets")
    walker_id: str = Field(..., description="Walker who made the offer")
    price: float = Field(..., gt=0)
    message: Optional[str] = Field(None)
    status: OfferStatus = Field(default=OfferStatus.PENDING)
    version: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Config:
        use_enum_values = True
        validate_assignment = True


class OfferCreate(BaseModel):
    """Data required to submit an offer."""
    request_id: str = Field(..., min_length=1)
    price: float
    message: Optional[str] = None
