"""
Domain Events

Tagged records raised by the core services on state transitions. Services
collect them while the transaction is open and hand them to the
NotificationDispatcher only after it committed.
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class OfferReceived:
    owner_id: str
    request_id: str
    offer_id: str
    walker_id: str
    price: float


@dataclass(frozen=True)
class OfferAccepted:
    walker_id: str
    request_id: str
    offer_id: str
    assignment_id: str


@dataclass(frozen=True)
class WalkerArrived:
    owner_id: str
    assignment_id: str


@dataclass(frozen=True)
class WalkStarted:
    owner_id: str
    assignment_id: str


@dataclass(frozen=True)
class WalkCompleted:
    owner_id: str
    assignment_id: str
    walker_id: str


@dataclass(frozen=True)
class WalkCancelled:
    recipient_id: str
    assignment_id: str
    cancelled_by: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class ReviewReceived:
    walker_id: str
    assignment_id: str
    review_id: str
    rating: int


@dataclass(frozen=True)
class NewRequestNearby:
    walker_id: str
    request_id: str
    zone: str


@dataclass(frozen=True)
class RequestCancelled:
    walker_id: str
    request_id: str


DomainEvent = Union[
    OfferReceived,
    OfferAccepted,
    WalkerArrived,
    WalkStarted,
    WalkCompleted,
    WalkCancelled,
    ReviewReceived,
    NewRequestNearby,
    RequestCancelled,
]
