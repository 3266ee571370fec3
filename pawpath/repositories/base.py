"""
Repository Contracts

One repository per entity, grouped in a unit of work that commits
all-or-nothing. Services only talk to these interfaces, so the matching and
state-machine logic runs the same against MongoDB and the in-memory store.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import List, Optional

from pawpath.models.notification import Notification
from pawpath.models.offer import Offer
from pawpath.models.review import Review
from pawpath.models.route_point import RoutePoint
from pawpath.models.walk_assignment import WalkAssignment
from pawpath.models.walk_request import WalkRequest
from pawpath.models.walker_profile import WalkerProfile


# =============================================================================
# Lock Keys
# =============================================================================
#
# Multi-entity operations serialize on these keys:
# - walk_request:{id}    - offers, acceptance, request cancellation
# - walk_assignment:{id} - transitions, photos, route points, reviews
# - walker:{id}          - average rating recomputation
#
# =============================================================================


class LockKeys:
    """Lock key builders."""

    @staticmethod
    def walk_request(request_id: str) -> str:
        return f"walk_request:{request_id}"

    @staticmethod
    def walk_assignment(assignment_id: str) -> str:
        return f"walk_assignment:{assignment_id}"

    @staticmethod
    def walker(walker_id: str) -> str:
        return f"walker:{walker_id}"


class WalkRequestRepository(ABC):
    @abstractmethod
    async def get(self, request_id: str) -> Optional[WalkRequest]: ...

    @abstractmethod
    async def add(self, request: WalkRequest) -> None: ...

    @abstractmethod
    async def save(self, request: WalkRequest) -> None:
        """Persist changes. Raises ConflictError if the row changed underneath."""

    @abstractmethod
    async def list_open(self) -> List[WalkRequest]: ...

    @abstractmethod
    async def list_by_owner(
        self, owner_id: str, status: Optional[str] = None
    ) -> List[WalkRequest]: ...


class OfferRepository(ABC):
    @abstractmethod
    async def get(self, offer_id: str) -> Optional[Offer]: ...

    @abstractmethod
    async def add(self, offer: Offer) -> None: ...

    @abstractmethod
    async def save(self, offer: Offer) -> None: ...

    @abstractmethod
    async def list_for_request(self, request_id: str) -> List[Offer]: ...

    @abstractmethod
    async def list_by_walker(self, walker_id: str) -> List[Offer]: ...

    @abstractmethod
    async def find_active(self, request_id: str, walker_id: str) -> Optional[Offer]:
        """The walker's non-rejected offer on the request, if any."""


class WalkAssignmentRepository(ABC):
    @abstractmethod
    async def get(self, assignment_id: str) -> Optional[WalkAssignment]: ...

    @abstractmethod
    async def add(self, assignment: WalkAssignment) -> None: ...

    @abstractmethod
    async def save(self, assignment: WalkAssignment) -> None: ...

    @abstractmethod
    async def find_active_for_request(self, request_id: str) -> Optional[WalkAssignment]:
        """The scheduled or in-progress assignment on the request, if any."""

    @abstractmethod
    async def list_for_walker(
        self, walker_id: str, status: Optional[str] = None
    ) -> List[WalkAssignment]: ...

    @abstractmethod
    async def list_for_owner(self, owner_id: str) -> List[WalkAssignment]: ...


class ReviewRepository(ABC):
    @abstractmethod
    async def get_for_assignment(self, assignment_id: str) -> Optional[Review]: ...

    @abstractmethod
    async def add(self, review: Review) -> None:
        """Insert. Raises ConflictError if the assignment already has a review."""

    @abstractmethod
    async def ratings_for_walker(self, walker_id: str) -> List[int]:
        """Ratings of every review joined through the walker's assignments."""

    @abstractmethod
    async def list_for_walker(
        self, walker_id: str, skip: int = 0, limit: int = 10
    ) -> List[Review]: ...

    @abstractmethod
    async def count_for_walker(self, walker_id: str) -> int: ...


class WalkerProfileRepository(ABC):
    @abstractmethod
    async def get(self, user_id: str) -> Optional[WalkerProfile]: ...

    @abstractmethod
    async def save(self, profile: WalkerProfile) -> None:
        """Insert or update (compare-and-swap on version)."""

    @abstractmethod
    async def list_available(self) -> List[WalkerProfile]: ...


class NotificationRepository(ABC):
    @abstractmethod
    async def add(self, notification: Notification) -> None: ...

    @abstractmethod
    async def list_for_user(
        self, user_id: str, limit: int = 50, unread_only: bool = False
    ) -> List[Notification]: ...

    @abstractmethod
    async def count_unread(self, user_id: str) -> int: ...

    @abstractmethod
    async def mark_read(self, user_id: str, notification_id: str) -> bool: ...

    @abstractmethod
    async def mark_all_read(self, user_id: str) -> int: ...


class RoutePointRepository(ABC):
    @abstractmethod
    async def add(self, point: RoutePoint) -> None: ...

    @abstractmethod
    async def list_for_assignment(self, assignment_id: str) -> List[RoutePoint]:
        """Points of one walk, oldest first."""


class UnitOfWork(ABC):
    """Repositories bound to one transaction."""

    walk_requests: WalkRequestRepository
    offers: OfferRepository
    assignments: WalkAssignmentRepository
    reviews: ReviewRepository
    walkers: WalkerProfileRepository
    notifications: NotificationRepository
    route_points: RoutePointRepository


class Store(ABC):
    """
    Transactional storage abstraction injected into every service.

    Usage:
        async with store.transaction(LockKeys.walk_request(request_id)) as uow:
            request = await uow.walk_requests.get(request_id)
            ...

    Leaving the block normally commits every write; an exception discards
    them all. Lock keys are held exclusively for the whole block.
    """

    @abstractmethod
    def transaction(self, *lock_keys: str) -> AbstractAsyncContextManager[UnitOfWork]: ...

    async def close(self) -> None:
        """Release connections held by the store."""
