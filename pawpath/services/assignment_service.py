"""
Assignment Service

State machine of a walk assignment:

    SCHEDULED --start--> IN_PROGRESS --complete--> COMPLETED
        |                     |
        +-------cancel--------+-----> CANCELLED

COMPLETED and CANCELLED are terminal. The payment flag is the only change
allowed on a COMPLETED assignment and setting it twice is a no-op. Photos
are append-only and capped per assignment. While a walk is in progress the
walker reports GPS fixes, which both parties can read back as the route.

Every mutation re-reads the assignment under the walk_assignment lock and
saves it with a version check, so the walker and the owner acting at the
same time cannot overwrite each other.
"""

import logging
import math
import uuid
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from pawpath.config import settings
from pawpath.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from pawpath.models.identity import Identity, Role
from pawpath.models.offer import OfferStatus
from pawpath.models.route_point import RoutePoint
from pawpath.models.walk_assignment import (
    PHOTO_STATUSES,
    TERMINAL_STATUSES,
    AssignmentStatus,
    WalkAssignment,
    WalkPhoto,
    WalkReport,
)
from pawpath.models.walk_request import WalkRequestStatus
from pawpath.repositories.base import LockKeys, Store, UnitOfWork
from pawpath.services.events import WalkCancelled, WalkCompleted, WalkerArrived, WalkStarted
from pawpath.services.notification_service import NotificationDispatcher
from pawpath.utils.timezone_utils import minutes_between, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Transition Table
# =============================================================================

START = "start"
CANCEL = "cancel"
COMPLETE = "complete"

TRANSITIONS: Dict[str, Tuple[FrozenSet[str], str]] = {
    START: (
        frozenset({AssignmentStatus.SCHEDULED.value}),
        AssignmentStatus.IN_PROGRESS.value,
    ),
    CANCEL: (
        frozenset({AssignmentStatus.SCHEDULED.value, AssignmentStatus.IN_PROGRESS.value}),
        AssignmentStatus.CANCELLED.value,
    ),
    COMPLETE: (
        frozenset({AssignmentStatus.IN_PROGRESS.value}),
        AssignmentStatus.COMPLETED.value,
    ),
}


def next_status(current: str, event: str) -> str:
    """
    Resolve a transition or raise ConflictError.

    Terminal states get their own message so clients can tell "too late"
    apart from "too early".
    """
    allowed_from, target = TRANSITIONS[event]
    if current in allowed_from:
        return target
    if current in TERMINAL_STATUSES:
        raise ConflictError(
            f"Assignment is already {current}",
            current_status=current,
            event=event,
        )
    raise ConflictError(
        f"Cannot {event} an assignment that is {current}",
        current_status=current,
        required_status=sorted(allowed_from),
        event=event,
    )


class AssignmentService:
    """Drives walk assignments through their lifecycle."""

    def __init__(
        self,
        store: Store,
        dispatcher: NotificationDispatcher,
        clock: Callable = utc_now,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock

    # =========================================================================
    # Transitions
    # =========================================================================

    async def start_walk(self, identity: Identity, assignment_id: str) -> WalkAssignment:
        """Walker picks up the dog. SCHEDULED -> IN_PROGRESS."""
        async with self.store.transaction(LockKeys.walk_assignment(assignment_id)) as uow:
            assignment = await self._get_for_walker(uow, identity, assignment_id)
            assignment.status = next_status(assignment.status, START)
            now = self.clock()
            assignment.started_at = now
            assignment.updated_at = now
            await uow.assignments.save(assignment)

        logger.info(f"Walk {assignment_id} started")
        await self.dispatcher.publish([
            WalkStarted(owner_id=assignment.owner_id, assignment_id=assignment_id)
        ])
        return assignment

    async def mark_arrived(self, identity: Identity, assignment_id: str) -> WalkAssignment:
        """Walker reports arrival at the pickup point. Allowed while SCHEDULED."""
        async with self.store.transaction(LockKeys.walk_assignment(assignment_id)) as uow:
            assignment = await self._get_for_walker(uow, identity, assignment_id)
            if assignment.status != AssignmentStatus.SCHEDULED.value:
                raise ConflictError(
                    "Arrival can only be reported before the walk starts",
                    current_status=assignment.status,
                    required_status=AssignmentStatus.SCHEDULED.value,
                )
            now = self.clock()
            assignment.walker_arrived_at = now
            assignment.updated_at = now
            await uow.assignments.save(assignment)

        await self.dispatcher.publish([
            WalkerArrived(owner_id=assignment.owner_id, assignment_id=assignment_id)
        ])
        return assignment

    async def cancel(
        self,
        identity: Identity,
        assignment_id: str,
        reason: Optional[str] = None,
    ) -> WalkAssignment:
        """
        Cancel a scheduled or running walk. Either party may cancel.

        If the request is still ASSIGNED to this assignment it goes back to
        OPEN and the accepted offer is withdrawn, so the owner can accept a
        new one.
        """
        request_id = await self._request_id_for_assignment(identity, assignment_id)
        lock_keys = (
            LockKeys.walk_assignment(assignment_id),
            LockKeys.walk_request(request_id),
        )

        async with self.store.transaction(*lock_keys) as uow:
            assignment = await self._get_for_party(uow, identity, assignment_id)
            assignment.status = next_status(assignment.status, CANCEL)

            now = self.clock()
            cancelled_by = (
                Role.WALKER if identity.user_id == assignment.walker_id else Role.OWNER
            )
            assignment.cancelled_at = now
            assignment.cancelled_by = cancelled_by
            assignment.cancel_reason = reason
            assignment.updated_at = now
            await uow.assignments.save(assignment)

            request = await uow.walk_requests.get(assignment.request_id)
            if (
                request
                and request.assignment_id == assignment.assignment_id
                and request.status == WalkRequestStatus.ASSIGNED.value
            ):
                request.status = WalkRequestStatus.OPEN
                request.assignment_id = None
                request.updated_at = now
                await uow.walk_requests.save(request)

                offer = await uow.offers.get(assignment.offer_id)
                if offer and offer.status == OfferStatus.ACCEPTED.value:
                    offer.status = OfferStatus.REJECTED
                    offer.updated_at = now
                    await uow.offers.save(offer)
                logger.info(f"Request {request.request_id} reopened after cancellation")

        recipient = (
            assignment.owner_id if cancelled_by == Role.WALKER else assignment.walker_id
        )
        logger.info(f"Walk {assignment_id} cancelled by {cancelled_by.value}")
        await self.dispatcher.publish([
            WalkCancelled(
                recipient_id=recipient,
                assignment_id=assignment_id,
                cancelled_by=cancelled_by.value,
                reason=reason,
            )
        ])
        return assignment

    async def complete(
        self,
        identity: Identity,
        assignment_id: str,
        report: Optional[WalkReport] = None,
        early_end_reason: Optional[str] = None,
    ) -> WalkAssignment:
        """
        Walker finishes the walk. IN_PROGRESS -> COMPLETED.

        Ending before the planned duration requires an early-end reason.
        """
        early_end_reason = (early_end_reason or "").strip() or None

        async with self.store.transaction(LockKeys.walk_assignment(assignment_id)) as uow:
            assignment = await self._get_for_walker(uow, identity, assignment_id)
            status = next_status(assignment.status, COMPLETE)

            now = self.clock()
            request = await uow.walk_requests.get(assignment.request_id)
            if request and assignment.started_at is not None:
                elapsed = minutes_between(assignment.started_at, now)
                if elapsed < request.duration_minutes and not early_end_reason:
                    raise ValidationError(
                        "A reason is required when ending a walk early",
                        elapsed_minutes=elapsed,
                        planned_minutes=request.duration_minutes,
                    )

            assignment.status = status
            assignment.completed_at = now
            assignment.report = report
            assignment.early_end_reason = early_end_reason
            assignment.updated_at = now
            await uow.assignments.save(assignment)

        logger.info(f"Walk {assignment_id} completed")
        await self.dispatcher.publish([
            WalkCompleted(
                owner_id=assignment.owner_id,
                assignment_id=assignment_id,
                walker_id=assignment.walker_id,
            )
        ])
        return assignment

    async def confirm_payment(self, identity: Identity, assignment_id: str) -> WalkAssignment:
        """Owner confirms payment of a completed walk. Repeating it changes nothing."""
        async with self.store.transaction(LockKeys.walk_assignment(assignment_id)) as uow:
            assignment = await self._get_for_owner(uow, identity, assignment_id)
            if assignment.status != AssignmentStatus.COMPLETED.value:
                raise ConflictError(
                    "Payment can only be confirmed for completed walks",
                    current_status=assignment.status,
                    required_status=AssignmentStatus.COMPLETED.value,
                )
            if assignment.payment_confirmed:
                return assignment

            now = self.clock()
            assignment.payment_confirmed = True
            assignment.paid_at = now
            assignment.updated_at = now
            await uow.assignments.save(assignment)

        logger.info(f"Payment confirmed for walk {assignment_id}")
        return assignment

    # =========================================================================
    # Photos
    # =========================================================================

    async def add_photos(
        self, identity: Identity, assignment_id: str, urls: List[str]
    ) -> WalkAssignment:
        """Append photo references uploaded by the assigned walker."""
        urls = [u.strip() for u in urls if u and u.strip()]
        if not urls:
            raise ValidationError("At least one photo is required")

        async with self.store.transaction(LockKeys.walk_assignment(assignment_id)) as uow:
            assignment = await self._get_for_walker(uow, identity, assignment_id)
            if assignment.status not in PHOTO_STATUSES:
                raise ConflictError(
                    "Photos cannot be added to a cancelled walk",
                    current_status=assignment.status,
                )
            limit = settings.max_walk_photos
            if len(assignment.photos) + len(urls) > limit:
                raise ValidationError(
                    f"A walk can have at most {limit} photos",
                    max_photos=limit,
                    current_photos=len(assignment.photos),
                )

            now = self.clock()
            assignment.photos = assignment.photos + [
                WalkPhoto(
                    photo_id=str(uuid.uuid4()),
                    url=url,
                    uploaded_by=identity.user_id,
                    uploaded_at=now,
                )
                for url in urls
            ]
            assignment.updated_at = now
            await uow.assignments.save(assignment)

        return assignment

    async def list_photos(self, identity: Identity, assignment_id: str) -> List[WalkPhoto]:
        assignment = await self.get_assignment(identity, assignment_id)
        return assignment.photos

    # =========================================================================
    # Tracking
    # =========================================================================

    async def record_location(
        self,
        identity: Identity,
        assignment_id: str,
        latitude: float,
        longitude: float,
    ) -> RoutePoint:
        """Append a GPS fix from the assigned walker while the walk runs."""
        for name, value, bound in (("latitude", latitude, 90), ("longitude", longitude, 180)):
            if (
                isinstance(value, bool)
                or not isinstance(value, (int, float))
                or not math.isfinite(value)
                or not -bound <= value <= bound
            ):
                raise ValidationError(f"{name} must be a number between -{bound} and {bound}")

        async with self.store.transaction(LockKeys.walk_assignment(assignment_id)) as uow:
            assignment = await self._get_for_walker(uow, identity, assignment_id)
            if assignment.status != AssignmentStatus.IN_PROGRESS.value:
                raise ConflictError(
                    "Location can only be reported during the walk",
                    current_status=assignment.status,
                    required_status=AssignmentStatus.IN_PROGRESS.value,
                )
            point = RoutePoint(
                point_id=str(uuid.uuid4()),
                assignment_id=assignment_id,
                walker_id=identity.user_id,
                latitude=float(latitude),
                longitude=float(longitude),
                recorded_at=self.clock(),
            )
            await uow.route_points.add(point)

        return point

    async def get_route(self, identity: Identity, assignment_id: str) -> List[RoutePoint]:
        """Recorded route of a walk, oldest point first."""
        await self.get_assignment(identity, assignment_id)
        async with self.store.transaction() as uow:
            return await uow.route_points.list_for_assignment(assignment_id)

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_assignment(self, identity: Identity, assignment_id: str) -> WalkAssignment:
        async with self.store.transaction() as uow:
            assignment = await uow.assignments.get(assignment_id)
        if not assignment:
            raise NotFoundError("Walk assignment", assignment_id)
        if identity.role != Role.ADMIN and not assignment.involves(identity.user_id):
            raise AuthorizationError()
        return assignment

    async def list_my_assignments(
        self, identity: Identity, status: Optional[str] = None
    ) -> List[WalkAssignment]:
        """Walkers see their walks, owners see walks on their requests."""
        async with self.store.transaction() as uow:
            if identity.is_walker:
                return await uow.assignments.list_for_walker(identity.user_id, status)
            assignments = await uow.assignments.list_for_owner(identity.user_id)
        if status:
            assignments = [a for a in assignments if a.status == status]
        return assignments

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _request_id_for_assignment(self, identity: Identity, assignment_id: str) -> str:
        assignment = await self.get_assignment(identity, assignment_id)
        return assignment.request_id

    async def _load(self, uow: UnitOfWork, assignment_id: str) -> WalkAssignment:
        assignment = await uow.assignments.get(assignment_id)
        if not assignment:
            raise NotFoundError("Walk assignment", assignment_id)
        return assignment

    async def _get_for_walker(
        self, uow: UnitOfWork, identity: Identity, assignment_id: str
    ) -> WalkAssignment:
        assignment = await self._load(uow, assignment_id)
        if assignment.walker_id != identity.user_id:
            raise AuthorizationError()
        return assignment

    async def _get_for_owner(
        self, uow: UnitOfWork, identity: Identity, assignment_id: str
    ) -> WalkAssignment:
        assignment = await self._load(uow, assignment_id)
        if assignment.owner_id != identity.user_id:
            raise AuthorizationError()
        return assignment

    async def _get_for_party(
        self, uow: UnitOfWork, identity: Identity, assignment_id: str
    ) -> WalkAssignment:
        assignment = await self._load(uow, assignment_id)
        if not assignment.involves(identity.user_id):
            raise AuthorizationError()
        return assignment
