"""
Rating Service

Handles review submission and the walker's average rating.
"""

import logging
import uuid
from typing import Callable, List, Optional, Tuple

from pawpath.config import settings
from pawpath.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from pawpath.models.identity import Identity
from pawpath.models.review import Review
from pawpath.models.walk_assignment import AssignmentStatus
from pawpath.models.walker_profile import WalkerProfile
from pawpath.repositories.base import LockKeys, Store
from pawpath.services.events import ReviewReceived
from pawpath.services.notification_service import NotificationDispatcher
from pawpath.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)


class RatingService:
    """Service for walk reviews and walker ratings."""

    def __init__(
        self,
        store: Store,
        dispatcher: NotificationDispatcher,
        clock: Callable = utc_now,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock

    async def create_review(
        self,
        identity: Identity,
        assignment_id: str,
        rating: int,
        comment: Optional[str] = None,
    ) -> Review:
        """
        Submit the owner's review of a completed walk.

        Validates:
        - Rating is a whole number from 1 to 5
        - Caller owns the walk request behind the assignment
        - Assignment is completed and has no review yet

        The review insert and the recomputed average rating commit together,
        under locks on the assignment and the walker.
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be an integer from 1 to 5", rating=rating)
        if comment is not None and len(comment) > settings.max_review_comment_length:
            raise ValidationError(
                "Review comment is too long",
                max_length=settings.max_review_comment_length,
            )

        # Walker id is needed for the lock key; it never changes on an assignment
        async with self.store.transaction() as uow:
            assignment = await uow.assignments.get(assignment_id)
        if not assignment:
            raise NotFoundError("Walk assignment", assignment_id)
        if assignment.owner_id != identity.user_id:
            raise AuthorizationError()
        walker_id = assignment.walker_id

        lock_keys = (LockKeys.walk_assignment(assignment_id), LockKeys.walker(walker_id))
        async with self.store.transaction(*lock_keys) as uow:
            assignment = await uow.assignments.get(assignment_id)
            if assignment.status != AssignmentStatus.COMPLETED.value:
                raise ConflictError(
                    "Only completed walks can be reviewed",
                    current_status=assignment.status,
                    required_status=AssignmentStatus.COMPLETED.value,
                )
            if await uow.reviews.get_for_assignment(assignment_id):
                raise ConflictError(
                    "This walk has already been reviewed",
                    assignment_id=assignment_id,
                )

            now = self.clock()
            review = Review(
                review_id=str(uuid.uuid4()),
                assignment_id=assignment_id,
                author_id=identity.user_id,
                walker_id=walker_id,
                rating=rating,
                comment=comment,
                created_at=now,
            )
            await uow.reviews.add(review)

            # Full recomputation, never an incremental update
            ratings = await uow.reviews.ratings_for_walker(walker_id)
            average, count = self.compute_average(ratings)

            profile = await uow.walkers.get(walker_id) or WalkerProfile(user_id=walker_id)
            profile.average_rating = average
            profile.review_count = count
            profile.updated_at = now
            await uow.walkers.save(profile)

        logger.info(
            f"Review {review.review_id} on walk {assignment_id}: walker {walker_id} "
            f"now averages {average} over {count} review(s)"
        )
        await self.dispatcher.publish([
            ReviewReceived(
                walker_id=walker_id,
                assignment_id=assignment_id,
                review_id=review.review_id,
                rating=rating,
            )
        ])
        return review

    @staticmethod
    def compute_average(ratings: List[int]) -> Tuple[Optional[float], int]:
        """Exact arithmetic mean, no rounding. None when there are no ratings."""
        if not ratings:
            return None, 0
        return sum(ratings) / len(ratings), len(ratings)

    async def list_walker_reviews(
        self, walker_id: str, page: int = 1, limit: int = 10
    ) -> Tuple[List[Review], int]:
        """Reviews of a walker, newest first, with the total count."""
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive", page=page, limit=limit)
        async with self.store.transaction() as uow:
            reviews = await uow.reviews.list_for_walker(
                walker_id, skip=(page - 1) * limit, limit=limit
            )
            total = await uow.reviews.count_for_walker(walker_id)
        return reviews, total

    async def get_walker_rating(self, walker_id: str) -> Tuple[Optional[float], int]:
        """Stored average rating and review count of a walker."""
        async with self.store.transaction() as uow:
            profile = await uow.walkers.get(walker_id)
        if not profile:
            return None, 0
        return profile.average_rating, profile.review_count
