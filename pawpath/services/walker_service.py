"""Walker Service - Service area settings, dashboard figures and payments report."""

import logging
import math
from datetime import date
from typing import Callable, Optional

from pawpath.config import settings
from pawpath.errors import AuthorizationError, ValidationError
from pawpath.models.identity import Identity
from pawpath.models.walk_assignment import AssignmentStatus
from pawpath.models.walker_profile import (
    ServiceAreaUpdate,
    WalkerPayments,
    WalkerProfile,
    WalkerStats,
)
from pawpath.repositories.base import LockKeys, Store
from pawpath.utils.timezone_utils import iso_date, local_date, utc_now

logger = logging.getLogger(__name__)


class WalkerService:
    """Service for walker profiles."""

    def __init__(self, store: Store, clock: Callable = utc_now):
        self.store = store
        self.clock = clock

    async def get_profile(self, walker_id: str) -> WalkerProfile:
        """Stored profile, or an empty one for walkers who never set it up."""
        async with self.store.transaction() as uow:
            profile = await uow.walkers.get(walker_id)
        return profile or WalkerProfile(user_id=walker_id)

    async def update_service_area(
        self, identity: Identity, data: ServiceAreaUpdate
    ) -> WalkerProfile:
        if not identity.is_walker:
            raise AuthorizationError("Only walkers have a service area")

        changes = data.model_dump(exclude_unset=True)
        if changes.get("is_available", False) is None:
            raise ValidationError("is_available must be true or false")
        # Shares the walker lock with rating recomputation
        async with self.store.transaction(LockKeys.walker(identity.user_id)) as uow:
            profile = await uow.walkers.get(identity.user_id) or WalkerProfile(
                user_id=identity.user_id
            )
            for field, value in changes.items():
                setattr(profile, field, value)
            profile.updated_at = self.clock()
            await uow.walkers.save(profile)

        logger.info(f"Walker {identity.user_id} updated service area: {sorted(changes)}")
        return profile

    async def get_stats(self, identity: Identity) -> WalkerStats:
        """Completed walks, rating and gross earnings of the calling walker."""
        if not identity.is_walker:
            raise AuthorizationError("Only walkers have walk statistics")

        async with self.store.transaction() as uow:
            completed = await uow.assignments.list_for_walker(
                identity.user_id, AssignmentStatus.COMPLETED.value
            )
            profile = await uow.walkers.get(identity.user_id)

        return WalkerStats(
            walker_id=identity.user_id,
            completed_walks=len(completed),
            average_rating=profile.average_rating if profile else None,
            review_count=profile.review_count if profile else 0,
            gross_earnings=sum(a.agreed_price for a in completed),
        )

    async def list_payments(
        self,
        identity: Identity,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        limit: Optional[int] = None,
        only_pending: bool = False,
    ) -> WalkerPayments:
        """
        Payments report of the calling walker.

        Lists completed walks, most recently completed first, optionally
        limited to a range of completion dates (inclusive, local calendar
        days). The totals split the range into walks the owner confirmed as
        paid and walks still pending, regardless of paging and only_pending.
        """
        if not identity.is_walker:
            raise AuthorizationError("Only walkers have payments")
        if limit is None:
            limit = settings.payments_page_size
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive", page=page, limit=limit)
        if date_from and date_to and date_from > date_to:
            raise ValidationError(
                "date_from must not be after date_to",
                date_from=iso_date(date_from),
                date_to=iso_date(date_to),
            )

        async with self.store.transaction() as uow:
            completed = await uow.assignments.list_for_walker(
                identity.user_id, AssignmentStatus.COMPLETED.value
            )

        offset = settings.local_utc_offset_minutes
        in_range = []
        for assignment in completed:
            day = local_date(assignment.completed_at or assignment.updated_at, offset)
            if date_from and day < date_from:
                continue
            if date_to and day > date_to:
                continue
            in_range.append(assignment)
        in_range.sort(key=lambda a: a.completed_at or a.updated_at, reverse=True)

        paid = [a for a in in_range if a.payment_confirmed]
        pending = [a for a in in_range if not a.payment_confirmed]
        listed = pending if only_pending else in_range
        skip = (page - 1) * limit

        return WalkerPayments(
            items=listed[skip: skip + limit],
            total=len(listed),
            page=page,
            limit=limit,
            pages=math.ceil(len(listed) / limit),
            gross_total=sum(a.agreed_price for a in in_range),
            paid_total=sum(a.agreed_price for a in paid),
            pending_total=sum(a.agreed_price for a in pending),
            paid_count=len(paid),
            pending_count=len(pending),
        )
