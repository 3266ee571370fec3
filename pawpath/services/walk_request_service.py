"""
Walk Request Service

Owner-side request management and the walker's view of open requests.
"""

import logging
import uuid
from datetime import date
from typing import Callable, List, Optional, Tuple

from pawpath.config import settings
from pawpath.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from pawpath.models.identity import Identity, Role
from pawpath.models.offer import OfferStatus
from pawpath.models.walk_request import (
    WalkRequest,
    WalkRequestCreate,
    WalkRequestStatus,
    WalkRequestUpdate,
)
from pawpath.models.walker_profile import WalkerProfile
from pawpath.repositories.base import LockKeys, Store
from pawpath.services.events import NewRequestNearby, RequestCancelled
from pawpath.services.geo_matcher import GeoZoneMatcher
from pawpath.services.notification_service import NotificationDispatcher
from pawpath.utils.timezone_utils import iso_date, local_date, utc_now

logger = logging.getLogger(__name__)


class WalkRequestService:
    """Service for creating, editing, cancelling and browsing walk requests."""

    def __init__(
        self,
        store: Store,
        dispatcher: NotificationDispatcher,
        matcher: Optional[GeoZoneMatcher] = None,
        clock: Callable = utc_now,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.matcher = matcher or GeoZoneMatcher()
        self.clock = clock

    async def create_request(self, identity: Identity, data: WalkRequestCreate) -> WalkRequest:
        """
        Post a new OPEN walk request.

        Available walkers who can see the request are told about it after
        the request is stored.
        """
        if not identity.is_owner:
            raise AuthorizationError("Only owners can create walk requests")
        zone = data.zone.strip()
        if not zone:
            raise ValidationError("Zone must not be blank")

        now = self.clock()
        request = WalkRequest(
            request_id=str(uuid.uuid4()),
            owner_id=identity.user_id,
            dog_id=data.dog_id,
            date=data.date,
            start_time=data.start_time,
            duration_minutes=data.duration_minutes,
            latitude=data.latitude,
            longitude=data.longitude,
            zone=zone,
            suggested_price=data.suggested_price,
            details=data.details,
            status=WalkRequestStatus.OPEN,
            created_at=now,
            updated_at=now,
        )
        async with self.store.transaction() as uow:
            await uow.walk_requests.add(request)
            walkers = await uow.walkers.list_available()

        logger.info(f"Walk request {request.request_id} created in {zone}")
        await self.dispatcher.publish([
            NewRequestNearby(
                walker_id=walker.user_id,
                request_id=request.request_id,
                zone=zone,
            )
            for walker in walkers
            if walker.user_id != identity.user_id and self.matcher.is_visible(walker, request)
        ])
        return request

    async def update_request(
        self, identity: Identity, request_id: str, data: WalkRequestUpdate
    ) -> WalkRequest:
        """Edit an OPEN request. Only fields present in the update change."""
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "zone" in changes:
            changes["zone"] = changes["zone"].strip()
            if not changes["zone"]:
                raise ValidationError("Zone must not be blank")

        async with self.store.transaction(LockKeys.walk_request(request_id)) as uow:
            request = await self._get_owned(uow, identity, request_id)
            self._require_open(request, "edited")
            for field, value in changes.items():
                setattr(request, field, value)
            request.updated_at = self.clock()
            await uow.walk_requests.save(request)

        return request

    async def cancel_request(self, identity: Identity, request_id: str) -> WalkRequest:
        """Cancel an OPEN request and reject its pending offers."""
        async with self.store.transaction(LockKeys.walk_request(request_id)) as uow:
            request = await self._get_owned(uow, identity, request_id)
            self._require_open(request, "cancelled")

            now = self.clock()
            notified: List[str] = []
            for offer in await uow.offers.list_for_request(request_id):
                if offer.status == OfferStatus.PENDING.value:
                    offer.status = OfferStatus.REJECTED
                    offer.updated_at = now
                    await uow.offers.save(offer)
                    notified.append(offer.walker_id)

            request.status = WalkRequestStatus.CANCELLED
            request.updated_at = now
            await uow.walk_requests.save(request)

        logger.info(f"Walk request {request_id} cancelled, {len(notified)} offer(s) rejected")
        await self.dispatcher.publish([
            RequestCancelled(walker_id=walker_id, request_id=request_id)
            for walker_id in dict.fromkeys(notified)
        ])
        return request

    async def get_request(self, identity: Identity, request_id: str) -> WalkRequest:
        """Owners read their own requests; walkers and admins read any."""
        async with self.store.transaction() as uow:
            request = await uow.walk_requests.get(request_id)
        if not request:
            raise NotFoundError("Walk request", request_id)
        if identity.role == Role.OWNER and request.owner_id != identity.user_id:
            raise AuthorizationError()
        return request

    async def list_my_requests(
        self, identity: Identity, status: Optional[str] = None
    ) -> List[WalkRequest]:
        if not identity.is_owner:
            raise AuthorizationError("Only owners have walk requests")
        async with self.store.transaction() as uow:
            return await uow.walk_requests.list_by_owner(identity.user_id, status)

    async def list_visible_requests(
        self,
        identity: Identity,
        search: Optional[str] = None,
        today: Optional[date] = None,
    ) -> List[Tuple[WalkRequest, Optional[float]]]:
        """
        Open requests a walker may see, each with its distance in km (or
        None when either side lacks a coordinate).

        A non-blank search term replaces geo/zone matching with a plain zone
        search. Requests dated before today are hidden, where today is the
        calendar date in the marketplace's local zone (LOCAL_UTC_OFFSET_MINUTES).
        """
        if not identity.is_walker:
            raise AuthorizationError("Only walkers can browse open requests")
        today_str = iso_date(
            today or local_date(self.clock(), settings.local_utc_offset_minutes)
        )

        async with self.store.transaction() as uow:
            open_requests = await uow.walk_requests.list_open()
            walker = await uow.walkers.get(identity.user_id)
        walker = walker or WalkerProfile(user_id=identity.user_id)

        upcoming = [r for r in open_requests if r.date >= today_str]
        if search and search.strip():
            visible = self.matcher.filter_by_zone(upcoming, search)
        else:
            visible = self.matcher.find_visible_requests(walker, upcoming)
        return [(r, self.matcher.distance_km(walker, r)) for r in visible]

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    async def _get_owned(uow, identity: Identity, request_id: str) -> WalkRequest:
        request = await uow.walk_requests.get(request_id)
        if not request:
            raise NotFoundError("Walk request", request_id)
        if request.owner_id != identity.user_id:
            raise AuthorizationError()
        return request

    @staticmethod
    def _require_open(request: WalkRequest, action: str) -> None:
        if request.status != WalkRequestStatus.OPEN.value:
            raise ConflictError(
                f"Only open requests can be {action}",
                current_status=request.status,
                required_status=WalkRequestStatus.OPEN.value,
            )
