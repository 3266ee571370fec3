"""
Offer Service

Offer ledger: walkers bid on open walk requests, owners accept or reject.

Acceptance is the one path where several entities change together: the
chosen offer, its sibling offers, the request and a new walk assignment.
All of it runs in a single transaction locked on the walk request, so two
concurrent acceptances on the same request cannot both win.
"""

import logging
import math
import uuid
from typing import Callable, List, Optional, Tuple

from pawpath.config import settings
from pawpath.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from pawpath.models.identity import Identity
from pawpath.models.offer import Offer, OfferStatus
from pawpath.models.walk_assignment import AssignmentStatus, WalkAssignment
from pawpath.models.walk_request import WalkRequest, WalkRequestStatus
from pawpath.repositories.base import LockKeys, Store, UnitOfWork
from pawpath.services.events import OfferAccepted, OfferReceived
from pawpath.services.notification_service import NotificationDispatcher
from pawpath.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)


class OfferService:
    """Create, accept and reject offers on walk requests."""

    def __init__(
        self,
        store: Store,
        dispatcher: NotificationDispatcher,
        clock: Callable = utc_now,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock

    async def create_offer(
        self,
        identity: Identity,
        request_id: str,
        price: float,
        message: Optional[str] = None,
    ) -> Offer:
        """
        Submit a PENDING offer on an open request.

        Raises:
            AuthorizationError: caller is not a walker
            ValidationError: price is not a positive finite number, or the
                message is too long
            NotFoundError: request does not exist
            ConflictError: request is not open, or the walker already has an
                active offer on it
        """
        if not identity.is_walker:
            raise AuthorizationError("Only walkers can make offers")
        if (
            isinstance(price, bool)
            or not isinstance(price, (int, float))
            or not math.isfinite(price)
            or price <= 0
        ):
            raise ValidationError("Price must be a positive number", price=price)
        if message is not None and len(message) > settings.max_offer_message_length:
            raise ValidationError(
                "Offer message is too long",
                max_length=settings.max_offer_message_length,
            )

        async with self.store.transaction(LockKeys.walk_request(request_id)) as uow:
            request = await uow.walk_requests.get(request_id)
            if not request:
                raise NotFoundError("Walk request", request_id)
            if request.owner_id == identity.user_id:
                raise AuthorizationError("You cannot make an offer on your own request")
            if request.status != WalkRequestStatus.OPEN.value:
                raise ConflictError(
                    "Walk request is not open for offers",
                    current_status=request.status,
                    required_status=WalkRequestStatus.OPEN.value,
                )
            if await uow.offers.find_active(request_id, identity.user_id):
                raise ConflictError(
                    "You already have an active offer on this request",
                    request_id=request_id,
                )

            now = self.clock()
            offer = Offer(
                offer_id=str(uuid.uuid4()),
                request_id=request_id,
                walker_id=identity.user_id,
                price=float(price),
                message=message,
                status=OfferStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            await uow.offers.add(offer)

        logger.info(f"Offer {offer.offer_id} created on request {request_id}")
        await self.dispatcher.publish([
            OfferReceived(
                owner_id=request.owner_id,
                request_id=request_id,
                offer_id=offer.offer_id,
                walker_id=identity.user_id,
                price=offer.price,
            )
        ])
        return offer

    async def accept_offer(self, identity: Identity, offer_id: str) -> WalkAssignment:
        """
        Accept a pending offer and create the walk assignment.

        In one transaction: the offer becomes ACCEPTED, every other PENDING
        offer on the request becomes REJECTED, the request becomes ASSIGNED
        and a SCHEDULED assignment is created.
        """
        request_id = await self._request_id_for_offer(offer_id)

        async with self.store.transaction(LockKeys.walk_request(request_id)) as uow:
            offer, request = await self._load_for_decision(uow, identity, offer_id)
            if request.status != WalkRequestStatus.OPEN.value:
                raise ConflictError(
                    "Walk request is no longer open",
                    current_status=request.status,
                    required_status=WalkRequestStatus.OPEN.value,
                )

            now = self.clock()
            assignment = WalkAssignment(
                assignment_id=str(uuid.uuid4()),
                request_id=request.request_id,
                offer_id=offer.offer_id,
                walker_id=offer.walker_id,
                owner_id=request.owner_id,
                agreed_price=offer.price,
                status=AssignmentStatus.SCHEDULED,
                created_at=now,
                updated_at=now,
            )

            offer.status = OfferStatus.ACCEPTED
            offer.updated_at = now
            await uow.offers.save(offer)

            for sibling in await uow.offers.list_for_request(request.request_id):
                if sibling.offer_id == offer.offer_id:
                    continue
                if sibling.status == OfferStatus.PENDING.value:
                    sibling.status = OfferStatus.REJECTED
                    sibling.updated_at = now
                    await uow.offers.save(sibling)

            request.status = WalkRequestStatus.ASSIGNED
            request.assignment_id = assignment.assignment_id
            request.updated_at = now
            await uow.walk_requests.save(request)

            await uow.assignments.add(assignment)

        logger.info(
            f"Offer {offer_id} accepted, assignment {assignment.assignment_id} "
            f"created for request {request_id}"
        )
        await self.dispatcher.publish([
            OfferAccepted(
                walker_id=offer.walker_id,
                request_id=request_id,
                offer_id=offer_id,
                assignment_id=assignment.assignment_id,
            )
        ])
        return assignment

    async def reject_offer(self, identity: Identity, offer_id: str) -> Offer:
        """Reject a pending offer. The request stays as it is."""
        request_id = await self._request_id_for_offer(offer_id)

        async with self.store.transaction(LockKeys.walk_request(request_id)) as uow:
            offer, _ = await self._load_for_decision(uow, identity, offer_id)
            offer.status = OfferStatus.REJECTED
            offer.updated_at = self.clock()
            await uow.offers.save(offer)

        logger.info(f"Offer {offer_id} rejected")
        return offer

    async def list_offers_for_request(
        self, identity: Identity, request_id: str
    ) -> List[Offer]:
        """All offers on a request, visible to its owner only."""
        async with self.store.transaction() as uow:
            request = await uow.walk_requests.get(request_id)
            if not request:
                raise NotFoundError("Walk request", request_id)
            if request.owner_id != identity.user_id:
                raise AuthorizationError()
            return await uow.offers.list_for_request(request_id)

    async def list_my_offers(self, identity: Identity) -> List[Offer]:
        if not identity.is_walker:
            raise AuthorizationError("Only walkers have offers")
        async with self.store.transaction() as uow:
            return await uow.offers.list_by_walker(identity.user_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _request_id_for_offer(self, offer_id: str) -> str:
        """Resolve the lock key before entering the locked transaction."""
        async with self.store.transaction() as uow:
            offer = await uow.offers.get(offer_id)
        if not offer:
            raise NotFoundError("Offer", offer_id)
        return offer.request_id

    async def _load_for_decision(
        self, uow: UnitOfWork, identity: Identity, offer_id: str
    ) -> Tuple[Offer, WalkRequest]:
        """Re-read offer and request under the lock and check the owner may decide."""
        offer = await uow.offers.get(offer_id)
        if not offer:
            raise NotFoundError("Offer", offer_id)
        request = await uow.walk_requests.get(offer.request_id)
        if not request:
            raise NotFoundError("Walk request", offer.request_id)
        if request.owner_id != identity.user_id:
            raise AuthorizationError()
        if offer.status != OfferStatus.PENDING.value:
            raise ConflictError(
                "Offer is no longer pending",
                current_status=offer.status,
                required_status=OfferStatus.PENDING.value,
            )
        return offer, request
