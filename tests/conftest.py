"""
Shared fixtures: an in-memory store, a controllable clock and the services
wired to them with inline notification delivery.
"""

from datetime import datetime, timedelta
from typing import Optional

import pytest

from pawpath.models.identity import Identity, Role
from pawpath.models.walk_assignment import WalkAssignment
from pawpath.models.walk_request import WalkRequest, WalkRequestCreate
from pawpath.models.walker_profile import WalkerProfile
from pawpath.repositories.memory import InMemoryStore
from pawpath.services.assignment_service import AssignmentService
from pawpath.services.geo_matcher import GeoZoneMatcher
from pawpath.services.notification_service import NotificationDispatcher, NotificationService
from pawpath.services.offer_service import OfferService
from pawpath.services.rating_service import RatingService
from pawpath.services.walk_request_service import WalkRequestService
from pawpath.services.walker_service import WalkerService
from pawpath.utils.timezone_utils import UTC


# La Molina, Lima
LA_MOLINA = (-12.0790, -76.9420)


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 5, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int) -> None:
        self.now += timedelta(minutes=minutes)


class Marketplace:
    """Services over one store plus shortcuts for the usual setups."""

    def __init__(self, store: InMemoryStore, clock: FakeClock):
        self.store = store
        self.clock = clock
        self.notifications = NotificationService(store, clock)
        self.dispatcher = NotificationDispatcher(self.notifications, background=False)
        self.requests = WalkRequestService(store, self.dispatcher, GeoZoneMatcher(), clock)
        self.offers = OfferService(store, self.dispatcher, clock)
        self.assignments = AssignmentService(store, self.dispatcher, clock)
        self.ratings = RatingService(store, self.dispatcher, clock)
        self.walkers = WalkerService(store, clock)

    async def add_walker(self, user_id: str, **fields) -> WalkerProfile:
        profile = WalkerProfile(user_id=user_id, **fields)
        async with self.store.transaction() as uow:
            await uow.walkers.save(profile)
        return profile

    async def open_request(self, owner: Identity, **overrides) -> WalkRequest:
        data = {
            "dog_id": "dog-1",
            "date": "2026-05-02",
            "start_time": "10:00",
            "duration_minutes": 30,
            "latitude": LA_MOLINA[0],
            "longitude": LA_MOLINA[1],
            "zone": "La Molina",
            "suggested_price": 30.0,
        }
        data.update(overrides)
        return await self.requests.create_request(owner, WalkRequestCreate(**data))

    async def scheduled_walk(
        self, owner: Identity, walker: Identity, price: float = 30.0, **overrides
    ) -> WalkAssignment:
        request = await self.open_request(owner, **overrides)
        offer = await self.offers.create_offer(walker, request.request_id, price)
        return await self.offers.accept_offer(owner, offer.offer_id)

    async def completed_walk(
        self, owner: Identity, walker: Identity, price: float = 30.0, **overrides
    ) -> WalkAssignment:
        assignment = await self.scheduled_walk(owner, walker, price, **overrides)
        await self.assignments.start_walk(walker, assignment.assignment_id)
        self.clock.advance(60)
        return await self.assignments.complete(walker, assignment.assignment_id)

    async def inbox(self, identity: Identity):
        return await self.notifications.get_notifications(identity)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def market(store, clock):
    return Marketplace(store, clock)


@pytest.fixture
def owner():
    return Identity(user_id="owner-1", role=Role.OWNER)


@pytest.fixture
def other_owner():
    return Identity(user_id="owner-2", role=Role.OWNER)


@pytest.fixture
def walker():
    return Identity(user_id="walker-1", role=Role.WALKER)


@pytest.fixture
def walker_2():
    return Identity(user_id="walker-2", role=Role.WALKER)


@pytest.fixture
def walker_3():
    return Identity(user_id="walker-3", role=Role.WALKER)
