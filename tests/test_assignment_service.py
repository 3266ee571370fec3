"""
Tests for the Assignment Service

Walk lifecycle transitions, guards, photos, GPS tracking and payment
confirmation.
"""

import pytest

from pawpath.config import settings
from pawpath.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from pawpath.models.identity import Identity, Role
from pawpath.models.notification import NotificationType
from pawpath.models.offer import OfferStatus
from pawpath.models.walk_assignment import AssignmentStatus, WalkReport
from pawpath.models.walk_request import WalkRequestStatus
from pawpath.services.assignment_service import CANCEL, COMPLETE, START, next_status


class TestTransitionTable:
    """Tests for next_status."""

    def test_valid_transitions(self):
        assert next_status("scheduled", START) == "in_progress"
        assert next_status("scheduled", CANCEL) == "cancelled"
        assert next_status("in_progress", CANCEL) == "cancelled"
        assert next_status("in_progress", COMPLETE) == "completed"

    @pytest.mark.parametrize("event", [START, CANCEL, COMPLETE])
    @pytest.mark.parametrize("terminal", ["completed", "cancelled"])
    def test_terminal_states_accept_nothing(self, terminal, event):
        with pytest.raises(ConflictError) as exc_info:
            next_status(terminal, event)

        assert exc_info.value.details["current_status"] == terminal

    def test_cannot_complete_before_start(self):
        with pytest.raises(ConflictError) as exc_info:
            next_status("scheduled", COMPLETE)

        assert exc_info.value.details["required_status"] == ["in_progress"]


class TestLifecycle:
    """Tests for start, arrival and completion."""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, market, clock, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)
        aid = assignment.assignment_id

        arrived = await market.assignments.mark_arrived(walker, aid)
        assert arrived.walker_arrived_at == clock.now

        started = await market.assignments.start_walk(walker, aid)
        assert started.status == AssignmentStatus.IN_PROGRESS.value
        assert started.started_at == clock.now

        clock.advance(45)
        report = WalkReport(did_pee=True, did_poop=False, behavior_rating=5)
        completed = await market.assignments.complete(walker, aid, report=report)

        assert completed.status == AssignmentStatus.COMPLETED.value
        assert completed.completed_at == clock.now
        assert completed.report.did_pee is True
        assert completed.cancelled_at is None

        types = [n.type for n in await market.inbox(owner)]
        assert NotificationType.WALKER_ARRIVED.value in types
        assert NotificationType.WALK_STARTED.value in types
        assert NotificationType.WALK_COMPLETED.value in types

    @pytest.mark.asyncio
    async def test_only_assigned_walker_can_start(self, market, owner, walker, walker_2):
        assignment = await market.scheduled_walk(owner, walker)

        with pytest.raises(AuthorizationError):
            await market.assignments.start_walk(walker_2, assignment.assignment_id)
        with pytest.raises(AuthorizationError):
            await market.assignments.start_walk(owner, assignment.assignment_id)

    @pytest.mark.asyncio
    async def test_start_twice_conflicts(self, market, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)
        await market.assignments.start_walk(walker, assignment.assignment_id)

        with pytest.raises(ConflictError):
            await market.assignments.start_walk(walker, assignment.assignment_id)

    @pytest.mark.asyncio
    async def test_arrival_only_before_start(self, market, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)
        await market.assignments.start_walk(walker, assignment.assignment_id)

        with pytest.raises(ConflictError):
            await market.assignments.mark_arrived(walker, assignment.assignment_id)

    @pytest.mark.asyncio
    async def test_early_end_requires_reason(self, market, clock, owner, walker):
        assignment = await market.scheduled_walk(owner, walker, duration_minutes=60)
        aid = assignment.assignment_id
        await market.assignments.start_walk(walker, aid)
        clock.advance(20)

        with pytest.raises(ValidationError) as exc_info:
            await market.assignments.complete(walker, aid)
        assert exc_info.value.details == {"elapsed_minutes": 20, "planned_minutes": 60}

        with pytest.raises(ValidationError):
            await market.assignments.complete(walker, aid, early_end_reason="   ")

        completed = await market.assignments.complete(
            walker, aid, early_end_reason="Dog was tired"
        )
        assert completed.early_end_reason == "Dog was tired"

    @pytest.mark.asyncio
    async def test_full_duration_needs_no_reason(self, market, clock, owner, walker):
        assignment = await market.scheduled_walk(owner, walker, duration_minutes=30)
        await market.assignments.start_walk(walker, assignment.assignment_id)
        clock.advance(30)

        completed = await market.assignments.complete(walker, assignment.assignment_id)

        assert completed.status == AssignmentStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_unknown_assignment(self, market, walker):
        with pytest.raises(NotFoundError):
            await market.assignments.start_walk(walker, "missing")


class TestCancel:
    """Tests for AssignmentService.cancel."""

    @pytest.mark.asyncio
    async def test_walker_cancel_reopens_request(self, market, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)

        cancelled = await market.assignments.cancel(
            walker, assignment.assignment_id, reason="Sick"
        )

        assert cancelled.status == AssignmentStatus.CANCELLED.value
        assert cancelled.cancelled_by == Role.WALKER.value
        assert cancelled.cancel_reason == "Sick"
        assert cancelled.cancelled_at is not None

        request = await market.requests.get_request(owner, assignment.request_id)
        assert request.status == WalkRequestStatus.OPEN.value
        assert request.assignment_id is None

        async with market.store.transaction() as uow:
            offer = await uow.offers.get(assignment.offer_id)
        assert offer.status == OfferStatus.REJECTED.value

        owner_types = [n.type for n in await market.inbox(owner)]
        assert NotificationType.WALK_CANCELLED.value in owner_types

    @pytest.mark.asyncio
    async def test_reopened_request_accepts_new_offer(self, market, owner, walker, walker_2):
        assignment = await market.scheduled_walk(owner, walker)
        await market.assignments.cancel(owner, assignment.assignment_id)

        offer = await market.offers.create_offer(walker_2, assignment.request_id, 40)
        second = await market.offers.accept_offer(owner, offer.offer_id)

        assert second.assignment_id != assignment.assignment_id
        assert second.walker_id == walker_2.user_id

    @pytest.mark.asyncio
    async def test_owner_can_cancel_running_walk(self, market, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)
        await market.assignments.start_walk(walker, assignment.assignment_id)

        cancelled = await market.assignments.cancel(owner, assignment.assignment_id)

        assert cancelled.cancelled_by == Role.OWNER.value
        walker_types = [n.type for n in await market.inbox(walker)]
        assert NotificationType.WALK_CANCELLED.value in walker_types

    @pytest.mark.asyncio
    async def test_stranger_cannot_cancel(self, market, owner, other_owner, walker):
        assignment = await market.scheduled_walk(owner, walker)

        with pytest.raises(AuthorizationError):
            await market.assignments.cancel(other_owner, assignment.assignment_id)

    @pytest.mark.asyncio
    async def test_terminal_states_are_final(self, market, owner, walker):
        cancelled = await market.scheduled_walk(owner, walker)
        await market.assignments.cancel(owner, cancelled.assignment_id)
        completed = await market.completed_walk(owner, walker)

        for aid in (cancelled.assignment_id, completed.assignment_id):
            with pytest.raises(ConflictError):
                await market.assignments.cancel(owner, aid)
            with pytest.raises(ConflictError):
                await market.assignments.start_walk(walker, aid)
            with pytest.raises(ConflictError):
                await market.assignments.complete(walker, aid)

        stored = await market.assignments.get_assignment(owner, completed.assignment_id)
        assert stored.status == AssignmentStatus.COMPLETED.value


class TestPayment:
    """Tests for AssignmentService.confirm_payment."""

    @pytest.mark.asyncio
    async def test_confirm_payment_is_idempotent(self, market, clock, owner, walker):
        assignment = await market.completed_walk(owner, walker)

        first = await market.assignments.confirm_payment(owner, assignment.assignment_id)
        paid_at = first.paid_at
        clock.advance(10)
        second = await market.assignments.confirm_payment(owner, assignment.assignment_id)

        assert first.payment_confirmed is True
        assert second.payment_confirmed is True
        assert second.paid_at == paid_at

    @pytest.mark.asyncio
    async def test_payment_requires_completion(self, market, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)

        with pytest.raises(ConflictError):
            await market.assignments.confirm_payment(owner, assignment.assignment_id)

    @pytest.mark.asyncio
    async def test_only_owner_confirms_payment(self, market, owner, walker):
        assignment = await market.completed_walk(owner, walker)

        with pytest.raises(AuthorizationError):
            await market.assignments.confirm_payment(walker, assignment.assignment_id)


class TestPhotos:
    """Tests for walk photos."""

    @pytest.mark.asyncio
    async def test_photos_append_up_to_cap(self, market, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)
        aid = assignment.assignment_id
        cap = settings.max_walk_photos

        await market.assignments.add_photos(walker, aid, ["https://cdn/p0.jpg"])
        updated = await market.assignments.add_photos(
            walker, aid, [f"https://cdn/p{i}.jpg" for i in range(1, cap)]
        )
        assert [p.url for p in updated.photos][0] == "https://cdn/p0.jpg"
        assert len(updated.photos) == cap

        with pytest.raises(ValidationError):
            await market.assignments.add_photos(walker, aid, ["https://cdn/extra.jpg"])

        photos = await market.assignments.list_photos(owner, aid)
        assert len(photos) == cap

    @pytest.mark.asyncio
    async def test_batch_over_cap_adds_nothing(self, market, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)
        urls = [f"https://cdn/p{i}.jpg" for i in range(settings.max_walk_photos + 1)]

        with pytest.raises(ValidationError):
            await market.assignments.add_photos(walker, assignment.assignment_id, urls)

        assert await market.assignments.list_photos(walker, assignment.assignment_id) == []

    @pytest.mark.asyncio
    async def test_photos_allowed_after_completion(self, market, owner, walker):
        assignment = await market.completed_walk(owner, walker)

        updated = await market.assignments.add_photos(
            walker, assignment.assignment_id, ["https://cdn/late.jpg"]
        )

        assert len(updated.photos) == 1

    @pytest.mark.asyncio
    async def test_no_photos_on_cancelled_walk(self, market, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)
        await market.assignments.cancel(owner, assignment.assignment_id)

        with pytest.raises(ConflictError):
            await market.assignments.add_photos(
                walker, assignment.assignment_id, ["https://cdn/p.jpg"]
            )

    @pytest.mark.asyncio
    async def test_owner_cannot_add_photos(self, market, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)

        with pytest.raises(AuthorizationError):
            await market.assignments.add_photos(
                owner, assignment.assignment_id, ["https://cdn/p.jpg"]
            )


class TestTracking:
    """Tests for record_location and get_route."""

    @pytest.mark.asyncio
    async def test_route_in_recorded_order(self, market, clock, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)
        aid = assignment.assignment_id
        await market.assignments.start_walk(walker, aid)

        first = await market.assignments.record_location(walker, aid, -12.0790, -76.9420)
        clock.advance(1)
        second = await market.assignments.record_location(walker, aid, -12.0801, -76.9433)

        for party in (owner, walker):
            route = await market.assignments.get_route(party, aid)
            assert [p.point_id for p in route] == [first.point_id, second.point_id]
        assert route[1].recorded_at == clock.now
        assert (route[1].latitude, route[1].longitude) == (-12.0801, -76.9433)

    @pytest.mark.asyncio
    async def test_location_only_while_in_progress(self, market, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)
        aid = assignment.assignment_id

        with pytest.raises(ConflictError) as exc_info:
            await market.assignments.record_location(walker, aid, -12.0, -77.0)
        assert exc_info.value.details["required_status"] == "in_progress"

        await market.assignments.start_walk(walker, aid)
        market.clock.advance(60)
        await market.assignments.complete(walker, aid)

        with pytest.raises(ConflictError):
            await market.assignments.record_location(walker, aid, -12.0, -77.0)
        assert await market.assignments.get_route(owner, aid) == []

    @pytest.mark.asyncio
    async def test_only_assigned_walker_reports(self, market, owner, walker, walker_2):
        assignment = await market.scheduled_walk(owner, walker)
        aid = assignment.assignment_id
        await market.assignments.start_walk(walker, aid)

        for identity in (walker_2, owner):
            with pytest.raises(AuthorizationError):
                await market.assignments.record_location(identity, aid, -12.0, -77.0)

    @pytest.mark.parametrize(
        "latitude,longitude",
        [(91, -77.0), (-12.0, 180.5), (float("nan"), -77.0), (-12.0, float("inf")), (True, -77.0)],
    )
    @pytest.mark.asyncio
    async def test_coordinates_validated(self, market, owner, walker, latitude, longitude):
        assignment = await market.scheduled_walk(owner, walker)
        await market.assignments.start_walk(walker, assignment.assignment_id)

        with pytest.raises(ValidationError):
            await market.assignments.record_location(
                walker, assignment.assignment_id, latitude, longitude
            )

    @pytest.mark.asyncio
    async def test_arrival_and_start_link_to_route(self, market, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)
        aid = assignment.assignment_id
        await market.assignments.mark_arrived(walker, aid)
        await market.assignments.start_walk(walker, aid)

        links = {
            n.type: n.link
            for n in await market.inbox(owner)
            if n.type != NotificationType.OFFER_RECEIVED.value
        }
        assert links == {
            NotificationType.WALKER_ARRIVED.value: f"/walk-assignments/{aid}/route",
            NotificationType.WALK_STARTED.value: f"/walk-assignments/{aid}/route",
        }

    @pytest.mark.asyncio
    async def test_route_hidden_from_strangers(self, market, owner, other_owner, walker):
        assignment = await market.scheduled_walk(owner, walker)

        with pytest.raises(AuthorizationError):
            await market.assignments.get_route(other_owner, assignment.assignment_id)
        with pytest.raises(NotFoundError):
            await market.assignments.get_route(owner, "missing")


class TestQueries:
    """Tests for reading assignments."""

    @pytest.mark.asyncio
    async def test_parties_and_admin_can_read(self, market, owner, other_owner, walker):
        assignment = await market.scheduled_walk(owner, walker)
        admin = Identity(user_id="admin-1", role=Role.ADMIN)

        for identity in (owner, walker, admin):
            found = await market.assignments.get_assignment(identity, assignment.assignment_id)
            assert found.assignment_id == assignment.assignment_id

        with pytest.raises(AuthorizationError):
            await market.assignments.get_assignment(other_owner, assignment.assignment_id)

    @pytest.mark.asyncio
    async def test_list_my_assignments(self, market, owner, walker, walker_2):
        mine = await market.scheduled_walk(owner, walker)
        await market.completed_walk(owner, walker_2)

        walker_list = await market.assignments.list_my_assignments(walker)
        owner_list = await market.assignments.list_my_assignments(owner)
        owner_completed = await market.assignments.list_my_assignments(
            owner, AssignmentStatus.COMPLETED.value
        )

        assert [a.assignment_id for a in walker_list] == [mine.assignment_id]
        assert len(owner_list) == 2
        assert [a.walker_id for a in owner_completed] == [walker_2.user_id]
