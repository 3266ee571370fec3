"""
Tests for Walker Service
"""

from datetime import date, datetime

import pytest
import pytest_asyncio

from pawpath.errors import AuthorizationError, ValidationError
from pawpath.models.walker_profile import ServiceAreaUpdate
from pawpath.utils.timezone_utils import UTC


class TestServiceArea:
    """Tests for WalkerService.update_service_area and get_profile."""

    @pytest.mark.asyncio
    async def test_missing_profile_reads_as_empty(self, market, walker):
        profile = await market.walkers.get_profile(walker.user_id)

        assert profile.user_id == walker.user_id
        assert profile.average_rating is None
        assert profile.review_count == 0
        assert profile.is_available is True

    @pytest.mark.asyncio
    async def test_update_creates_then_patches_profile(self, market, walker):
        await market.walkers.update_service_area(
            walker, ServiceAreaUpdate(service_radius_km=4, base_zone="Surco")
        )
        await market.walkers.update_service_area(walker, ServiceAreaUpdate(is_available=False))

        profile = await market.walkers.get_profile(walker.user_id)
        assert profile.service_radius_km == 4
        assert profile.base_zone == "Surco"
        assert profile.is_available is False

    @pytest.mark.asyncio
    async def test_update_keeps_rating(self, market, owner, walker):
        assignment = await market.completed_walk(owner, walker)
        await market.ratings.create_review(owner, assignment.assignment_id, 5)

        profile = await market.walkers.update_service_area(
            walker, ServiceAreaUpdate(base_city="Lima")
        )

        assert profile.average_rating == 5.0
        assert profile.review_count == 1

    @pytest.mark.asyncio
    async def test_owner_has_no_service_area(self, market, owner):
        with pytest.raises(AuthorizationError):
            await market.walkers.update_service_area(owner, ServiceAreaUpdate(base_zone="Surco"))

    def test_coordinates_must_come_together(self):
        with pytest.raises(ValueError):
            ServiceAreaUpdate(latitude=-12.0)

    def test_availability_cannot_be_null(self):
        with pytest.raises(ValueError):
            ServiceAreaUpdate(is_available=None)

    @pytest.mark.asyncio
    async def test_null_availability_leaves_profile_untouched(self, market, walker):
        await market.add_walker(walker.user_id, base_zone="Surco")
        data = ServiceAreaUpdate.model_construct(is_available=None)

        with pytest.raises(ValidationError):
            await market.walkers.update_service_area(walker, data)

        profile = await market.walkers.get_profile(walker.user_id)
        assert profile.is_available is True
        assert profile.base_zone == "Surco"


class TestStats:
    """Tests for WalkerService.get_stats."""

    @pytest.mark.asyncio
    async def test_stats_count_completed_walks_only(self, market, owner, walker):
        first = await market.completed_walk(owner, walker, price=30)
        await market.completed_walk(owner, walker, price=45)
        await market.scheduled_walk(owner, walker, price=99)
        await market.ratings.create_review(owner, first.assignment_id, 4)

        stats = await market.walkers.get_stats(walker)

        assert stats.completed_walks == 2
        assert stats.gross_earnings == 75
        assert stats.average_rating == 4.0
        assert stats.review_count == 1

    @pytest.mark.asyncio
    async def test_new_walker_stats(self, market, walker):
        stats = await market.walkers.get_stats(walker)

        assert stats.completed_walks == 0
        assert stats.gross_earnings == 0
        assert stats.average_rating is None

    @pytest.mark.asyncio
    async def test_only_walkers_have_stats(self, market, owner):
        with pytest.raises(AuthorizationError):
            await market.walkers.get_stats(owner)


class TestPayments:
    """Tests for WalkerService.list_payments."""

    @pytest_asyncio.fixture
    async def two_days_of_walks(self, market, clock, owner, walker):
        # Completed 2026-05-01 10:00 and 2026-05-02 11:00 UTC, same days in Lima
        first = await market.completed_walk(owner, walker, price=30)
        clock.advance(24 * 60)
        second = await market.completed_walk(owner, walker, price=45)
        await market.scheduled_walk(owner, walker, price=99)
        await market.assignments.confirm_payment(owner, first.assignment_id)
        return first, second

    @pytest.mark.asyncio
    async def test_report_splits_paid_and_pending(self, market, walker, two_days_of_walks):
        first, second = two_days_of_walks

        report = await market.walkers.list_payments(walker)

        assert [a.assignment_id for a in report.items] == [
            second.assignment_id,
            first.assignment_id,
        ]
        assert report.total == 2
        assert report.pages == 1
        assert report.gross_total == 75
        assert report.paid_total == 30
        assert report.pending_total == 45
        assert (report.paid_count, report.pending_count) == (1, 1)

    @pytest.mark.asyncio
    async def test_date_range_filters_by_completion_day(
        self, market, walker, two_days_of_walks
    ):
        first, _ = two_days_of_walks

        report = await market.walkers.list_payments(
            walker, date_from=date(2026, 5, 1), date_to=date(2026, 5, 1)
        )

        assert [a.assignment_id for a in report.items] == [first.assignment_id]
        assert report.gross_total == 30
        assert report.pending_total == 0

    @pytest.mark.asyncio
    async def test_only_pending_keeps_range_totals(self, market, walker, two_days_of_walks):
        _, second = two_days_of_walks

        report = await market.walkers.list_payments(walker, only_pending=True)

        assert [a.assignment_id for a in report.items] == [second.assignment_id]
        assert report.total == 1
        assert report.paid_total == 30

    @pytest.mark.asyncio
    async def test_paging(self, market, walker, two_days_of_walks):
        first, _ = two_days_of_walks

        report = await market.walkers.list_payments(walker, page=2, limit=1)

        assert [a.assignment_id for a in report.items] == [first.assignment_id]
        assert report.total == 2
        assert report.pages == 2
        assert report.gross_total == 75

    @pytest.mark.asyncio
    async def test_completion_day_is_local(self, market, clock, owner, walker):
        # 2026-05-02 03:00 UTC is still the evening of 2026-05-01 in Lima
        clock.now = datetime(2026, 5, 2, 2, 0, tzinfo=UTC)
        late = await market.completed_walk(owner, walker)

        report = await market.walkers.list_payments(walker, date_to=date(2026, 5, 1))

        assert [a.assignment_id for a in report.items] == [late.assignment_id]

    @pytest.mark.asyncio
    async def test_invalid_queries(self, market, walker, owner):
        with pytest.raises(ValidationError):
            await market.walkers.list_payments(walker, page=0)
        with pytest.raises(ValidationError):
            await market.walkers.list_payments(
                walker, date_from=date(2026, 5, 2), date_to=date(2026, 5, 1)
            )
        with pytest.raises(AuthorizationError):
            await market.walkers.list_payments(owner)
