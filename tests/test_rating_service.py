"""
Tests for the Rating Service

Review rules and the walker's recomputed average rating.
"""

import asyncio

import pytest

from pawpath.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from pawpath.models.notification import NotificationType
from pawpath.services.rating_service import RatingService


class TestComputeAverage:
    """Tests for RatingService.compute_average."""

    def test_empty(self):
        assert RatingService.compute_average([]) == (None, 0)

    def test_exact_mean_without_rounding(self):
        average, count = RatingService.compute_average([5, 4, 4])

        assert average == 13 / 3
        assert count == 3


class TestCreateReview:
    """Tests for RatingService.create_review."""

    @pytest.mark.asyncio
    async def test_review_updates_walker_average(self, market, owner, walker):
        assignment = await market.completed_walk(owner, walker)

        review = await market.ratings.create_review(
            owner, assignment.assignment_id, 4, "Great walk"
        )

        assert review.walker_id == walker.user_id
        assert review.author_id == owner.user_id
        assert await market.ratings.get_walker_rating(walker.user_id) == (4.0, 1)

        inbox = await market.inbox(walker)
        assert NotificationType.REVIEW_RECEIVED.value in [n.type for n in inbox]

    @pytest.mark.asyncio
    async def test_average_after_one_two_and_many_reviews(self, market, owner, walker):
        ratings = [5, 3, 4, 4, 1]
        expected = []
        for i, rating in enumerate(ratings, start=1):
            assignment = await market.completed_walk(owner, walker)
            await market.ratings.create_review(owner, assignment.assignment_id, rating)
            expected.append(sum(ratings[:i]) / i)

            average, count = await market.ratings.get_walker_rating(walker.user_id)
            assert average == expected[-1]
            assert count == i

        assert expected[:2] == [5.0, 4.0]

    @pytest.mark.asyncio
    async def test_average_only_counts_own_walks(self, market, owner, walker, walker_2):
        mine = await market.completed_walk(owner, walker)
        theirs = await market.completed_walk(owner, walker_2)
        await market.ratings.create_review(owner, mine.assignment_id, 5)
        await market.ratings.create_review(owner, theirs.assignment_id, 1)

        assert await market.ratings.get_walker_rating(walker.user_id) == (5.0, 1)
        assert await market.ratings.get_walker_rating(walker_2.user_id) == (1.0, 1)

    @pytest.mark.asyncio
    async def test_existing_profile_keeps_service_area(self, market, owner, walker):
        await market.add_walker(walker.user_id, base_zone="Miraflores", service_radius_km=3)
        assignment = await market.completed_walk(owner, walker)

        await market.ratings.create_review(owner, assignment.assignment_id, 2)

        profile = await market.walkers.get_profile(walker.user_id)
        assert profile.base_zone == "Miraflores"
        assert profile.service_radius_km == 3
        assert profile.average_rating == 2.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [0, 6, -1, 4.5, "5", True, None])
    async def test_rating_must_be_integer_in_range(self, market, owner, walker, rating):
        assignment = await market.completed_walk(owner, walker)

        with pytest.raises(ValidationError):
            await market.ratings.create_review(owner, assignment.assignment_id, rating)

    @pytest.mark.asyncio
    async def test_rating_validated_before_lookup(self, market, owner):
        with pytest.raises(ValidationError):
            await market.ratings.create_review(owner, "missing", 9)

    @pytest.mark.asyncio
    async def test_unknown_assignment(self, market, owner):
        with pytest.raises(NotFoundError):
            await market.ratings.create_review(owner, "missing", 5)

    @pytest.mark.asyncio
    async def test_only_request_owner_can_review(self, market, owner, other_owner, walker):
        assignment = await market.completed_walk(owner, walker)

        with pytest.raises(AuthorizationError):
            await market.ratings.create_review(other_owner, assignment.assignment_id, 5)
        with pytest.raises(AuthorizationError):
            await market.ratings.create_review(walker, assignment.assignment_id, 5)

    @pytest.mark.asyncio
    async def test_walk_must_be_completed(self, market, owner, walker):
        assignment = await market.scheduled_walk(owner, walker)

        with pytest.raises(ConflictError):
            await market.ratings.create_review(owner, assignment.assignment_id, 5)

        assert await market.ratings.get_walker_rating(walker.user_id) == (None, 0)

    @pytest.mark.asyncio
    async def test_second_review_conflicts(self, market, owner, walker):
        assignment = await market.completed_walk(owner, walker)
        await market.ratings.create_review(owner, assignment.assignment_id, 5)

        with pytest.raises(ConflictError):
            await market.ratings.create_review(owner, assignment.assignment_id, 1)

        assert await market.ratings.get_walker_rating(walker.user_id) == (5.0, 1)

    @pytest.mark.asyncio
    async def test_concurrent_reviews_store_one(self, market, owner, walker):
        assignment = await market.completed_walk(owner, walker)

        results = await asyncio.gather(
            market.ratings.create_review(owner, assignment.assignment_id, 5),
            market.ratings.create_review(owner, assignment.assignment_id, 1),
            return_exceptions=True,
        )

        assert sum(isinstance(r, ConflictError) for r in results) == 1
        reviews, total = await market.ratings.list_walker_reviews(walker.user_id)
        assert total == 1
        average, count = await market.ratings.get_walker_rating(walker.user_id)
        assert (average, count) == (float(reviews[0].rating), 1)


class TestListReviews:
    """Tests for RatingService.list_walker_reviews."""

    @pytest.mark.asyncio
    async def test_pagination_newest_first(self, market, clock, owner, walker):
        for rating in (1, 2, 3):
            assignment = await market.completed_walk(owner, walker)
            await market.ratings.create_review(owner, assignment.assignment_id, rating)
            clock.advance(1)

        page_1, total = await market.ratings.list_walker_reviews(walker.user_id, page=1, limit=2)
        page_2, _ = await market.ratings.list_walker_reviews(walker.user_id, page=2, limit=2)

        assert total == 3
        assert [r.rating for r in page_1] == [3, 2]
        assert [r.rating for r in page_2] == [1]

    @pytest.mark.asyncio
    async def test_invalid_page(self, market, walker):
        with pytest.raises(ValidationError):
            await market.ratings.list_walker_reviews(walker.user_id, page=0)
