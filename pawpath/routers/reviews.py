"""
Reviews Router

API endpoints for walk reviews and walker ratings.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from pawpath.dependencies import Services, get_identity, get_services
from pawpath.models.identity import Identity
from pawpath.models.review import ReviewCreate, ReviewResponse


router = APIRouter()


class ReviewListResponse(BaseModel):
    """One page of a walker's reviews plus the stored aggregate."""
    reviews: List[ReviewResponse]
    total: int
    page: int
    limit: int
    average_rating: Optional[float]
    review_count: int


@router.post("", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    data: ReviewCreate,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """
    Review a completed walk.

    - Only the owner of the walk request can review
    - One review per walk
    - Rating must be 1-5 stars
    """
    review = await services.ratings.create_review(
        identity, data.assignment_id, data.rating, data.comment
    )
    return ReviewResponse(**review.model_dump())


@router.get("/walker/{walker_id}", response_model=ReviewListResponse)
async def list_walker_reviews(
    walker_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Reviews of a walker, newest first."""
    reviews, total = await services.ratings.list_walker_reviews(walker_id, page, limit)
    average, count = await services.ratings.get_walker_rating(walker_id)
    return ReviewListResponse(
        reviews=[ReviewResponse(**r.model_dump()) for r in reviews],
        total=total,
        page=page,
        limit=limit,
        average_rating=average,
        review_count=count,
    )
