"""
Walkers Router

Walker service area, dashboard statistics, payments report and public rating.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from pawpath.dependencies import Services, get_identity, get_services, get_walker_identity
from pawpath.models.identity import Identity
from pawpath.models.walker_profile import (
    ServiceAreaUpdate,
    WalkerPayments,
    WalkerProfile,
    WalkerStats,
)


router = APIRouter()


class WalkerRatingResponse(BaseModel):
    walker_id: str
    average_rating: Optional[float]
    review_count: int


@router.get("/me", response_model=WalkerProfile)
async def get_my_profile(
    identity: Identity = Depends(get_walker_identity),
    services: Services = Depends(get_services),
):
    return await services.walkers.get_profile(identity.user_id)


@router.put("/me/service-area", response_model=WalkerProfile)
async def update_service_area(
    data: ServiceAreaUpdate,
    identity: Identity = Depends(get_walker_identity),
    services: Services = Depends(get_services),
):
    """Set radius, home coordinate, base zone/city and availability."""
    return await services.walkers.update_service_area(identity, data)


@router.get("/me/stats", response_model=WalkerStats)
async def get_my_stats(
    identity: Identity = Depends(get_walker_identity),
    services: Services = Depends(get_services),
):
    return await services.walkers.get_stats(identity)


@router.get("/me/payments", response_model=WalkerPayments)
async def get_my_payments(
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    only_pending: bool = Query(False, alias="onlyPending"),
    identity: Identity = Depends(get_walker_identity),
    services: Services = Depends(get_services),
):
    """Completed walks with paid/pending totals, filtered by completion date."""
    return await services.walkers.list_payments(
        identity, date_from, date_to, page, limit, only_pending
    )


@router.get("/{walker_id}/rating", response_model=WalkerRatingResponse)
async def get_walker_rating(
    walker_id: str,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """A walker's average rating."""
    average, count = await services.ratings.get_walker_rating(walker_id)
    return WalkerRatingResponse(walker_id=walker_id, average_rating=average, review_count=count)
