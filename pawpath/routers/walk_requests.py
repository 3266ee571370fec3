"""
Walk Requests Router

Owners post and manage walk requests; walkers browse the ones they can see.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from pawpath.dependencies import (
    Services,
    get_identity,
    get_owner_identity,
    get_services,
    get_walker_identity,
)
from pawpath.models.identity import Identity
from pawpath.models.offer import Offer
from pawpath.models.walk_request import (
    WalkRequest,
    WalkRequestCreate,
    WalkRequestStatus,
    WalkRequestUpdate,
)


router = APIRouter()


class VisibleWalkRequest(WalkRequest):
    """Open request as shown to a walker, with its distance when known."""
    distance_km: Optional[float] = None


@router.post("", response_model=WalkRequest, status_code=status.HTTP_201_CREATED)
async def create_walk_request(
    data: WalkRequestCreate,
    identity: Identity = Depends(get_owner_identity),
    services: Services = Depends(get_services),
):
    """Post a new walk request."""
    return await services.walk_requests.create_request(identity, data)


@router.get("/mine", response_model=List[WalkRequest])
async def list_my_walk_requests(
    status_filter: Optional[WalkRequestStatus] = Query(None, alias="status"),
    identity: Identity = Depends(get_owner_identity),
    services: Services = Depends(get_services),
):
    """The caller's own requests, newest first."""
    return await services.walk_requests.list_my_requests(
        identity, status_filter.value if status_filter else None
    )


@router.get("/visible", response_model=List[VisibleWalkRequest])
async def list_visible_walk_requests(
    search: Optional[str] = Query(None, max_length=200),
    identity: Identity = Depends(get_walker_identity),
    services: Services = Depends(get_services),
):
    """
    Open requests in the walker's service area.

    Passing `search` switches to a plain zone search.
    """
    visible = await services.walk_requests.list_visible_requests(identity, search=search)
    return [
        VisibleWalkRequest(**request.model_dump(), distance_km=distance)
        for request, distance in visible
    ]


@router.get("/{request_id}", response_model=WalkRequest)
async def get_walk_request(
    request_id: str,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    return await services.walk_requests.get_request(identity, request_id)


@router.patch("/{request_id}", response_model=WalkRequest)
async def update_walk_request(
    request_id: str,
    data: WalkRequestUpdate,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Edit an open request."""
    return await services.walk_requests.update_request(identity, request_id, data)


@router.post("/{request_id}/cancel", response_model=WalkRequest)
async def cancel_walk_request(
    request_id: str,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Cancel an open request. Pending offers are rejected."""
    return await services.walk_requests.cancel_request(identity, request_id)


@router.get("/{request_id}/offers", response_model=List[Offer])
async def list_walk_request_offers(
    request_id: str,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Offers on a request, for its owner."""
    return await services.offers.list_offers_for_request(identity, request_id)
