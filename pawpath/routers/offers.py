"""
Offers Router

Walkers bid on open requests; owners accept or reject the bids.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from pawpath.dependencies import Services, get_identity, get_services
from pawpath.models.identity import Identity
from pawpath.models.offer import Offer, OfferCreate
from pawpath.models.walk_assignment import WalkAssignment


router = APIRouter()


@router.post("", response_model=Offer, status_code=status.HTTP_201_CREATED)
async def create_offer(
    data: OfferCreate,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Make an offer on an open walk request."""
    return await services.offers.create_offer(
        identity, data.request_id, data.price, data.message
    )


@router.get("/mine", response_model=List[Offer])
async def list_my_offers(
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    return await services.offers.list_my_offers(identity)


@router.post("/{offer_id}/accept", response_model=WalkAssignment)
async def accept_offer(
    offer_id: str,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """
    Accept an offer.

    Returns the walk assignment created for it. Every other pending offer
    on the request is rejected.
    """
    return await services.offers.accept_offer(identity, offer_id)


@router.post("/{offer_id}/reject", response_model=Offer)
async def reject_offer(
    offer_id: str,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    return await services.offers.reject_offer(identity, offer_id)
