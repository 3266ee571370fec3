"""
Walk Assignments Router

Lifecycle endpoints of a walk: arrival, start, live location, photos,
completion, cancellation and payment confirmation.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from pawpath.dependencies import Services, get_identity, get_services
from pawpath.models.identity import Identity
from pawpath.models.route_point import LocationUpdate, RoutePoint
from pawpath.models.walk_assignment import (
    AddPhotosRequest,
    AssignmentStatus,
    CancelAssignmentRequest,
    CompleteAssignmentRequest,
    WalkAssignment,
    WalkPhoto,
)


router = APIRouter()


@router.get("", response_model=List[WalkAssignment])
async def list_my_assignments(
    status_filter: Optional[AssignmentStatus] = Query(None, alias="status"),
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Walks of the caller: as walker, or on the caller's requests as owner."""
    return await services.assignments.list_my_assignments(
        identity, status_filter.value if status_filter else None
    )


@router.get("/{assignment_id}", response_model=WalkAssignment)
async def get_assignment(
    assignment_id: str,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    return await services.assignments.get_assignment(identity, assignment_id)


@router.post("/{assignment_id}/arrive", response_model=WalkAssignment)
async def mark_arrived(
    assignment_id: str,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Walker is at the pickup point."""
    return await services.assignments.mark_arrived(identity, assignment_id)


@router.post("/{assignment_id}/start", response_model=WalkAssignment)
async def start_walk(
    assignment_id: str,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    return await services.assignments.start_walk(identity, assignment_id)


@router.post("/{assignment_id}/complete", response_model=WalkAssignment)
async def complete_walk(
    assignment_id: str,
    data: Optional[CompleteAssignmentRequest] = None,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Finish the walk. Ending early needs `early_end_reason`."""
    data = data or CompleteAssignmentRequest()
    return await services.assignments.complete(
        identity, assignment_id, data.report, data.early_end_reason
    )


@router.post("/{assignment_id}/cancel", response_model=WalkAssignment)
async def cancel_walk(
    assignment_id: str,
    data: Optional[CancelAssignmentRequest] = None,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Cancel a scheduled or running walk. Either party may cancel."""
    reason = data.reason if data else None
    return await services.assignments.cancel(identity, assignment_id, reason)


@router.post("/{assignment_id}/confirm-payment", response_model=WalkAssignment)
async def confirm_payment(
    assignment_id: str,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Owner confirms the walk was paid. Safe to repeat."""
    return await services.assignments.confirm_payment(identity, assignment_id)


@router.post(
    "/{assignment_id}/photos",
    response_model=WalkAssignment,
    status_code=status.HTTP_201_CREATED,
)
async def add_photos(
    assignment_id: str,
    data: AddPhotosRequest,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Attach uploaded photo references to the walk."""
    return await services.assignments.add_photos(identity, assignment_id, data.urls)


@router.get("/{assignment_id}/photos", response_model=List[WalkPhoto])
async def list_photos(
    assignment_id: str,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    return await services.assignments.list_photos(identity, assignment_id)


@router.post(
    "/{assignment_id}/location",
    response_model=RoutePoint,
    status_code=status.HTTP_201_CREATED,
)
async def record_location(
    assignment_id: str,
    data: LocationUpdate,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Walker's current position while the walk is in progress."""
    return await services.assignments.record_location(
        identity, assignment_id, data.latitude, data.longitude
    )


@router.get("/{assignment_id}/route", response_model=List[RoutePoint])
async def get_route(
    assignment_id: str,
    identity: Identity = Depends(get_identity),
    services: Services = Depends(get_services),
):
    """Positions recorded during the walk, oldest first."""
    return await services.assignments.get_route(identity, assignment_id)
