"""
Request Dependencies

FastAPI dependencies resolving the caller's identity and the service
container.

Authentication happens upstream: the trusted gateway verifies the session
and forwards the caller as two headers. They are turned into an Identity
exactly once, here.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from pawpath.errors import AuthorizationError
from pawpath.models.identity import Identity, Role
from pawpath.repositories.base import Store
from pawpath.services.assignment_service import AssignmentService
from pawpath.services.geo_matcher import GeoZoneMatcher
from pawpath.services.notification_service import NotificationDispatcher, NotificationService
from pawpath.services.offer_service import OfferService
from pawpath.services.rating_service import RatingService
from pawpath.services.walk_request_service import WalkRequestService
from pawpath.services.walker_service import WalkerService

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"


# =============================================================================
# Service Container
# =============================================================================

@dataclass
class Services:
    """Every service, wired to one store and one notification dispatcher."""

    store: Store
    notifications: NotificationService
    dispatcher: NotificationDispatcher
    walk_requests: WalkRequestService
    offers: OfferService
    assignments: AssignmentService
    ratings: RatingService
    walkers: WalkerService

    @classmethod
    def build(
        cls,
        store: Store,
        notifications_in_background: Optional[bool] = None,
    ) -> "Services":
        notifications = NotificationService(store)
        dispatcher = NotificationDispatcher(notifications, background=notifications_in_background)
        return cls(
            store=store,
            notifications=notifications,
            dispatcher=dispatcher,
            walk_requests=WalkRequestService(store, dispatcher, GeoZoneMatcher()),
            offers=OfferService(store, dispatcher),
            assignments=AssignmentService(store, dispatcher),
            ratings=RatingService(store, dispatcher),
            walkers=WalkerService(store),
        )


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "not_ready",
                "message": "The service is starting up. Please try again shortly.",
            },
        )
    return services


# =============================================================================
# Identity
# =============================================================================

async def get_identity(
    x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
    x_user_role: Optional[str] = Header(None, alias=USER_ROLE_HEADER),
) -> Identity:
    """
    Resolve the caller from the gateway headers.

    Both headers are required and the role must be one of the known roles.
    """
    if not x_user_id or not x_user_id.strip() or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "unauthenticated",
                "message": "Authentication required",
            },
        )

    try:
        role = Role(x_user_role.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "unauthenticated",
                "message": "Unknown role",
            },
        )

    return Identity(user_id=x_user_id.strip(), role=role)


async def get_walker_identity(identity: Identity = Depends(get_identity)) -> Identity:
    """Identity of a caller that must be a walker."""
    if not identity.is_walker:
        raise AuthorizationError("This action is only available to walkers")
    return identity


async def get_owner_identity(identity: Identity = Depends(get_identity)) -> Identity:
    """Identity of a caller that must be an owner."""
    if not identity.is_owner:
        raise AuthorizationError("This action is only available to owners")
    return identity
