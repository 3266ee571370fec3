"""PawPath Services Package"""

from pawpath.services.assignment_service import AssignmentService
from pawpath.services.geo_matcher import GeoZoneMatcher
from pawpath.services.notification_service import NotificationDispatcher, NotificationService
from pawpath.services.offer_service import OfferService
from pawpath.services.rating_service import RatingService
from pawpath.services.walk_request_service import WalkRequestService
from pawpath.services.walker_service import WalkerService

__all__ = [
    "AssignmentService",
    "GeoZoneMatcher",
    "NotificationDispatcher",
    "NotificationService",
    "OfferService",
    "RatingService",
    "WalkRequestService",
    "WalkerService",
]
