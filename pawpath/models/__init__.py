"""PawPath Models Package"""

from pawpath.models.identity import Identity, Role
from pawpath.models.walk_request import WalkRequest, WalkRequestCreate, WalkRequestUpdate, WalkRequestStatus
from pawpath.models.offer import Offer, OfferCreate, OfferStatus
from pawpath.models.walk_assignment import AssignmentStatus, WalkAssignment, WalkPhoto, WalkReport
from pawpath.models.review import Review, ReviewCreate, ReviewResponse
from pawpath.models.route_point import LocationUpdate, RoutePoint
from pawpath.models.walker_profile import WalkerProfile, ServiceAreaUpdate, WalkerStats, WalkerPayments
from pawpath.models.notification import Notification, NotificationType

__all__ = [
    "Identity", "Role",
    "WalkRequest", "WalkRequestCreate", "WalkRequestUpdate", "WalkRequestStatus",
    "Offer", "OfferCreate", "OfferStatus",
    "AssignmentStatus", "WalkAssignment", "WalkPhoto", "WalkReport",
    "Review", "ReviewCreate", "ReviewResponse",
    "LocationUpdate", "RoutePoint",
    "WalkerProfile", "ServiceAreaUpdate", "WalkerStats", "WalkerPayments",
    "Notification", "NotificationType",
]
