"""
Geo-Zone Matcher

Decides which open walk requests a walker can see.

A request is visible when either:
(a) both sides have coordinates and the request lies inside the walker's
    bounding box of half-width `radius` km, or
(b) the request's zone contains the walker's base zone (or base city when no
    zone is set), compared case-insensitively.

The bounding box is a planar approximation: one degree of latitude is taken
as 111 km and the longitude span is widened by 1/cos(latitude). It reaches
further than the true circle in the corners, and near the poles the longitude
band becomes unbounded. Exact distances are only computed for display.
"""

import math
from typing import Iterable, List, NamedTuple, Optional

from geopy.distance import geodesic

from pawpath.config import settings
from pawpath.models.walk_request import WalkRequest
from pawpath.models.walker_profile import WalkerProfile


class BoundingBox(NamedTuple):
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


class GeoZoneMatcher:
    """
    Pure visibility rules over a snapshot of open requests.

    Holds no state besides its configuration, so one instance is shared by
    every caller.
    """

    KM_PER_DEGREE = 111.0
    # Below this |cos(lat)| the longitude span is treated as unbounded
    MIN_COS_LATITUDE = 1e-9

    def __init__(self, default_radius_km: Optional[float] = None):
        self.default_radius_km = default_radius_km or settings.default_service_radius_km

    def effective_radius(self, walker: WalkerProfile) -> float:
        radius = walker.service_radius_km
        if radius is None or not radius > 0:
            return self.default_radius_km
        return radius

    def bounding_box(self, latitude: float, longitude: float, radius_km: float) -> BoundingBox:
        lat_delta = radius_km / self.KM_PER_DEGREE
        cos_lat = math.cos(math.radians(latitude))
        if abs(cos_lat) < self.MIN_COS_LATITUDE:
            lng_delta = math.inf
        else:
            lng_delta = radius_km / (self.KM_PER_DEGREE * abs(cos_lat))
        return BoundingBox(
            min_lat=latitude - lat_delta,
            max_lat=latitude + lat_delta,
            min_lng=longitude - lng_delta,
            max_lng=longitude + lng_delta,
        )

    def matches_zone(self, walker: WalkerProfile, request: WalkRequest) -> bool:
        needle = walker.zone_needle
        if not needle or not request.zone:
            return False
        return needle.lower() in request.zone.lower()

    def is_visible(
        self,
        walker: WalkerProfile,
        request: WalkRequest,
        box: Optional[BoundingBox] = None,
    ) -> bool:
        if walker.has_coordinates and request.has_coordinates:
            if box is None:
                box = self.bounding_box(
                    walker.latitude, walker.longitude, self.effective_radius(walker)
                )
            if box.contains(request.latitude, request.longitude):
                return True
        return self.matches_zone(walker, request)

    def find_visible_requests(
        self,
        walker: WalkerProfile,
        open_requests: Iterable[WalkRequest],
    ) -> List[WalkRequest]:
        """Filter open requests down to the ones the walker may see, in order."""
        if not walker.has_coordinates and walker.zone_needle is None:
            # Nothing to match on
            return []

        box = None
        if walker.has_coordinates:
            box = self.bounding_box(
                walker.latitude, walker.longitude, self.effective_radius(walker)
            )
        return [r for r in open_requests if self.is_visible(walker, r, box)]

    @staticmethod
    def filter_by_zone(requests: Iterable[WalkRequest], search: str) -> List[WalkRequest]:
        """Explicit zone search typed by a walker. Overrides geo matching."""
        needle = (search or "").strip().lower()
        if not needle:
            return list(requests)
        return [r for r in requests if r.zone and needle in r.zone.lower()]

    @staticmethod
    def distance_km(walker: WalkerProfile, request: WalkRequest) -> Optional[float]:
        """Geodesic distance for display, when both sides have coordinates."""
        if not (walker.has_coordinates and request.has_coordinates):
            return None
        return geodesic(
            (walker.latitude, walker.longitude),
            (request.latitude, request.longitude),
        ).kilometers
