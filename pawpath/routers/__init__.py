"""PawPath Routers Package"""

from pawpath.routers import (
    assignments,
    notifications,
    offers,
    reviews,
    walk_requests,
    walkers,
)

__all__ = [
    "assignments",
    "notifications",
    "offers",
    "reviews",
    "walk_requests",
    "walkers",
]
