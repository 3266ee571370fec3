"""
In-Memory Store

Process-local implementation of the store contract, used by the test suite
and for running the API without MongoDB/Redis.

Writes are staged per transaction and applied in one synchronous step at
commit, so a transaction is all-or-nothing. Exclusive locks are asyncio locks
keyed like the Redis locks of the MongoDB store. Every versioned row is
compare-and-swapped at commit; a stale write fails with ConflictError.
"""

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel

from pawpath.errors import ConflictError
from pawpath.models.notification import Notification
from pawpath.models.offer import Offer, OfferStatus
from pawpath.models.review import Review
from pawpath.models.route_point import RoutePoint
from pawpath.models.walk_assignment import ACTIVE_STATUSES, WalkAssignment
from pawpath.models.walk_request import WalkRequest, WalkRequestStatus
from pawpath.models.walker_profile import WalkerProfile
from pawpath.repositories.base import (
    NotificationRepository,
    OfferRepository,
    ReviewRepository,
    RoutePointRepository,
    Store,
    UnitOfWork,
    WalkAssignmentRepository,
    WalkerProfileRepository,
    WalkRequestRepository,
)

# (row, version the write was based on; None for inserts and unversioned rows)
_StagedRow = Tuple[BaseModel, Optional[int]]


class _Staging:
    """Rows written by one transaction, keyed by table then row id."""

    def __init__(self, tables: Dict[str, Dict[str, BaseModel]]):
        self.tables = tables
        self.rows: Dict[str, Dict[str, _StagedRow]] = {name: {} for name in tables}

    def view(self, table: str) -> Dict[str, BaseModel]:
        merged = dict(self.tables[table])
        merged.update({row_id: row for row_id, (row, _) in self.rows[table].items()})
        return merged

    def get(self, table: str, row_id: str) -> Optional[BaseModel]:
        staged = self.rows[table].get(row_id)
        if staged is not None:
            return staged[0].model_copy(deep=True)
        row = self.tables[table].get(row_id)
        return row.model_copy(deep=True) if row is not None else None

    def select(self, table: str, predicate: Callable[[BaseModel], bool]) -> List[BaseModel]:
        return [
            row.model_copy(deep=True)
            for row in self.view(table).values()
            if predicate(row)
        ]

    def insert(self, table: str, row_id: str, row: BaseModel) -> None:
        if row_id in self.view(table):
            raise ConflictError(f"Duplicate {table} row", id=row_id)
        self.rows[table][row_id] = (row.model_copy(deep=True), None)

    def update(self, table: str, row_id: str, row: BaseModel) -> None:
        current = self.view(table).get(row_id)
        if current is None:
            raise ConflictError(f"{table} row disappeared", id=row_id)
        base = self.rows[table].get(row_id, (None, None))[1]
        if hasattr(row, "version"):
            if current.version != row.version:
                raise ConflictError(
                    "The record was modified concurrently, please retry",
                    id=row_id,
                )
            if base is None and row_id in self.tables[table]:
                base = self.tables[table][row_id].version
            row.version += 1
        self.rows[table][row_id] = (row.model_copy(deep=True), base)

    def commit(self) -> None:
        # Validate everything first so nothing is applied on conflict
        for table, rows in self.rows.items():
            committed = self.tables[table]
            for row_id, (_, base) in rows.items():
                if base is not None and committed[row_id].version != base:
                    raise ConflictError(
                        "The record was modified concurrently, please retry",
                        id=row_id,
                    )
        for table, rows in self.rows.items():
            for row_id, (row, _) in rows.items():
                self.tables[table][row_id] = row


class _WalkRequests(WalkRequestRepository):
    def __init__(self, staging: _Staging):
        self._s = staging

    async def get(self, request_id: str) -> Optional[WalkRequest]:
        return self._s.get("walk_requests", request_id)

    async def add(self, request: WalkRequest) -> None:
        self._s.insert("walk_requests", request.request_id, request)

    async def save(self, request: WalkRequest) -> None:
        self._s.update("walk_requests", request.request_id, request)

    async def list_open(self) -> List[WalkRequest]:
        rows = self._s.select(
            "walk_requests", lambda r: r.status == WalkRequestStatus.OPEN
        )
        return sorted(rows, key=lambda r: (r.date, r.start_time, r.created_at))

    async def list_by_owner(
        self, owner_id: str, status: Optional[str] = None
    ) -> List[WalkRequest]:
        rows = self._s.select(
            "walk_requests",
            lambda r: r.owner_id == owner_id and (status is None or r.status == status),
        )
        return sorted(rows, key=lambda r: r.created_at, reverse=True)


class _Offers(OfferRepository):
    def __init__(self, staging: _Staging):
        self._s = staging

    async def get(self, offer_id: str) -> Optional[Offer]:
        return self._s.get("offers", offer_id)

    async def add(self, offer: Offer) -> None:
        if await self.find_active(offer.request_id, offer.walker_id):
            raise ConflictError(
                "You already have an active offer on this request",
                request_id=offer.request_id,
            )
        self._s.insert("offers", offer.offer_id, offer)

    async def save(self, offer: Offer) -> None:
        self._s.update("offers", offer.offer_id, offer)

    async def list_for_request(self, request_id: str) -> List[Offer]:
        rows = self._s.select("offers", lambda o: o.request_id == request_id)
        return sorted(rows, key=lambda o: o.created_at, reverse=True)

    async def list_by_walker(self, walker_id: str) -> List[Offer]:
        rows = self._s.select("offers", lambda o: o.walker_id == walker_id)
        return sorted(rows, key=lambda o: o.created_at, reverse=True)

    async def find_active(self, request_id: str, walker_id: str) -> Optional[Offer]:
        rows = self._s.select(
            "offers",
            lambda o: o.request_id == request_id
            and o.walker_id == walker_id
            and o.status != OfferStatus.REJECTED,
        )
        return rows[0] if rows else None


class _Assignments(WalkAssignmentRepository):
    def __init__(self, staging: _Staging):
        self._s = staging

    async def get(self, assignment_id: str) -> Optional[WalkAssignment]:
        return self._s.get("walk_assignments", assignment_id)

    async def add(self, assignment: WalkAssignment) -> None:
        if await self.find_active_for_request(assignment.request_id):
            raise ConflictError(
                "The request already has an active assignment",
                request_id=assignment.request_id,
            )
        self._s.insert("walk_assignments", assignment.assignment_id, assignment)

    async def save(self, assignment: WalkAssignment) -> None:
        self._s.update("walk_assignments", assignment.assignment_id, assignment)

    async def find_active_for_request(self, request_id: str) -> Optional[WalkAssignment]:
        rows = self._s.select(
            "walk_assignments",
            lambda a: a.request_id == request_id and a.status in ACTIVE_STATUSES,
        )
        return rows[0] if rows else None

    async def list_for_walker(
        self, walker_id: str, status: Optional[str] = None
    ) -> List[WalkAssignment]:
        rows = self._s.select(
            "walk_assignments",
            lambda a: a.walker_id == walker_id and (status is None or a.status == status),
        )
        return sorted(rows, key=lambda a: a.created_at, reverse=True)

    async def list_for_owner(self, owner_id: str) -> List[WalkAssignment]:
        rows = self._s.select("walk_assignments", lambda a: a.owner_id == owner_id)
        return sorted(rows, key=lambda a: a.created_at, reverse=True)


class _Reviews(ReviewRepository):
    def __init__(self, staging: _Staging):
        self._s = staging

    async def get_for_assignment(self, assignment_id: str) -> Optional[Review]:
        rows = self._s.select("reviews", lambda r: r.assignment_id == assignment_id)
        return rows[0] if rows else None

    async def add(self, review: Review) -> None:
        if await self.get_for_assignment(review.assignment_id):
            raise ConflictError(
                "A review already exists for this assignment",
                assignment_id=review.assignment_id,
            )
        self._s.insert("reviews", review.review_id, review)

    async def ratings_for_walker(self, walker_id: str) -> List[int]:
        assignment_ids = {
            a.assignment_id
            for a in self._s.view("walk_assignments").values()
            if a.walker_id == walker_id
        }
        return [
            r.rating
            for r in self._s.view("reviews").values()
            if r.assignment_id in assignment_ids
        ]

    async def list_for_walker(
        self, walker_id: str, skip: int = 0, limit: int = 10
    ) -> List[Review]:
        rows = self._s.select("reviews", lambda r: r.walker_id == walker_id)
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return rows[skip: skip + limit]

    async def count_for_walker(self, walker_id: str) -> int:
        return len(self._s.select("reviews", lambda r: r.walker_id == walker_id))


class _Walkers(WalkerProfileRepository):
    def __init__(self, staging: _Staging):
        self._s = staging

    async def get(self, user_id: str) -> Optional[WalkerProfile]:
        return self._s.get("walker_profiles", user_id)

    async def save(self, profile: WalkerProfile) -> None:
        if self._s.get("walker_profiles", profile.user_id) is None:
            self._s.insert("walker_profiles", profile.user_id, profile)
        else:
            self._s.update("walker_profiles", profile.user_id, profile)

    async def list_available(self) -> List[WalkerProfile]:
        return self._s.select("walker_profiles", lambda p: p.is_available)


class _Notifications(NotificationRepository):
    def __init__(self, staging: _Staging):
        self._s = staging

    async def add(self, notification: Notification) -> None:
        self._s.insert("notifications", notification.notification_id, notification)

    async def list_for_user(
        self, user_id: str, limit: int = 50, unread_only: bool = False
    ) -> List[Notification]:
        rows = self._s.select(
            "notifications",
            lambda n: n.user_id == user_id and (not unread_only or not n.read),
        )
        rows.sort(key=lambda n: n.created_at, reverse=True)
        return rows[:limit]

    async def count_unread(self, user_id: str) -> int:
        return len(await self.list_for_user(user_id, limit=10**9, unread_only=True))

    async def mark_read(self, user_id: str, notification_id: str) -> bool:
        notification = self._s.get("notifications", notification_id)
        if notification is None or notification.user_id != user_id:
            return False
        if not notification.read:
            notification.read = True
            self._s.update("notifications", notification_id, notification)
        return True

    async def mark_all_read(self, user_id: str) -> int:
        unread = await self.list_for_user(user_id, limit=10**9, unread_only=True)
        for notification in unread:
            notification.read = True
            self._s.update("notifications", notification.notification_id, notification)
        return len(unread)


class _RoutePoints(RoutePointRepository):
    def __init__(self, staging: _Staging):
        self._s = staging

    async def add(self, point: RoutePoint) -> None:
        self._s.insert("route_points", point.point_id, point)

    async def list_for_assignment(self, assignment_id: str) -> List[RoutePoint]:
        rows = self._s.select("route_points", lambda p: p.assignment_id == assignment_id)
        return sorted(rows, key=lambda p: p.recorded_at)


class _InMemoryUnitOfWork(UnitOfWork):
    def __init__(self, staging: _Staging):
        self.walk_requests = _WalkRequests(staging)
        self.offers = _Offers(staging)
        self.assignments = _Assignments(staging)
        self.reviews = _Reviews(staging)
        self.walkers = _Walkers(staging)
        self.notifications = _Notifications(staging)
        self.route_points = _RoutePoints(staging)


class InMemoryStore(Store):
    """Store backed by process-local dictionaries."""

    TABLES = (
        "walk_requests",
        "offers",
        "walk_assignments",
        "reviews",
        "walker_profiles",
        "notifications",
        "route_points",
    )

    def __init__(self):
        self._tables: Dict[str, Dict[str, BaseModel]] = {name: {} for name in self.TABLES}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def transaction(self, *lock_keys: str) -> AsyncIterator[UnitOfWork]:
        async with AsyncExitStack() as stack:
            # Sorted acquisition keeps multi-key transactions deadlock-free
            for key in sorted(set(lock_keys)):
                await stack.enter_async_context(self._lock_for(key))
            staging = _Staging(self._tables)
            yield _InMemoryUnitOfWork(staging)
            staging.commit()
