"""
MongoDB Store

Production implementation of the store contract.

Each transaction acquires Redis locks for its lock keys (sorted, so
multi-key transactions cannot deadlock), then runs every read and write in a
MongoDB multi-document transaction. Updates are compare-and-swapped on the
document's version field. Driver and lock failures are translated into the
domain error taxonomy at the transaction boundary.
"""

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import redis.asyncio as redis
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorDatabase,
)
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError
from redis.exceptions import LockError, RedisError

from pawpath.config import settings
from pawpath.errors import ConflictError, TransientStoreError
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

logger = logging.getLogger(__name__)

NO_ID = {"_id": 0}


class _MongoRepository:
    """Shared helpers for session-bound collections."""

    collection_name: str = ""
    id_field: str = ""

    def __init__(self, db: AsyncIOMotorDatabase, session: AsyncIOMotorClientSession):
        self._db = db
        self._session = session

    @property
    def _collection(self):
        return self._db[self.collection_name]

    async def _find_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._collection.find_one(query, NO_ID, session=self._session)

    async def _find(self, query: Dict[str, Any], sort=None, skip: int = 0, limit: int = 0):
        cursor = self._collection.find(query, NO_ID, session=self._session)
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def _insert(self, model) -> None:
        await self._collection.insert_one(model.model_dump(), session=self._session)

    async def _replace_versioned(self, model, upsert: bool = False) -> None:
        """Replace the document only if nobody bumped its version meanwhile."""
        row_id = getattr(model, self.id_field)
        doc = model.model_dump()
        doc["version"] = model.version + 1
        result = await self._collection.replace_one(
            {self.id_field: row_id, "version": model.version},
            doc,
            upsert=upsert,
            session=self._session,
        )
        if result.matched_count == 0 and result.upserted_id is None:
            raise ConflictError(
                "The record was modified concurrently, please retry",
                id=row_id,
            )
        model.version += 1


class _WalkRequests(_MongoRepository, WalkRequestRepository):
    collection_name = "walk_requests"
    id_field = "request_id"

    async def get(self, request_id: str) -> Optional[WalkRequest]:
        doc = await self._find_one({"request_id": request_id})
        return WalkRequest(**doc) if doc else None

    async def add(self, request: WalkRequest) -> None:
        await self._insert(request)

    async def save(self, request: WalkRequest) -> None:
        await self._replace_versioned(request)

    async def list_open(self) -> List[WalkRequest]:
        docs = await self._find(
            {"status": WalkRequestStatus.OPEN.value},
            sort=[("date", 1), ("start_time", 1), ("created_at", 1)],
        )
        return [WalkRequest(**doc) for doc in docs]

    async def list_by_owner(
        self, owner_id: str, status: Optional[str] = None
    ) -> List[WalkRequest]:
        query: Dict[str, Any] = {"owner_id": owner_id}
        if status:
            query["status"] = status
        docs = await self._find(query, sort=[("created_at", DESCENDING)])
        return [WalkRequest(**doc) for doc in docs]


class _Offers(_MongoRepository, OfferRepository):
    collection_name = "offers"
    id_field = "offer_id"

    async def get(self, offer_id: str) -> Optional[Offer]:
        doc = await self._find_one({"offer_id": offer_id})
        return Offer(**doc) if doc else None

    async def add(self, offer: Offer) -> None:
        try:
            await self._insert(offer)
        except DuplicateKeyError as e:
            raise ConflictError(
                "You already have an active offer on this request",
                request_id=offer.request_id,
            ) from e

    async def save(self, offer: Offer) -> None:
        await self._replace_versioned(offer)

    async def list_for_request(self, request_id: str) -> List[Offer]:
        docs = await self._find({"request_id": request_id}, sort=[("created_at", DESCENDING)])
        return [Offer(**doc) for doc in docs]

    async def list_by_walker(self, walker_id: str) -> List[Offer]:
        docs = await self._find({"walker_id": walker_id}, sort=[("created_at", DESCENDING)])
        return [Offer(**doc) for doc in docs]

    async def find_active(self, request_id: str, walker_id: str) -> Optional[Offer]:
        doc = await self._find_one({
            "request_id": request_id,
            "walker_id": walker_id,
            "status": {"$ne": OfferStatus.REJECTED.value},
        })
        return Offer(**doc) if doc else None


class _Assignments(_MongoRepository, WalkAssignmentRepository):
    collection_name = "walk_assignments"
    id_field = "assignment_id"

    async def get(self, assignment_id: str) -> Optional[WalkAssignment]:
        doc = await self._find_one({"assignment_id": assignment_id})
        return WalkAssignment(**doc) if doc else None

    async def add(self, assignment: WalkAssignment) -> None:
        try:
            await self._insert(assignment)
        except DuplicateKeyError as e:
            raise ConflictError(
                "The request already has an active assignment",
                request_id=assignment.request_id,
            ) from e

    async def save(self, assignment: WalkAssignment) -> None:
        await self._replace_versioned(assignment)

    async def find_active_for_request(self, request_id: str) -> Optional[WalkAssignment]:
        doc = await self._find_one({
            "request_id": request_id,
            "status": {"$in": sorted(ACTIVE_STATUSES)},
        })
        return WalkAssignment(**doc) if doc else None

    async def list_for_walker(
        self, walker_id: str, status: Optional[str] = None
    ) -> List[WalkAssignment]:
        query: Dict[str, Any] = {"walker_id": walker_id}
        if status:
            query["status"] = status
        docs = await self._find(query, sort=[("created_at", DESCENDING)])
        return [WalkAssignment(**doc) for doc in docs]

    async def list_for_owner(self, owner_id: str) -> List[WalkAssignment]:
        docs = await self._find({"owner_id": owner_id}, sort=[("created_at", DESCENDING)])
        return [WalkAssignment(**doc) for doc in docs]


class _Reviews(_MongoRepository, ReviewRepository):
    collection_name = "reviews"
    id_field = "review_id"

    async def get_for_assignment(self, assignment_id: str) -> Optional[Review]:
        doc = await self._find_one({"assignment_id": assignment_id})
        return Review(**doc) if doc else None

    async def add(self, review: Review) -> None:
        try:
            await self._insert(review)
        except DuplicateKeyError as e:
            raise ConflictError(
                "A review already exists for this assignment",
                assignment_id=review.assignment_id,
            ) from e

    async def ratings_for_walker(self, walker_id: str) -> List[int]:
        pipeline = [
            {"$match": {"walker_id": walker_id}},
            {"$lookup": {
                "from": "reviews",
                "localField": "assignment_id",
                "foreignField": "assignment_id",
                "as": "review",
            }},
            {"$unwind": "$review"},
            {"$project": {"_id": 0, "rating": "$review.rating"}},
        ]
        cursor = self._db.walk_assignments.aggregate(pipeline, session=self._session)
        rows = await cursor.to_list(length=None)
        return [row["rating"] for row in rows]

    async def list_for_walker(
        self, walker_id: str, skip: int = 0, limit: int = 10
    ) -> List[Review]:
        docs = await self._find(
            {"walker_id": walker_id},
            sort=[("created_at", DESCENDING)],
            skip=skip,
            limit=limit,
        )
        return [Review(**doc) for doc in docs]

    async def count_for_walker(self, walker_id: str) -> int:
        return await self._collection.count_documents(
            {"walker_id": walker_id}, session=self._session
        )


class _Walkers(_MongoRepository, WalkerProfileRepository):
    collection_name = "walker_profiles"
    id_field = "user_id"

    async def get(self, user_id: str) -> Optional[WalkerProfile]:
        doc = await self._find_one({"user_id": user_id})
        return WalkerProfile(**doc) if doc else None

    async def save(self, profile: WalkerProfile) -> None:
        # Upsert on a stale version collides with the unique user_id index
        try:
            await self._replace_versioned(profile, upsert=True)
        except DuplicateKeyError as e:
            raise ConflictError(
                "The record was modified concurrently, please retry",
                id=profile.user_id,
            ) from e

    async def list_available(self) -> List[WalkerProfile]:
        docs = await self._find({"is_available": True})
        return [WalkerProfile(**doc) for doc in docs]


class _Notifications(_MongoRepository, NotificationRepository):
    collection_name = "notifications"
    id_field = "notification_id"

    async def add(self, notification: Notification) -> None:
        await self._insert(notification)

    async def list_for_user(
        self, user_id: str, limit: int = 50, unread_only: bool = False
    ) -> List[Notification]:
        query: Dict[str, Any] = {"user_id": user_id}
        if unread_only:
            query["read"] = False
        docs = await self._find(query, sort=[("created_at", DESCENDING)], limit=limit)
        return [Notification(**doc) for doc in docs]

    async def count_unread(self, user_id: str) -> int:
        return await self._collection.count_documents(
            {"user_id": user_id, "read": False}, session=self._session
        )

    async def mark_read(self, user_id: str, notification_id: str) -> bool:
        result = await self._collection.update_one(
            {"notification_id": notification_id, "user_id": user_id},
            {"$set": {"read": True}},
            session=self._session,
        )
        return result.matched_count > 0

    async def mark_all_read(self, user_id: str) -> int:
        result = await self._collection.update_many(
            {"user_id": user_id, "read": False},
            {"$set": {"read": True}},
            session=self._session,
        )
        return result.modified_count


class _RoutePoints(_MongoRepository, RoutePointRepository):
    collection_name = "route_points"
    id_field = "point_id"

    async def add(self, point: RoutePoint) -> None:
        await self._insert(point)

    async def list_for_assignment(self, assignment_id: str) -> List[RoutePoint]:
        docs = await self._find({"assignment_id": assignment_id}, sort=[("recorded_at", 1)])
        return [RoutePoint(**doc) for doc in docs]


class _MongoUnitOfWork(UnitOfWork):
    def __init__(self, db: AsyncIOMotorDatabase, session: AsyncIOMotorClientSession):
        self.walk_requests = _WalkRequests(db, session)
        self.offers = _Offers(db, session)
        self.assignments = _Assignments(db, session)
        self.reviews = _Reviews(db, session)
        self.walkers = _Walkers(db, session)
        self.notifications = _Notifications(db, session)
        self.route_points = _RoutePoints(db, session)


class MongoStore(Store):
    """
    Store backed by MongoDB transactions and Redis locks.

    Requires a replica set (or sharded cluster), since standalone MongoDB
    servers do not support multi-document transactions, running MongoDB 6.0
    or newer: the partial unique indexes that back the one-active-offer and
    one-active-assignment rules filter on status with $in, which older
    servers reject (see create_indexes).
    """

    LOCK_PREFIX = "lock:"

    def __init__(
        self,
        client: AsyncIOMotorClient,
        db: AsyncIOMotorDatabase,
        redis_client: redis.Redis,
        lock_timeout: Optional[float] = None,
        lock_blocking_timeout: Optional[float] = None,
    ):
        self._client = client
        self._db = db
        self._redis = redis_client
        self._lock_timeout = lock_timeout or settings.lock_timeout_seconds
        self._lock_blocking_timeout = (
            lock_blocking_timeout or settings.lock_blocking_timeout_seconds
        )

    @asynccontextmanager
    async def transaction(self, *lock_keys: str) -> AsyncIterator[UnitOfWork]:
        try:
            async with AsyncExitStack() as stack:
                for key in sorted(set(lock_keys)):
                    await self._acquire_lock(stack, key)
                session = await stack.enter_async_context(
                    await self._client.start_session()
                )
                await stack.enter_async_context(session.start_transaction())
                yield _MongoUnitOfWork(self._db, session)
        except LockError as e:
            logger.warning(f"Lock contention on {lock_keys}: {e}")
            raise TransientStoreError() from e
        except DuplicateKeyError as e:
            raise ConflictError("The record already exists") from e
        except (PyMongoError, RedisError) as e:
            logger.error(f"Store failure in transaction {lock_keys}: {e}")
            raise TransientStoreError() from e

    async def _acquire_lock(self, stack: AsyncExitStack, key: str) -> None:
        lock = self._redis.lock(
            f"{self.LOCK_PREFIX}{key}",
            timeout=self._lock_timeout,
            blocking_timeout=self._lock_blocking_timeout,
        )
        if not await lock.acquire():
            raise LockError(f"Unable to acquire lock {key}")
        # Unwinds after the Mongo transaction committed or aborted
        stack.push_async_callback(self._release_lock, lock, key)

    @staticmethod
    async def _release_lock(lock, key: str) -> None:
        """
        Release a transaction lock.

        By now the writes are already committed (or discarded), so a lock
        that expired mid-transaction or a Redis hiccup must not turn the
        outcome into an error. The key expires on its own.
        """
        try:
            await lock.release()
        except (LockError, RedisError) as e:
            logger.warning(f"Could not release lock {key}: {e}")

    async def close(self) -> None:
        self._client.close()
        await self._redis.close()
