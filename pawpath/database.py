"""
PawPath Database Module

MongoDB and Redis connection management.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import OperationFailure

from pawpath.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# MongoDB Connection
# =============================================================================

class MongoDB:
    """MongoDB connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None


mongo = MongoDB()


async def create_indexes(db: AsyncIOMotorDatabase):
    """
    Create the indexes the store relies on for lookups and uniqueness.

    The partial unique indexes filter on status with $in, which MongoDB
    accepts in partialFilterExpression from 6.0 on. On an older server they
    fail to build; the Redis locks still serialize offers and acceptances,
    but the database no longer backs those rules, so the failure is logged
    as an error.
    """
    # walk_requests
    await db.walk_requests.create_index("request_id", unique=True)
    await db.walk_requests.create_index([("owner_id", 1), ("status", 1)])
    await db.walk_requests.create_index([("status", 1), ("date", 1)])

    # offers
    await db.offers.create_index("offer_id", unique=True)
    await db.offers.create_index("request_id")
    await db.offers.create_index("walker_id")

    # walk_assignments
    await db.walk_assignments.create_index("assignment_id", unique=True)
    await db.walk_assignments.create_index("walker_id")
    await db.walk_assignments.create_index("owner_id")

    # reviews: at most one per assignment
    await db.reviews.create_index("review_id", unique=True)
    await db.reviews.create_index("assignment_id", unique=True)
    await db.reviews.create_index([("walker_id", 1), ("created_at", -1)])

    # walker_profiles
    await db.walker_profiles.create_index("user_id", unique=True)
    await db.walker_profiles.create_index("is_available")

    # notifications
    await db.notifications.create_index("notification_id", unique=True)
    await db.notifications.create_index([("user_id", 1), ("created_at", -1)])
    await db.notifications.create_index([("user_id", 1), ("read", 1)])

    # route_points
    await db.route_points.create_index("point_id", unique=True)
    await db.route_points.create_index([("assignment_id", 1), ("recorded_at", 1)])

    # Partial unique indexes backing the offer and assignment invariants
    partial_indexes = [
        (
            db.offers,
            [("request_id", 1), ("walker_id", 1)],
            {"status": {"$in": ["pending", "accepted"]}},
            "unique_active_offer_per_walker",
        ),
        (
            db.walk_assignments,
            [("request_id", 1)],
            {"status": {"$in": ["scheduled", "in_progress"]}},
            "unique_active_assignment_per_request",
        ),
    ]
    for collection, keys, partial_filter, name in partial_indexes:
        try:
            await collection.create_index(
                keys,
                unique=True,
                partialFilterExpression=partial_filter,
                name=name,
            )
        except OperationFailure as e:
            # Pre-6.0 server, or a same-named index with different options
            logger.error(
                f"Could not create index {name} (requires MongoDB 6.0+): {e}"
            )


async def init_mongodb():
    """Initialize MongoDB connection and create indexes."""
    mongo.client = AsyncIOMotorClient(settings.mongodb_uri, tz_aware=True)
    mongo.db = mongo.client[settings.mongodb_database]
    await create_indexes(mongo.db)


async def close_mongodb():
    """Close MongoDB connection."""
    if mongo.client:
        mongo.client.close()


def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    if mongo.db is None:
        raise RuntimeError("Database not initialized")
    return mongo.db


# =============================================================================
# Redis Connection
# =============================================================================

class RedisClient:
    """Redis connection manager."""

    client: Optional[redis.Redis] = None


redis_client = RedisClient()


async def init_redis():
    """Initialize Redis connection."""
    redis_client.client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        health_check_interval=30,
        socket_connect_timeout=5,
        retry_on_timeout=True,
        socket_keepalive=True
    )


async def close_redis():
    """Close Redis connection."""
    if redis_client.client:
        await redis_client.client.close()


def get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if redis_client.client is None:
        raise RuntimeError("Redis not initialized")
    return redis_client.client


# =============================================================================
# Combined Initialization
# =============================================================================

async def init_db():
    """Initialize all database connections."""
    await init_mongodb()
    await init_redis()


async def close_db():
    """Close all database connections."""
    await close_mongodb()
    await close_redis()
