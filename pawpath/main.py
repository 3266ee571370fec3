"""
PawPath Backend - FastAPI Application

Main application entry point with middleware, routers, and OpenAPI
documentation.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pawpath.config import settings
from pawpath.database import close_db, get_db, get_redis, init_db, mongo
from pawpath.dependencies import Services
from pawpath.errors import PawPathError, TransientStoreError
from pawpath.middleware.rate_limit import RateLimitMiddleware
from pawpath.repositories.base import Store
from pawpath.repositories.mongo import MongoStore
from pawpath.routers import assignments, notifications, offers, reviews, walk_requests, walkers

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
RETRY_AFTER_SECONDS = 1


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    Handles startup and shutdown events:
    - Connect MongoDB and Redis unless a store was injected
    - Wire the services to the store
    - Flush pending notifications and close connections on shutdown
    """
    owns_connections = getattr(app.state, "services", None) is None

    if owns_connections:
        await init_db()
        app.state.services = Services.build(
            MongoStore(mongo.client, get_db(), get_redis())
        )

        logger.info("=" * 50)
        logger.info("PAWPATH BACKEND STARTUP")
        try:
            await get_db().client.admin.command("ping")
            logger.info("Connected to db")
        except Exception as e:
            logger.error(f"FAILED to connect to db: {e}")
        try:
            await get_redis().ping()
            logger.info("Redis connected")
        except Exception as e:
            logger.error(f"FAILED to connect to Redis: {e}")
        logger.info("=" * 50)

    yield

    # Shutdown
    await app.state.services.dispatcher.drain()
    if owns_connections:
        await close_db()


# =============================================================================
# Exception Handlers
# =============================================================================

async def pawpath_error_handler(request: Request, exc: PawPathError):
    """Render domain errors as {"detail": {"error", "message", ...}}."""
    headers = None
    if isinstance(exc, TransientStoreError):
        headers = {"Retry-After": str(RETRY_AFTER_SECONDS)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_dict()},
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters are a 400, like every other validation error."""
    errors = [
        {
            "loc": [str(part) for part in err.get("loc", ())],
            "msg": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": {
                "error": "validation_error",
                "message": "Invalid request",
                "errors": errors,
            }
        },
    )


async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled errors.

    SECURITY: Do not leak internal error details.
    """
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": {
                "error": "internal_error",
                "message": "Something went wrong. Please try again later.",
            }
        },
    )


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(
    store: Optional[Store] = None,
    notifications_in_background: Optional[bool] = None,
) -> FastAPI:
    """
    Build the application.

    With a store, services are wired immediately and the lifespan leaves
    connections alone (tests, local runs on InMemoryStore). Without one,
    the lifespan connects MongoDB and Redis.
    """
    app = FastAPI(
        title="PawPath API",
        description="""
        PawPath - Dog Walking Marketplace API

        ## Features
        - Walk requests with zone and distance based discovery
        - Offers and exclusive acceptance
        - Walk lifecycle with photos, completion reports and payment flag
        - Reviews and walker ratings
        - In-app notifications

        ## Authentication
        The gateway authenticates callers and forwards them as
        `X-User-Id` and `X-User-Role` (owner, walker or admin) headers.
        """,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        debug=settings.debug,
        lifespan=lifespan,
    )

    if store is not None:
        app.state.services = Services.build(store, notifications_in_background)

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RateLimitMiddleware)

    # Exception handlers
    app.add_exception_handler(PawPathError, pawpath_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # Routers
    api = settings.api_v1_str
    app.include_router(walk_requests.router, prefix=f"{api}/walk-requests", tags=["Walk Requests"])
    app.include_router(offers.router, prefix=f"{api}/offers", tags=["Offers"])
    app.include_router(assignments.router, prefix=f"{api}/walk-assignments", tags=["Walk Assignments"])
    app.include_router(reviews.router, prefix=f"{api}/reviews", tags=["Reviews"])
    app.include_router(walkers.router, prefix=f"{api}/walkers", tags=["Walkers"])
    app.include_router(notifications.router, prefix=f"{api}/notifications", tags=["Notifications"])

    # Health check
    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint for load balancers and monitoring."""
        return {"status": "healthy", "version": API_VERSION}

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "PawPath API",
            "version": API_VERSION,
            "docs": "/docs",
            "health": "/health",
        }

    return app


configure_logging()
app = create_app()
