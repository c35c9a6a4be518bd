"""
FastAPI application factory for Flock.

This module creates the FastAPI app with:
- Database handle and object storage lifecycle (lifespan)
- CORS configuration for the frontend
- User, tweet and notification routes under /api/v1
- Error handlers mapping FlockError categories onto HTTP status codes
"""

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._version import __version__
from ..config import ServerConfig
from ..errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    FlockError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from ..media import ObjectStorage, create_object_storage
from ..service import FlockService
from ..store import Database, now_ms
from .routes import notification_router, tweet_router, user_router
from .settings import ApiSettings

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: list[tuple[type[FlockError], int]] = [
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
]


def status_for(error: FlockError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    if error.retryable:
        return 503
    return 500


def error_body(message: str, code: str) -> dict:
    return {"success": False, "error": message, "error_code": code}


def create_app(
    config: ServerConfig | None = None,
    storage: ObjectStorage | None = None,
    settings: ApiSettings | None = None,
    clock: Callable[[], int] = now_ms,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Server configuration (loaded from the environment if omitted)
        storage: Object storage backend (built from config.media if omitted)
        settings: HTTP settings (loaded from the environment if omitted)
        clock: Time source in Unix ms
    """
    config = config or ServerConfig.from_env()
    settings = settings or ApiSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Own the database handle and object storage for the app's lifetime."""
        db = Database.from_config(config.storage)
        media = storage or create_object_storage(config.media)

        await db.initialize()
        await media.connect()
        app.state.service = FlockService(db, config, media, clock=clock)
        app.state.settings = settings
        logger.info("Flock API started", extra={"version": __version__})

        try:
            yield
        finally:
            await media.close()
            await db.close()
            logger.info("Flock API stopped")

    app = FastAPI(
        title="Flock",
        description="Micro-blogging backend: accounts, posts, follows and notifications.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(FlockError)
    async def handle_flock_error(request: Request, exc: FlockError) -> JSONResponse:
        status = status_for(exc)
        if isinstance(exc, InternalError) and not exc.retryable:
            logger.error(
                f"Internal error on {request.method} {request.url.path}: {exc.message}",
                extra={"error_code": exc.code},
            )
            return JSONResponse(error_body("Internal Server Error", exc.code), status_code=status)
        return JSONResponse(error_body(exc.message, exc.code), status_code=status)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"HTTP handler error: {exc}", exc_info=True)
        return JSONResponse(error_body("Internal Server Error", "INTERNAL"), status_code=500)

    app.include_router(user_router, prefix="/api/v1")
    app.include_router(tweet_router, prefix="/api/v1")
    app.include_router(notification_router, prefix="/api/v1")

    @app.get("/api/v1/ping")
    async def ping():
        return {"success": True, "message": "Server is awake!"}

    return app
