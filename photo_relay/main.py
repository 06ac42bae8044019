"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations and a fake storage client
- Explicit about initialization order
- The credential-bearing storage client can be built before the server
  binds its port

For local development:
    STORAGE_BACKEND=mock uvicorn photo_relay.main:app --reload

For production:
    photo-relay
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.body_limit import BodySizeLimitMiddleware, BodyTooLarge
from .api.dependencies import build_storage_client
from .api.origin_filter import OriginFilterMiddleware
from .api.routes import health, upload
from .config.settings import Settings, get_settings
from .core.relay import ObjectStore
from .infrastructure.storage.credentials import CredentialError

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the storage client when one wasn't handed in. A missing or
    malformed credential blob raises here, which makes the ASGI server
    abort startup: the relay never serves without working credentials.
    """
    settings: Settings = app.state.settings

    if app.state.storage is None:
        app.state.storage = build_storage_client(settings)

    logger.info(
        "Photo Relay starting",
        extra={
            "version": __version__,
            "backend": settings.storage_backend,
            "container_id": settings.storage_container_id,
            "allowed_origins": settings.allowed_origins_list,
        }
    )

    yield

    logger.info("Photo Relay shutting down")


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[ObjectStore] = None,
) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Configuration; loaded from the environment when omitted
        storage: Ready-made storage client; built during startup when omitted
    """
    if settings is None:
        settings = get_settings()

    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Relays photo uploads to cloud storage.

        1. **Upload**: `POST /upload` with multipart field `photo` (max 8 MB)
           and optional `phoneId`
        2. The photo is stored as `photo_bal_<timestamp>.jpg` and the
           storage backend's file id is returned
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.storage = storage
    app.dependency_overrides[get_settings] = lambda: settings

    # Innermost: caps body reads for the routes, and its rejections still get CORS headers
    app.add_middleware(
        BodySizeLimitMiddleware,
        max_upload_bytes=settings.max_upload_bytes,
    )
    # Registered before the origin filter so the filter wraps it and runs first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(
        OriginFilterMiddleware,
        allowed_origins=settings.allowed_origins_list,
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(upload.router, tags=["Upload"])

    @app.exception_handler(BodyTooLarge)
    async def body_too_large_handler(request: Request, exc: BodyTooLarge):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed form data is a client error in the same {"error": ...} shape."""
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        logger.warning(
            "Malformed request",
            extra={"path": request.url.path, "problems": problems}
        )
        return JSONResponse(
            status_code=400,
            content={"error": f"Invalid request: {problems}"},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients. We log the full
        error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


def run() -> None:
    """
    Console entry point.

    Builds the storage client before the server starts so a bad
    credential blob exits immediately with status 1. The module-level
    app is reused, so importing this module and running it creates a
    single application.
    """
    import uvicorn

    settings = get_settings()

    try:
        storage = build_storage_client(settings)
    except CredentialError as e:
        logger.error("Cannot start: %s", e)
        sys.exit(1)

    app.state.storage = storage

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    run()
