"""
Main FastAPI application for SpaceSync.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from spacesync.api.v1.api import api_router
from spacesync.core.config import settings
from spacesync.core.database import init_db
from spacesync.core.exceptions import (
    ConfigIncompleteError,
    MediaNotFoundError,
    SpaceSyncException,
    StateConflictError,
)
from spacesync.core.logging_config import setup_logging, log_info, log_warning, log_error

# -----------------------------------------------------------------------------
# Startup / Shutdown
# -----------------------------------------------------------------------------
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    log_info("Starting up SpaceSync Service...")
    try:
        init_db()
        log_info("Database initialization completed!")

        missing = settings.missing_spaces_settings()
        if missing:
            log_warning(f"Spaces not configured, uploads will fail until set: {', '.join(missing)}")
    except Exception as exc:
        log_error(exc)
        raise
    yield
    log_info("Shutting down SpaceSync Service...")


# -----------------------------------------------------------------------------
# App Initialization
# -----------------------------------------------------------------------------
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Offload a local media library to S3-compatible object storage",
    openapi_url=f"{settings.api_v1_prefix}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


@app.exception_handler(SpaceSyncException)
async def spacesync_exception_handler(request: Request, exc: SpaceSyncException):
    log_error(exc, path=request.url.path)

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    if isinstance(exc, MediaNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, StateConflictError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, ConfigIncompleteError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "message": str(exc)},
    )


app.include_router(api_router, prefix=settings.api_v1_prefix)
