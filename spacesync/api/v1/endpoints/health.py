"""
Health check endpoint.
"""
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, text

from spacesync.core.config import settings
from spacesync.core.database import get_session
from spacesync.core.logging_config import log_warning
from spacesync.core.time_utils import utc_now

router = APIRouter(tags=["health"])


def _database_status(session: Session) -> str:
    try:
        session.exec(text("SELECT 1")).first()
    except SQLAlchemyError as exc:
        log_warning("Health check could not reach the database", error=str(exc))
        return "disconnected"
    return "connected"


def _spaces_status() -> str:
    missing = settings.missing_spaces_settings()
    if missing:
        return f"missing: {', '.join(missing)}"
    return "configured"


@router.get("/health", response_model=Dict[str, Any])
async def health_check(session: Annotated[Session, Depends(get_session)]):
    """
    Service health with database and object storage status.

    The service reports ``degraded`` rather than failing when the database is
    unreachable; missing Spaces settings only show up in ``spaces``.
    """
    database = _database_status(session)
    return {
        "status": "healthy" if database == "connected" else "degraded",
        "timestamp": utc_now().isoformat(),
        "service": settings.app_name,
        "version": settings.app_version,
        "database": database,
        "database_type": settings.database_type,
        "spaces": _spaces_status(),
    }
