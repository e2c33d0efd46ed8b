"""
Shared API dependencies.
"""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.engine import Engine

from spacesync.core.config import Settings, get_settings
from spacesync.core.database import get_engine
from spacesync.services.migration_service import MigrationService, build_migration_service


def get_migration_service(
    engine: Annotated[Engine, Depends(get_engine)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MigrationService:
    """Migration service wired to the process-wide engine and Celery."""
    return build_migration_service(engine=engine, settings=settings)
