"""
Migration endpoints: schema scan, start and progress.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from spacesync.api.dependencies import get_migration_service
from spacesync.core.exceptions import StateConflictError
from spacesync.core.logging_config import log_error, log_migration
from spacesync.schemas.migration import (
    MigrationProgress,
    ScanResult,
    StartMigrationRequest,
    StartMigrationResponse,
)
from spacesync.services.migration_service import MigrationService

router = APIRouter(prefix="/migration", tags=["migration"])


@router.post(
    "/scan",
    response_model=ScanResult,
    responses={
        500: {"description": "Internal server error"},
    }
)
async def scan_tables(
    service: Annotated[MigrationService, Depends(get_migration_service)],
):
    """
    Scan the database for tables referencing local media.

    The result replaces any earlier scan.
    """
    try:
        return service.scan_tables()
    except (SQLAlchemyError, StateConflictError) as e:
        log_error(e)
        raise HTTPException(
            status_code=500,
            detail="An error occurred while scanning the database"
        ) from e


@router.get(
    "/scan",
    response_model=ScanResult,
    responses={
        404: {"description": "No scan has been run yet"},
    }
)
async def get_scan_result(
    service: Annotated[MigrationService, Depends(get_migration_service)],
):
    """Return the most recent scan result."""
    result = service.get_scan_result()
    if result is None:
        raise HTTPException(status_code=404, detail="No scan has been run yet")
    return result


@router.post(
    "/start",
    response_model=StartMigrationResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        500: {"description": "Internal server error"},
    }
)
async def start_migration(
    service: Annotated[MigrationService, Depends(get_migration_service)],
    request: StartMigrationRequest,
):
    """
    Start migrating every media item to object storage.

    Chunks are processed by Celery workers; poll ``/migration/progress``.
    Starting again while a run is in progress supersedes it.
    """
    try:
        job_count = service.start_migration(request.selected_tables, request.strategy)
    except (SQLAlchemyError, StateConflictError) as e:
        log_error(e)
        raise HTTPException(
            status_code=500,
            detail="An error occurred while starting the migration"
        ) from e

    progress = service.get_progress()
    log_migration("Migration started via API", run_id=progress.run_id, chunks=job_count)
    return StartMigrationResponse(
        run_id=progress.run_id,
        job_count=job_count,
        total=progress.total,
        message=f"Scheduled {job_count} chunk(s) for migration",
    )


@router.get(
    "/progress",
    response_model=MigrationProgress,
)
async def get_progress(
    service: Annotated[MigrationService, Depends(get_migration_service)],
):
    """Counters of the current run, or ``not_started`` if no run exists."""
    return service.get_progress()
