"""
Media endpoints: public URL lookup and single-item offload.
"""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from spacesync.api.dependencies import get_migration_service
from spacesync.core.exceptions import MediaNotFoundError
from spacesync.core.logging_config import log_error
from spacesync.schemas.media import MediaUrlResponse, OffloadMediaResponse
from spacesync.services.migration_service import MigrationService

router = APIRouter(prefix="/media", tags=["media"])


@router.get(
    "/{media_id}/url",
    response_model=MediaUrlResponse,
    responses={
        404: {"description": "Media item not found"},
    }
)
async def get_media_url(
    media_id: uuid.UUID,
    service: Annotated[MigrationService, Depends(get_migration_service)],
):
    """
    URL to serve a media item from.

    Offloaded items return their stored bucket URL. Other items return their
    local URL, mapped onto the bucket when Spaces is configured.
    """
    try:
        return service.media_url(media_id)
    except MediaNotFoundError as e:
        raise HTTPException(status_code=404, detail="Media item not found") from e


@router.post(
    "/{media_id}/offload",
    response_model=OffloadMediaResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        404: {"description": "Media item not found"},
        500: {"description": "Internal server error"},
    }
)
async def offload_media(
    media_id: uuid.UUID,
    service: Annotated[MigrationService, Depends(get_migration_service)],
):
    """Queue a newly added media item for upload; migration counters are untouched."""
    try:
        item_id = service.schedule_offload(media_id)
    except MediaNotFoundError as e:
        raise HTTPException(status_code=404, detail="Media item not found") from e
    except SQLAlchemyError as e:
        log_error(e, media_id=str(media_id))
        raise HTTPException(
            status_code=500,
            detail="An error occurred while scheduling the offload"
        ) from e

    return OffloadMediaResponse(id=item_id, message="Media item queued for offloading")
