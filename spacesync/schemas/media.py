"""
Media item URL and offload schemas.
"""
import uuid
from typing import Optional

from pydantic import BaseModel


class MediaUrlResponse(BaseModel):
    """Public URL of a media item, served from the bucket once offloaded."""
    id: uuid.UUID
    url: str
    offloaded: bool
    remote_url: Optional[str] = None


class OffloadMediaResponse(BaseModel):
    """Response when a single media item has been queued for offloading."""
    id: uuid.UUID
    status: str = "accepted"
    message: str
