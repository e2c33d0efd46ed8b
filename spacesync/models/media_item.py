"""
Media library items offloaded to object storage.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, String
from sqlmodel import Field, JSON

from spacesync.models.base import BaseModel


class MediaItem(BaseModel, table=True):
    """
    A file in the local media library.

    ``file_path`` is relative to the media root (``2024/05/photo.jpg``).
    ``media_metadata`` describes the original and its derived sizes::

        {"file": "2024/05/photo.jpg",
         "sizes": {"thumbnail": {"file": "photo-150x150.jpg", "mime-type": "image/jpeg"}}}

    Size files live in the same directory as the original. After a successful
    upload a ``remote`` block is added and ``remote_url`` is set.
    """
    __tablename__ = "media_items"

    file_path: str = Field(..., max_length=500, index=True)
    original_filename: Optional[str] = Field(None, max_length=255)
    mime_type: Optional[str] = Field(None, max_length=100)
    file_size: Optional[int] = Field(None, ge=0)
    media_metadata: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    remote_url: Optional[str] = Field(
        default=None,
        sa_column=Column(String(1024), nullable=True),
    )
    offloaded_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )

    @property
    def is_offloaded(self) -> bool:
        return self.remote_url is not None
