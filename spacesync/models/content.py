"""
Host content tables that embed media URLs.
"""
import uuid
from typing import Optional

from sqlalchemy import Column, ForeignKey, Text
from sqlmodel import Field, SQLModel

from spacesync.models.base import BaseModel


class ContentEntry(BaseModel, table=True):
    """A published piece of content whose body may link local media."""
    __tablename__ = "content_entries"

    title: str = Field(..., max_length=255)
    slug: Optional[str] = Field(None, max_length=255, index=True)
    body: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    excerpt: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))


class ContentMeta(SQLModel, table=True):
    """Free-form key/value metadata; values are often PHP-serialized or JSON."""
    __tablename__ = "content_meta"

    id: Optional[int] = Field(default=None, primary_key=True)
    entry_id: uuid.UUID = Field(
        sa_column=Column(
            ForeignKey("content_entries.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    meta_key: str = Field(..., max_length=255, index=True)
    meta_value: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
