"""
Key/value option store for whole-document application state.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, Text
from sqlmodel import Field, SQLModel

from spacesync.core.time_utils import utc_now


class AppOption(SQLModel, table=True):
    """
    One JSON document per key.

    ``version`` increases by one on every write so concurrent writers can use
    it as a compare-and-swap token.
    """
    __tablename__ = "app_options"

    key: str = Field(primary_key=True, max_length=191)
    value: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    version: int = Field(default=1, nullable=False)
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
