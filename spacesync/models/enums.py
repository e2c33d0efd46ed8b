"""
Enums and constants for the application.
"""
from enum import Enum


class RewriteStrategy(str, Enum):
    """How stored references are rewritten after an upload."""
    NAIVE = "naive"        # bulk in-database REPLACE()
    ADVANCED = "advanced"  # row-by-row, serialization aware


class MigrationStatus(str, Enum):
    """Status reported by the progress query."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"


class ItemOutcome(str, Enum):
    """Terminal outcome of one media item inside a chunk."""
    REWRITTEN = "rewritten"
    REWRITE_SKIPPED = "rewrite_skipped"
    UPLOAD_FAILED = "upload_failed"
    INVALID_METADATA = "invalid_metadata"
    FAILED = "failed"

    @property
    def is_error(self) -> bool:
        return self in {ItemOutcome.UPLOAD_FAILED, ItemOutcome.INVALID_METADATA, ItemOutcome.FAILED}


class UploadFailureReason(str, Enum):
    """Why the blob store rejected an upload."""
    UNAVAILABLE = "unavailable"
    UPLOAD_FAILED = "upload_failed"
    EXCEPTION = "exception"
