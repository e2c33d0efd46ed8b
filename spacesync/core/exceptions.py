"""
Custom application exceptions.
"""
from typing import Iterable

from spacesync.models.enums import UploadFailureReason


class SpaceSyncException(Exception):
    """Base exception for SpaceSync."""
    pass


class ConfigIncompleteError(SpaceSyncException):
    """Raised when required Spaces settings are missing."""

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required setting(s): {', '.join(self.missing)}")


class UploadFailedError(SpaceSyncException):
    """Raised when the object store rejects or fails an upload."""

    def __init__(self, message: str, reason: UploadFailureReason = UploadFailureReason.UPLOAD_FAILED):
        super().__init__(message)
        self.reason = reason


class DecodeAmbiguousError(SpaceSyncException):
    """Raised when a value looks structured but cannot be decoded or re-encoded."""
    pass


class SchemaIntrospectionError(SpaceSyncException):
    """Raised when a table's columns cannot be read."""
    pass


class NoPrimaryKeyError(SpaceSyncException):
    """Raised when a table has no single-column primary key."""
    pass


class MediaNotFoundError(SpaceSyncException):
    """Raised when a media item or its local file is not found."""
    pass


class MediaMetadataError(SpaceSyncException):
    """Raised when a media item's stored metadata is absent or malformed."""
    pass


class StateConflictError(SpaceSyncException):
    """Raised when a state document could not be updated after repeated conflicts."""
    pass
