# Import all models for easy access
from .base import BaseModel
from .content import ContentEntry, ContentMeta
from .media_item import MediaItem
from .option import AppOption

__all__ = [
    "BaseModel",
    "MediaItem",
    "ContentEntry",
    "ContentMeta",
    "AppOption",
]
