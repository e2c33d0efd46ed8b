"""
MIME type detection for files about to be uploaded.
"""
import logging
from pathlib import Path
from typing import Optional, Union

import magic

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


def detect_mime_type(path: Union[str, Path], fallback: Optional[str] = None) -> str:
    """Detect a file's MIME type with libmagic.

    Falls back to ``fallback`` (usually the type stored with the media item)
    and then to ``application/octet-stream``.
    """
    try:
        detected = magic.from_file(str(path), mime=True)
        if detected:
            return detected
    except Exception as exc:
        logger.warning("Failed to detect MIME type with libmagic: %s", exc)
    return fallback or DEFAULT_MIME_TYPE
