"""
Build local and remote URLs for media files.
"""
from typing import List, Optional, Tuple

from spacesync.core.config import Settings, settings as default_settings
from spacesync.core.exceptions import ConfigIncompleteError
from spacesync.models.media_item import MediaItem


class MediaUrlService:
    """
    Maps a relative storage path such as ``2024/05/photo.jpg`` to its local URL
    (under ``media_base_url``) and its remote URL (custom domain when set,
    otherwise ``https://{bucket}.{endpoint}/...``).
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    @staticmethod
    def normalize_key(relative_path: str) -> str:
        return relative_path.replace("\\", "/").lstrip("/")

    def local_url(self, relative_path: str) -> str:
        return f"{self.settings.media_base_url}/{self.normalize_key(relative_path)}"

    def remote_base_url(self) -> str:
        """Public base URL of the bucket.

        Raises:
            ConfigIncompleteError: If Spaces is not configured.
        """
        missing = self.settings.missing_spaces_settings()
        if missing:
            raise ConfigIncompleteError(missing)
        if self.settings.spaces_cname:
            return self.settings.spaces_cname
        return f"https://{self.settings.spaces_bucket}.{self.settings.spaces_endpoint}"

    def remote_url(self, relative_path: str) -> str:
        return f"{self.remote_base_url()}/{self.normalize_key(relative_path)}"

    def relative_path_from_url(self, url: str) -> Optional[str]:
        """Relative storage path of a local media URL, or None for other URLs."""
        base = self.settings.media_base_url
        if not url.startswith(base + "/"):
            return None
        return url[len(base):].lstrip("/")

    def rewrite_pair(self, relative_path: str) -> Tuple[str, str]:
        """(old, new) URL pair for one file, computed once and reused for every table."""
        return self.local_url(relative_path), self.remote_url(relative_path)

    def rewrite_pairs(self, relative_paths: List[str]) -> List[Tuple[str, str]]:
        pairs = []
        for path in dict.fromkeys(relative_paths):
            old, new = self.rewrite_pair(path)
            if old != new:
                pairs.append((old, new))
        return pairs

    def filter_media_url(self, url: str) -> str:
        """Serve local media URLs from the bucket once Spaces is configured.

        URLs outside ``media_base_url`` and every URL while Spaces is not
        configured are returned unchanged.
        """
        if not self.settings.spaces_configured:
            return url
        relative = self.relative_path_from_url(url)
        if relative is None:
            return url
        return self.remote_url(relative)

    def media_url(self, item: MediaItem) -> str:
        """Best URL for a media item: stored remote URL first, then the filtered local URL."""
        if item.is_offloaded:
            return item.remote_url
        return self.filter_media_url(self.local_url(item.file_path))
