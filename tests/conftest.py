"""
Pytest fixtures shared across the unit, API and CLI suites.

Every test gets its own file-backed SQLite database so row-level updates,
compare-and-swap writes and threaded workers behave as they do in production.
"""
from __future__ import annotations

import os

# Keep the process-wide engine off the developer's database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SKIP_DB_INIT", "true")

from typing import Callable, Dict, List, Optional, Tuple  # noqa: E402

import pytest  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

import spacesync.models  # noqa: E402,F401
from spacesync.core.config import Settings  # noqa: E402
from spacesync.core.database import build_engine  # noqa: E402
from spacesync.core.exceptions import UploadFailedError  # noqa: E402
from spacesync.models.media_item import MediaItem  # noqa: E402
from spacesync.services.migration_state_store import MigrationStateStore  # noqa: E402

SPACES = {
    "spaces_access_key": "test-access-key",
    "spaces_secret_key": "test-secret-key",
    "spaces_endpoint": "nyc3.digitaloceanspaces.com",
    "spaces_bucket": "media-bucket",
}

LOCAL_BASE = "http://local.test/uploads"
REMOTE_BASE = "https://media-bucket.nyc3.digitaloceanspaces.com"


def make_settings(**kwargs) -> Settings:
    """Create Settings without loading values from .env, with Spaces configured."""
    values = {**SPACES, "media_base_url": LOCAL_BASE, "migration_chunk_size": 2}
    values.update(kwargs)
    return Settings(_env_file=None, **values)


class FakeBlobStore:
    """In-memory BlobStore; keys listed in ``fail_keys`` raise UploadFailedError."""

    def __init__(self, base_url: str = REMOTE_BASE, fail_keys=()):
        self.base_url = base_url
        self.fail_keys = set(fail_keys)
        self.objects: Dict[str, Tuple[bytes, str]] = {}

    def put(self, object_key, content, content_type):
        if object_key in self.fail_keys:
            raise UploadFailedError(f"rejected {object_key}")
        data = content if isinstance(content, bytes) else content.read()
        self.objects[object_key] = (data, content_type)
        return f"{self.base_url}/{object_key}"


class RecordingScheduler:
    """DeferredJobScheduler that only records what it was asked to do."""

    def __init__(self):
        self.calls: List[dict] = []

    def schedule(self, job_name, payload, not_before, group):
        self.calls.append({
            "job_name": job_name,
            "payload": dict(payload),
            "not_before": not_before,
            "group": group,
        })


@pytest.fixture
def engine(tmp_path):
    """A fresh SQLite database with every SpaceSync table created."""
    db_engine = build_engine(f"sqlite:///{tmp_path / 'spacesync-test.db'}")
    SQLModel.metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as db_session:
        yield db_session


@pytest.fixture
def state_store(engine) -> MigrationStateStore:
    return MigrationStateStore(engine, max_attempts=50)


@pytest.fixture
def media_root(tmp_path):
    """Create a temporary media root directory."""
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture
def settings_factory(media_root) -> Callable[..., Settings]:
    def _make(**kwargs) -> Settings:
        kwargs.setdefault("media_root", str(media_root))
        return make_settings(**kwargs)

    return _make


@pytest.fixture
def media_factory(engine, media_root) -> Callable[..., MediaItem]:
    """
    Factory that writes a media item's files under the media root and stores its row.

    ``sizes`` maps size names to file names placed beside the original.
    Pass ``write_files=False`` to leave the files missing on disk.
    """

    def _create(
        file_path: str = "2024/05/photo.jpg",
        sizes: Optional[Dict[str, str]] = None,
        metadata: Optional[dict] = None,
        write_files: bool = True,
    ) -> MediaItem:
        sizes = sizes or {}
        if metadata is None:
            metadata = {
                "file": file_path,
                "mime-type": "image/jpeg",
                "sizes": {
                    name: {"file": name_file, "mime-type": "image/jpeg"}
                    for name, name_file in sizes.items()
                },
            }

        if write_files:
            target = media_root / file_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(b"\xff\xd8\xff\xe0 original " + file_path.encode())
            for name_file in sizes.values():
                (target.parent / name_file).write_bytes(b"\xff\xd8\xff\xe0 size " + name_file.encode())

        item = MediaItem(
            file_path=file_path,
            original_filename=file_path.rsplit("/", 1)[-1],
            mime_type="image/jpeg",
            media_metadata=metadata,
        )
        with Session(engine) as db_session:
            db_session.add(item)
            db_session.commit()
            db_session.refresh(item)
            db_session.expunge(item)
        return item

    return _create
