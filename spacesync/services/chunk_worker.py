"""
Process one chunk of media items: upload, rewrite references, count.
"""
import posixpath
import uuid
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from spacesync.core.config import Settings, settings as default_settings
from spacesync.core.exceptions import (
    ConfigIncompleteError,
    MediaMetadataError,
    MediaNotFoundError,
    StateConflictError,
    UploadFailedError,
)
from spacesync.core.logging_config import log_error, log_info, log_migration, log_warning
from spacesync.core.time_utils import utc_now
from spacesync.models.enums import ItemOutcome, RewriteStrategy
from spacesync.models.media_item import MediaItem
from spacesync.services.blob_store import BlobStore, S3BlobStore
from spacesync.services.media_url_service import MediaUrlService
from spacesync.services.migration_state_store import MigrationStateStore
from spacesync.services.table_rewriter import TableRewriter
from spacesync.utils.mime import detect_mime_type


@dataclass
class ChunkReport:
    chunk_index: int
    run_id: Optional[str]
    outcomes: Counter = field(default_factory=Counter)
    skipped: bool = False

    @property
    def processed(self) -> int:
        return sum(self.outcomes.values())

    @property
    def errors(self) -> int:
        return sum(count for outcome, count in self.outcomes.items() if outcome.is_error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunk_index": self.chunk_index,
            "run_id": self.run_id,
            "skipped": self.skipped,
            "processed": self.processed,
            "errors": self.errors,
            "outcomes": {outcome.value: count for outcome, count in self.outcomes.items()},
        }


@dataclass(frozen=True)
class MediaFile:
    """One physical file of a media item: the original or a derived size."""
    relative_path: str
    content_type: Optional[str]
    size_name: Optional[str] = None


def media_files_from_metadata(metadata: Any) -> List[MediaFile]:
    """List the original and every derived size described by ``metadata``.

    Size files are stored next to the original.

    Raises:
        MediaMetadataError: If the metadata is absent or malformed.
    """
    if not isinstance(metadata, dict):
        raise MediaMetadataError("Media metadata is missing or not a mapping")
    main = metadata.get("file")
    if not isinstance(main, str) or not main.strip():
        raise MediaMetadataError("Media metadata has no 'file' entry")

    main = MediaUrlService.normalize_key(main)
    files = [MediaFile(main, metadata.get("mime-type"))]

    sizes = metadata.get("sizes") or {}
    if not isinstance(sizes, dict):
        raise MediaMetadataError("Media metadata 'sizes' is not a mapping")

    directory = posixpath.dirname(main)
    for name, size in sizes.items():
        if not isinstance(size, dict) or not isinstance(size.get("file"), str):
            raise MediaMetadataError(f"Size '{name}' has no file name")
        files.append(MediaFile(posixpath.join(directory, size["file"]), size.get("mime-type"), str(name)))
    return files


class ChunkWorker:
    """Runs the per-item upload and rewrite pipeline for a chunk of media ids."""

    def __init__(
        self,
        engine: Engine,
        state_store: MigrationStateStore,
        blob_store: Optional[BlobStore] = None,
        rewriter: Optional[TableRewriter] = None,
        settings: Optional[Settings] = None,
    ):
        self.engine = engine
        self.state_store = state_store
        self.settings = settings or default_settings
        self._blob_store = blob_store
        self.rewriter = rewriter or TableRewriter(engine)
        self.urls = MediaUrlService(self.settings)
        self.media_root = Path(self.settings.media_root)

    @property
    def blob_store(self) -> BlobStore:
        """Lazily built S3 store; raises ConfigIncompleteError while Spaces is unconfigured."""
        if self._blob_store is None:
            self._blob_store = S3BlobStore(self.settings)
        return self._blob_store

    def process_chunk(self, media_ids: Sequence[str], chunk_index: int, run_id: Optional[str] = None) -> ChunkReport:
        state = self.state_store.load()
        report = ChunkReport(chunk_index=chunk_index, run_id=run_id)

        if state is None or (run_id is not None and state.run_id != run_id):
            log_warning(
                "Skipping chunk of a superseded or unknown migration run",
                run_id=run_id,
                chunk=chunk_index,
            )
            report.skipped = True
            return report

        run_id = state.run_id
        report.run_id = run_id
        tables = self.rewrite_tables(state.selected_tables)
        log_migration(f"Processing chunk #{chunk_index} with {len(media_ids)} item(s)", run_id=run_id)

        # Results whose counter write lost every race; retried as one batch at the end
        unrecorded: List[ItemOutcome] = []
        for media_id in media_ids:
            try:
                outcome = self.process_item(media_id, state.strategy, tables, run_id=run_id)
            except Exception as exc:
                log_error(exc, run_id=run_id, media_id=media_id)
                outcome = ItemOutcome.FAILED
            report.outcomes[outcome] += 1
            try:
                self.state_store.record_result(run_id, success=not outcome.is_error)
            except StateConflictError as exc:
                log_warning("Counter update deferred", run_id=run_id, media_id=media_id, error=str(exc))
                unrecorded.append(outcome)

        if unrecorded:
            self._record_deferred(run_id, chunk_index, unrecorded)

        log_migration(
            f"Finished chunk #{chunk_index}",
            run_id=run_id,
            processed=report.processed,
            errors=report.errors,
        )
        return report

    def _record_deferred(self, run_id: str, chunk_index: int, outcomes: List[ItemOutcome]) -> None:
        errors = sum(1 for outcome in outcomes if outcome.is_error)
        try:
            self.state_store.record_results(run_id, processed=len(outcomes), errors=errors)
        except StateConflictError as exc:
            log_error(exc, run_id=run_id, chunk=chunk_index, uncounted=len(outcomes), uncounted_errors=errors)
            return
        log_migration("Recorded deferred results", run_id=run_id, chunk=chunk_index, count=len(outcomes))

    def rewrite_tables(self, selected_tables: Sequence[str]) -> List[str]:
        """Core content tables first, then the user's selection, without duplicates."""
        return list(dict.fromkeys([*self.settings.core_tables, *selected_tables]))

    def process_item(
        self,
        media_id: str,
        strategy: RewriteStrategy,
        tables: Sequence[str],
        run_id: Optional[str] = None,
    ) -> ItemOutcome:
        """Upload one media item and rewrite references to it."""
        try:
            item, files = self._load_item(media_id)
        except (MediaNotFoundError, MediaMetadataError) as exc:
            log_warning("Invalid media item", run_id=run_id, media_id=media_id, error=str(exc))
            return ItemOutcome.INVALID_METADATA

        try:
            uploaded = self._upload_files(item, files)
        except (ConfigIncompleteError, UploadFailedError, MediaNotFoundError, OSError) as exc:
            log_error(exc, run_id=run_id, media_id=media_id)
            return ItemOutcome.UPLOAD_FAILED

        try:
            self._mark_offloaded(item.id, uploaded)
        except SQLAlchemyError as exc:
            log_error(exc, run_id=run_id, media_id=media_id)

        try:
            pairs = self._rewrite_pairs(files)
        except ConfigIncompleteError as exc:
            log_warning("Cannot build remote URLs, references left unchanged", run_id=run_id, error=str(exc))
            return ItemOutcome.REWRITE_SKIPPED
        if not pairs:
            return ItemOutcome.REWRITE_SKIPPED

        for old, new in pairs:
            self.rewriter.rewrite_tables(tables, old, new, strategy)
        return ItemOutcome.REWRITTEN

    def offload_item(self, media_id: str) -> ItemOutcome:
        """Offload a single item outside of a migration run; counters are untouched."""
        outcome = self.process_item(
            media_id,
            self.settings.default_rewrite_strategy,
            self.rewrite_tables([]),
        )
        log_info("Offloaded media item", media_id=media_id, outcome=outcome.value)
        return outcome

    def _load_item(self, media_id: str) -> Tuple[MediaItem, List[MediaFile]]:
        try:
            key = uuid.UUID(str(media_id))
        except ValueError as exc:
            raise MediaNotFoundError(f"Invalid media id {media_id}") from exc
        with Session(self.engine) as session:
            item = session.get(MediaItem, key)
            if item is None:
                raise MediaNotFoundError(f"Media item {media_id} not found")
            session.expunge(item)
        return item, media_files_from_metadata(item.media_metadata)

    def _upload_files(self, item: MediaItem, files: List[MediaFile]) -> Dict[Optional[str], str]:
        """Upload every file of ``item``; returns remote URLs keyed by size name (None = original)."""
        uploaded: Dict[Optional[str], str] = {}
        for media_file in files:
            path = self.media_root / media_file.relative_path
            if not path.is_file():
                raise MediaNotFoundError(f"Local file missing: {media_file.relative_path}")
            fallback = media_file.content_type or (item.mime_type if media_file.size_name is None else None)
            content_type = detect_mime_type(path, fallback)
            with open(path, "rb") as fh:
                uploaded[media_file.size_name] = self.blob_store.put(
                    media_file.relative_path, fh, content_type
                )
        return uploaded

    def _mark_offloaded(self, media_id: uuid.UUID, uploaded: Dict[Optional[str], str]) -> None:
        with Session(self.engine) as session:
            item = session.get(MediaItem, media_id)
            if item is None:
                return
            metadata = dict(item.media_metadata or {})
            metadata["remote"] = {
                "bucket": self.settings.spaces_bucket,
                "url": uploaded.get(None),
                "sizes": {name: url for name, url in uploaded.items() if name is not None},
            }
            # Reassign so the JSON column is flagged as modified
            item.media_metadata = metadata
            item.remote_url = uploaded.get(None)
            item.offloaded_at = utc_now()
            item.updated_at = utc_now()
            session.add(item)
            session.commit()

    def _rewrite_pairs(self, files: List[MediaFile]) -> List[Tuple[str, str]]:
        pairs = self.urls.rewrite_pairs([media_file.relative_path for media_file in files])
        # Longest URL first so one file's URL never clobbers a longer URL it prefixes
        return sorted(pairs, key=lambda pair: len(pair[0]), reverse=True)
