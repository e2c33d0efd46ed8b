"""
Migration coordinator: scans the schema, enumerates media and schedules chunks.
"""
import uuid
from typing import Iterable, List, Optional, Sequence, Union

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from spacesync.core.config import Settings, settings as default_settings
from spacesync.core.exceptions import MediaNotFoundError
from spacesync.core.logging_config import log_migration, log_warning
from spacesync.core.time_utils import seconds_from_now, utc_now
from spacesync.models.enums import RewriteStrategy
from spacesync.models.media_item import MediaItem
from spacesync.schemas.media import MediaUrlResponse
from spacesync.schemas.migration import MigrationProgress, MigrationState, ScanResult
from spacesync.services.job_scheduler import DeferredJobScheduler
from spacesync.services.media_url_service import MediaUrlService
from spacesync.services.migration_state_store import MigrationStateStore
from spacesync.services.schema_scanner import SchemaScanner

PROCESS_CHUNK_TASK = "spacesync.tasks.migration.process_media_chunk"
OFFLOAD_MEDIA_TASK = "spacesync.tasks.migration.offload_new_media"


def split_into_chunks(ids: Sequence[str], size: int) -> List[List[str]]:
    """Split ``ids`` into consecutive chunks of at most ``size`` items."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [list(ids[start:start + size]) for start in range(0, len(ids), size)]


class MigrationService:
    """Owns MigrationState and hands chunks of media ids to the job scheduler."""

    def __init__(
        self,
        engine: Engine,
        state_store: MigrationStateStore,
        scheduler: DeferredJobScheduler,
        scanner: Optional[SchemaScanner] = None,
        settings: Optional[Settings] = None,
    ):
        self.engine = engine
        self.state_store = state_store
        self.scheduler = scheduler
        self.scanner = scanner or SchemaScanner(engine)
        self.settings = settings or default_settings

    def scan_tables(self) -> ScanResult:
        """Run a fresh scan and replace the stored ScanResult with it."""
        tables = self.scanner.scan(self.settings.scan_exclude_tables, self.settings.scan_patterns)
        result = ScanResult(tables=tables, scanned_at=utc_now())
        self.state_store.save_scan_result(result)
        log_migration("Stored scan result", tables=len(tables))
        return result

    def get_scan_result(self) -> Optional[ScanResult]:
        return self.state_store.load_scan_result()

    def list_media_ids(self) -> List[str]:
        with Session(self.engine) as session:
            ids = session.exec(
                select(MediaItem.id).order_by(MediaItem.created_at, MediaItem.id)
            ).all()
        return [str(media_id) for media_id in ids]

    def start_migration(
        self,
        selected_tables: Iterable[str] = (),
        strategy: Optional[RewriteStrategy] = None,
    ) -> int:
        """Reset the counters for a new run and schedule one job per chunk.

        Returns:
            Number of chunks scheduled.
        """
        strategy = RewriteStrategy(strategy or self.settings.default_rewrite_strategy)

        previous = self.state_store.load()
        if previous is not None and not previous.is_finished:
            log_warning(
                "Starting a new migration while the previous run is unfinished; "
                "its remaining chunks will be skipped",
                run_id=previous.run_id,
                completed=previous.completed,
                total=previous.total,
            )

        media_ids = self.list_media_ids()
        chunks = split_into_chunks(media_ids, self.settings.migration_chunk_size)
        run_id = uuid.uuid4().hex
        started_at = utc_now()

        state = MigrationState(
            run_id=run_id,
            total=len(media_ids),
            completed=0,
            errors=0,
            selected_tables=list(selected_tables),
            strategy=strategy,
            chunk_count=len(chunks),
            started_at=started_at,
        )
        self.state_store.save(state)

        stagger = self.settings.migration_chunk_stagger_seconds
        for index, chunk in enumerate(chunks, start=1):
            self.scheduler.schedule(
                PROCESS_CHUNK_TASK,
                {"chunk": chunk, "index": index, "run_id": run_id},
                not_before=seconds_from_now(index * stagger, now=started_at),
                group=self.settings.migration_queue,
            )

        log_migration(
            f"Scheduled {len(chunks)} chunk(s) for migration",
            run_id=run_id,
            total=len(media_ids),
            strategy=strategy.value,
            tables=len(state.selected_tables),
        )
        return len(chunks)

    def get_progress(self) -> MigrationProgress:
        return self.state_store.progress()

    def get_media_item(self, media_id: Union[str, uuid.UUID]) -> MediaItem:
        """
        Raises:
            MediaNotFoundError: If ``media_id`` is malformed or unknown.
        """
        try:
            key = media_id if isinstance(media_id, uuid.UUID) else uuid.UUID(str(media_id))
        except ValueError as exc:
            raise MediaNotFoundError(f"Invalid media id {media_id}") from exc
        with Session(self.engine) as session:
            item = session.get(MediaItem, key)
            if item is None:
                raise MediaNotFoundError(f"Media item {media_id} not found")
            session.expunge(item)
        return item

    def media_url(self, media_id: Union[str, uuid.UUID]) -> MediaUrlResponse:
        """Resolve the URL clients should use for a media item."""
        item = self.get_media_item(media_id)
        return MediaUrlResponse(
            id=item.id,
            url=MediaUrlService(self.settings).media_url(item),
            offloaded=item.is_offloaded,
            remote_url=item.remote_url,
        )

    def schedule_offload(self, media_id: Union[str, uuid.UUID]) -> uuid.UUID:
        """Queue a newly added media item for upload and reference rewriting.

        Migration counters are not touched.
        """
        item = self.get_media_item(media_id)
        self.scheduler.schedule(
            OFFLOAD_MEDIA_TASK,
            {"media_id": str(item.id)},
            not_before=utc_now(),
            group=self.settings.migration_queue,
        )
        log_migration("Scheduled media offload", media_id=str(item.id))
        return item.id


def build_migration_service(
    engine: Optional[Engine] = None,
    scheduler: Optional[DeferredJobScheduler] = None,
    settings: Optional[Settings] = None,
) -> MigrationService:
    """Wire a MigrationService to the process-wide engine and Celery."""
    if engine is None:
        from spacesync.core.database import engine as default_engine
        engine = default_engine
    if scheduler is None:
        from spacesync.services.job_scheduler import CeleryJobScheduler
        scheduler = CeleryJobScheduler()
    settings = settings or default_settings
    return MigrationService(
        engine,
        MigrationStateStore(engine, settings.migration_state_max_attempts, settings.migration_state_retry_delay),
        scheduler,
        settings=settings,
    )
