"""
Celery tasks for media migration.
"""
import contextlib
from typing import List, Optional

from redis import Redis

from spacesync.core.celery_app import celery_app
from spacesync.core.config import settings
from spacesync.core.database import engine
from spacesync.core.logging_config import log_error, log_info, log_warning
from spacesync.services.chunk_worker import ChunkWorker
from spacesync.services.migration_service import OFFLOAD_MEDIA_TASK, PROCESS_CHUNK_TASK
from spacesync.services.migration_state_store import MigrationStateStore


def build_chunk_worker() -> ChunkWorker:
    return ChunkWorker(
        engine,
        MigrationStateStore(engine, settings.migration_state_max_attempts, settings.migration_state_retry_delay),
        settings=settings,
    )


@contextlib.contextmanager
def media_lock(media_id: str):
    """Redis-backed lock so one item is never offloaded by two workers at once."""
    if not settings.redis_url:
        log_warning("Redis URL not configured - offloading without a lock", media_id=media_id)
        yield
        return

    redis_client = Redis.from_url(str(settings.redis_url))
    try:
        lock = redis_client.lock(f"spacesync-offload:{media_id}", timeout=settings.task_time_limit)
        if not lock.acquire(blocking=True, blocking_timeout=30):
            raise RuntimeError(f"Failed to acquire offload lock for {media_id} within timeout")
        try:
            yield
        finally:
            try:
                lock.release()
            except Exception as e:
                log_error(e, message="Failed to release lock", media_id=media_id)
    finally:
        try:
            redis_client.close()
        except Exception as e:
            log_error(e, message="Failed to close Redis client", media_id=media_id)


@celery_app.task(name=PROCESS_CHUNK_TASK, bind=True)
def process_media_chunk(self, chunk: List[str], index: int, run_id: Optional[str] = None):
    """
    Upload and rewrite one chunk of media items.

    Args:
        chunk: Media item ids (UUID strings)
        index: 1-based chunk index, used for logging only
        run_id: Migration run the chunk was scheduled for

    Returns:
        Dictionary with per-outcome counts
    """
    log_info(f"Chunk task #{index} started", run_id=run_id, task_id=self.request.id, items=len(chunk))
    try:
        report = build_chunk_worker().process_chunk(chunk, index, run_id)
    except Exception as exc:
        log_error(exc, run_id=run_id, chunk=index)
        raise
    return report.to_dict()


@celery_app.task(name=OFFLOAD_MEDIA_TASK, bind=True)
def offload_new_media(self, media_id: str):
    """Offload a single newly added media item and rewrite references to it."""
    try:
        with media_lock(media_id):
            outcome = build_chunk_worker().offload_item(media_id)
    except Exception as exc:
        log_error(exc, media_id=media_id)
        raise
    return {"media_id": media_id, "outcome": outcome.value}
