"""
Durable migration state backed by the ``app_options`` table.

Documents are read and written whole. Concurrent chunk workers update the
counters through ``OptionStore.update``, a compare-and-swap loop on the row's
``version`` column, so simultaneous increments are never lost.
"""
import json
import random
import time
from typing import Any, Callable, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from spacesync.core.config import settings
from spacesync.core.exceptions import StateConflictError
from spacesync.core.logging_config import log_debug, log_warning
from spacesync.core.time_utils import utc_now
from spacesync.models.option import AppOption
from spacesync.schemas.migration import MigrationProgress, MigrationState, ScanResult

MIGRATION_STATE_KEY = "spacesync_migration"
SCAN_RESULT_KEY = "spacesync_scan"


class OptionStore:
    """Versioned JSON documents keyed by name."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, key: str) -> Tuple[Optional[Any], int]:
        """Return ``(document, version)``; a missing key is ``(None, 0)``."""
        with Session(self.engine) as session:
            option = session.get(AppOption, key)
            if option is None or option.value is None:
                return None, option.version if option else 0
            return json.loads(option.value), option.version

    def put(self, key: str, document: Any) -> int:
        """Replace the whole document, returning the new version."""
        payload = json.dumps(document)
        for _ in range(2):
            with Session(self.engine) as session:
                option = session.get(AppOption, key)
                if option is None:
                    option = AppOption(key=key, value=payload, version=1)
                else:
                    option.value = payload
                    option.version += 1
                    option.updated_at = utc_now()
                session.add(option)
                try:
                    session.commit()
                except IntegrityError:
                    # Another writer created the row first; retry as an update
                    session.rollback()
                    continue
                return option.version
        raise StateConflictError(f"Could not write option {key}")

    def compare_and_swap(self, key: str, expected_version: int, document: Any) -> bool:
        """Write ``document`` only if the stored version is still ``expected_version``."""
        payload = json.dumps(document)
        stmt = (
            update(AppOption)
            .where(AppOption.key == key, AppOption.version == expected_version)
            .values(value=payload, version=expected_version + 1, updated_at=utc_now())
        )
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount == 1

    def update(
        self,
        key: str,
        mutator: Callable[[Any], Optional[Any]],
        max_attempts: int,
        retry_delay: float = 0.0,
    ) -> Optional[Any]:
        """Apply ``mutator`` atomically and return the written document.

        ``mutator`` receives the current document and returns the new one, or
        None to leave it untouched (nothing is written and None is returned).
        The key must already exist. Lost races back off for a random delay of
        up to ``retry_delay * attempt`` seconds before the next read.

        Raises:
            StateConflictError: If every attempt lost the race to another writer.
        """
        for attempt in range(1, max_attempts + 1):
            current, version = self.get(key)
            if current is None:
                return None
            updated = mutator(current)
            if updated is None:
                return None
            if self.compare_and_swap(key, version, updated):
                return updated
            log_debug("Option update conflict, retrying", key=key, attempt=attempt)
            if retry_delay and attempt < max_attempts:
                time.sleep(random.uniform(0, retry_delay * attempt))
        raise StateConflictError(f"Option {key} still conflicting after {max_attempts} attempts")


class MigrationStateStore:
    """Whole-document access to MigrationState and ScanResult."""

    def __init__(self, engine: Engine, max_attempts: Optional[int] = None, retry_delay: Optional[float] = None):
        self.options = OptionStore(engine)
        self.max_attempts = max_attempts or settings.migration_state_max_attempts
        self.retry_delay = settings.migration_state_retry_delay if retry_delay is None else retry_delay

    def load(self) -> Optional[MigrationState]:
        document, _ = self.options.get(MIGRATION_STATE_KEY)
        if document is None:
            return None
        try:
            return MigrationState.model_validate(document)
        except ValidationError as exc:
            log_warning("Stored migration state is invalid, ignoring it", error=str(exc))
            return None

    def save(self, state: MigrationState) -> None:
        self.options.put(MIGRATION_STATE_KEY, state.model_dump(mode="json"))

    def load_scan_result(self) -> Optional[ScanResult]:
        document, _ = self.options.get(SCAN_RESULT_KEY)
        if document is None:
            return None
        return ScanResult.model_validate(document)

    def save_scan_result(self, result: ScanResult) -> None:
        self.options.put(SCAN_RESULT_KEY, result.model_dump(mode="json"))

    def record_result(self, run_id: str, success: bool) -> Optional[MigrationState]:
        """Count one finished item: ``completed += 1`` and, on failure, ``errors += 1``.

        Returns the updated state, or None when ``run_id`` no longer matches the
        stored run or the run is already complete.
        """
        return self.record_results(run_id, processed=1, errors=0 if success else 1)

    def record_results(self, run_id: str, processed: int, errors: int = 0) -> Optional[MigrationState]:
        """Count several finished items in one write; ``completed`` never passes ``total``."""
        def increment(document: dict) -> Optional[dict]:
            if document.get("run_id") != run_id:
                return None
            completed = document.get("completed", 0)
            room = document.get("total", 0) - completed
            if room <= 0:
                log_warning("Counter already at total, ignoring result", run_id=run_id)
                return None
            counted = min(processed, room)
            document["completed"] = completed + counted
            document["errors"] = document.get("errors", 0) + min(errors, counted)
            return document

        if processed <= 0:
            return None
        document = self.options.update(MIGRATION_STATE_KEY, increment, self.max_attempts, self.retry_delay)
        if document is None:
            return None
        return MigrationState.model_validate(document)

    def progress(self) -> MigrationProgress:
        state = self.load()
        if state is None:
            return MigrationProgress.not_started()
        return MigrationProgress.from_state(state)
