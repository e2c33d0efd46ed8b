"""
Migration state, scan result and progress schemas.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from spacesync.core.time_utils import utc_now
from spacesync.models.enums import MigrationStatus, RewriteStrategy


class MigrationState(BaseModel):
    """
    Counters and options for one migration run.

    Persisted as a single JSON document and mutated by every chunk worker.
    """
    run_id: str
    total: int = Field(0, ge=0)
    completed: int = Field(0, ge=0)
    errors: int = Field(0, ge=0)
    selected_tables: List[str] = Field(default_factory=list)
    strategy: RewriteStrategy = RewriteStrategy.NAIVE
    chunk_count: int = Field(0, ge=0)
    started_at: datetime = Field(default_factory=utc_now)

    @field_validator("selected_tables")
    @classmethod
    def dedupe_tables(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(t for t in v if t))

    @model_validator(mode="after")
    def check_counters(self) -> "MigrationState":
        if self.completed > self.total:
            raise ValueError("completed cannot exceed total")
        if self.errors > self.completed:
            raise ValueError("errors cannot exceed completed")
        return self

    @property
    def is_finished(self) -> bool:
        return self.completed >= self.total


class ScanResult(BaseModel):
    """Tables that reference local media, with their matching row counts."""
    tables: Dict[str, int] = Field(default_factory=dict)
    scanned_at: datetime = Field(default_factory=utc_now)


class MigrationProgress(BaseModel):
    """Read-only snapshot returned by the progress query."""
    status: MigrationStatus
    total: int = 0
    completed: int = 0
    errors: int = 0
    run_id: Optional[str] = None
    strategy: Optional[RewriteStrategy] = None
    started_at: Optional[datetime] = None

    @computed_field
    @property
    def percent(self) -> float:
        if self.total == 0:
            return 100.0 if self.status == MigrationStatus.COMPLETED else 0.0
        return round(self.completed / self.total * 100, 2)

    @classmethod
    def not_started(cls) -> "MigrationProgress":
        return cls(status=MigrationStatus.NOT_STARTED)

    @classmethod
    def from_state(cls, state: MigrationState) -> "MigrationProgress":
        status = MigrationStatus.COMPLETED if state.is_finished else MigrationStatus.RUNNING
        return cls(
            status=status,
            total=state.total,
            completed=state.completed,
            errors=state.errors,
            run_id=state.run_id,
            strategy=state.strategy,
            started_at=state.started_at,
        )


class StartMigrationRequest(BaseModel):
    """Request body for starting a migration run."""
    selected_tables: List[str] = Field(
        default_factory=list,
        description="Additional tables to rewrite besides the core content tables"
    )
    strategy: Optional[RewriteStrategy] = Field(
        default=None,
        description="Rewrite strategy; defaults to DEFAULT_REWRITE_STRATEGY"
    )


class StartMigrationResponse(BaseModel):
    """Response when a migration run has been scheduled."""
    run_id: str
    job_count: int
    total: int
    status: str = "accepted"
    message: str
