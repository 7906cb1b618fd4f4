"""
Data Contracts for the Sync Engine

Defines Pydantic models exchanged between syncers, the orchestrator, the
audit log and the operational surface.
"""

import uuid
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from .constants import (
    OutcomeStatus,
    RunStatus,
    SyncType,
    RUN_TRANSITIONS,
    TERMINAL_RUN_STATUSES,
    SOURCE_LAYER,
    TARGET_LAYER,
)
from .errors import RunStateError


# =============================================================================
# PER-UNIT RESULT
# =============================================================================

class SyncOutcome(BaseModel):
    """
    Result of one EntitySyncer.sync(id) call: Synced, Skipped(reason) or
    Failed(error). Never raised, always returned.
    """
    entity_type: str
    entity_id: str
    status: OutcomeStatus

    reason: Optional[str] = None       # Skipped
    error: Optional[str] = None        # Failed
    error_type: Optional[str] = None   # Failed: exception class name

    data_version: Optional[int] = None
    inserted: bool = False
    attempts: int = 1
    missing_relations: List[str] = Field(default_factory=list)

    class Config:
        use_enum_values = True

    @classmethod
    def synced(cls, entity_type: str, entity_id: str, data_version: int, inserted: bool,
               missing_relations: Optional[List[str]] = None, attempts: int = 1) -> "SyncOutcome":
        return cls(
            entity_type=entity_type,
            entity_id=entity_id,
            status=OutcomeStatus.SYNCED,
            data_version=data_version,
            inserted=inserted,
            missing_relations=missing_relations or [],
            attempts=attempts,
        )

    @classmethod
    def skipped(cls, entity_type: str, entity_id: str, reason: str) -> "SyncOutcome":
        return cls(entity_type=entity_type, entity_id=entity_id,
                   status=OutcomeStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, entity_type: str, entity_id: str, error: BaseException,
               attempts: int = 1) -> "SyncOutcome":
        return cls(
            entity_type=entity_type,
            entity_id=entity_id,
            status=OutcomeStatus.FAILED,
            error=str(error) or error.__class__.__name__,
            error_type=error.__class__.__name__,
            attempts=attempts,
        )

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SYNCED


# =============================================================================
# RUN RESULT
# =============================================================================

class SyncStats(BaseModel):
    """Counts returned from every run. total == synced + failed + skipped."""
    total: int = 0
    synced: int = 0
    failed: int = 0
    skipped: int = 0

    run_id: Optional[str] = None
    status: Optional[RunStatus] = None

    class Config:
        use_enum_values = True

    def record(self, outcome: SyncOutcome) -> None:
        if outcome.status == OutcomeStatus.SYNCED:
            self.synced += 1
        elif outcome.status == OutcomeStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    @property
    def processed(self) -> int:
        return self.synced + self.failed + self.skipped

    def as_counts(self) -> dict:
        return {
            "total": self.total,
            "synced": self.synced,
            "failed": self.failed,
            "skipped": self.skipped,
        }


class SyncRun(BaseModel):
    """
    Audit entity for one batch execution.

    Lifecycle: pending -> running -> completed | completed_with_errors | failed.
    Terminal states are final; a new run is a new SyncRun.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    sync_type: SyncType
    entity_type: str
    source_layer: str = SOURCE_LAYER
    target_layer: str = TARGET_LAYER

    total: int = 0
    synced: int = 0
    failed: int = 0
    skipped: int = 0

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_ms: Optional[int] = None
    status: RunStatus = RunStatus.PENDING
    error_message: Optional[str] = None

    class Config:
        use_enum_values = True

    @property
    def is_terminal(self) -> bool:
        return RunStatus(self.status) in TERMINAL_RUN_STATUSES

    def transition(self, new_status: RunStatus) -> None:
        current = RunStatus(self.status)
        new_status = RunStatus(new_status)
        if new_status not in RUN_TRANSITIONS[current]:
            raise RunStateError(f"Run {self.id}: illegal transition {current.value} -> {new_status.value}")
        self.status = new_status.value

    def apply_stats(self, stats: SyncStats) -> None:
        self.total = stats.total
        self.synced = stats.synced
        self.failed = stats.failed
        self.skipped = stats.skipped


# =============================================================================
# INTERMEDIATE DATA STRUCTURES
# =============================================================================

class CollegeStats(BaseModel):
    """Admission statistics computed for one college at sync time."""
    avg_admission_score_recent_3years: Optional[int] = None
    min_rank_recent_3years: Optional[int] = None
    avg_admission_score_recent_year: Optional[int] = None
    min_rank_recent_year: Optional[int] = None
    hot_level: int = 50
    difficulty_level: str = "medium"
    major_count: int = 0
    enrollment_province_count: int = 0


class UpsertResult(BaseModel):
    entity_id: str
    inserted: bool
    data_version: int


class OrphanReference(BaseModel):
    """A core row pointing at a core record that does not exist."""
    table: str
    record_id: str
    column: str
    missing_id: str


class IntegrityReport(BaseModel):
    checked_at: datetime
    orphans: List[OrphanReference] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.orphans

    def count_by_column(self) -> dict:
        counts: dict = {}
        for orphan in self.orphans:
            key = f"{orphan.table}.{orphan.column}"
            counts[key] = counts.get(key, 0) + 1
        return counts
