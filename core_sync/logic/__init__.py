"""
Core Sync Logic Module

Provides the Cleaned → Core synchronization engine: statistics, per-entity
syncers, the batch orchestrator and the audit log.
"""

from .contracts import (
    SyncOutcome,
    SyncStats,
    SyncRun,
    CollegeStats,
    UpsertResult,
    IntegrityReport,
    OrphanReference,
)
from .constants import EntityType, SyncType, RunStatus, OutcomeStatus, DifficultyLevel
from .errors import (
    CoreSyncError,
    NotFoundError,
    RelationMissingError,
    StoreError,
    TransientStoreError,
    VersionConflictError,
    ValidationError,
    RunLevelError,
    RunStateError,
)
from .orchestrator import SyncOrchestrator
from .runner import build_orchestrator, full_sync
from .jobs import SyncJobStore, SyncJob

__all__ = [
    # Orchestration
    "SyncOrchestrator",
    "build_orchestrator",
    "full_sync",
    "SyncJobStore",
    "SyncJob",

    # Contracts
    "SyncOutcome",
    "SyncStats",
    "SyncRun",
    "CollegeStats",
    "UpsertResult",
    "IntegrityReport",
    "OrphanReference",

    # Enums
    "EntityType",
    "SyncType",
    "RunStatus",
    "OutcomeStatus",
    "DifficultyLevel",

    # Errors
    "CoreSyncError",
    "NotFoundError",
    "RelationMissingError",
    "StoreError",
    "TransientStoreError",
    "VersionConflictError",
    "ValidationError",
    "RunLevelError",
    "RunStateError",
]
