"""
Sync Runner

Wires repositories, syncers and the orchestrator together:
1. Builds a SyncOrchestrator for a session factory
2. Runs full refreshes in dependency order (college → major → admission score → campus life)
3. Checks core referential integrity afterwards

Pure wiring - NO statistics, NO SQL.
"""

import logging
import threading
from typing import Dict, Iterable, Optional

from pydantic import BaseModel

from core_sync.config import SYNC_MAX_WORKERS, SYNC_UNIT_TIMEOUT_SECONDS, SYNC_SOURCE_LABEL
from db import get_db
from .concurrency import KeyedLocks, RetryPolicy
from .constants import EntityType, RunStatus, SYNCABLE_ENTITY_TYPES
from .contracts import IntegrityReport, SyncStats
from .integrity import find_orphans
from .orchestrator import SyncOrchestrator
from .repository import SourceRepository, CoreRepository, AuditRepository
from .syncers import build_syncers

logger = logging.getLogger(__name__)


class FullSyncResult(BaseModel):
    """Per-kind stats of a full refresh plus the post-run integrity report."""
    stats: Dict[str, SyncStats]
    integrity: Optional[IntegrityReport] = None

    @property
    def ok(self) -> bool:
        statuses = {RunStatus(s.status) for s in self.stats.values()}
        return statuses <= {RunStatus.COMPLETED} and (self.integrity is None or self.integrity.ok)


def build_orchestrator(
    session_factory,
    max_workers: int = SYNC_MAX_WORKERS,
    unit_timeout: float = SYNC_UNIT_TIMEOUT_SECONDS,
    retry: Optional[RetryPolicy] = None,
    current_year: Optional[int] = None,
    skip_unchanged: bool = False,
    sync_source: str = SYNC_SOURCE_LABEL,
    **overrides,
) -> SyncOrchestrator:
    """
    Standard wiring for one session factory.

    overrides are passed straight to SyncOrchestrator (clock, poll_interval...).
    """
    source = SourceRepository(session_factory)
    core = CoreRepository(session_factory, sync_source=sync_source)
    audit = AuditRepository(session_factory)
    retry = retry or RetryPolicy()
    locks = KeyedLocks()

    syncers = build_syncers(
        source,
        core,
        locks=locks,
        retry=retry,
        current_year=current_year,
        skip_unchanged=skip_unchanged,
    )
    return SyncOrchestrator(
        source,
        core,
        audit,
        syncers=syncers,
        max_workers=max_workers,
        unit_timeout=unit_timeout,
        retry=retry,
        locks=locks,
        current_year=current_year,
        **overrides,
    )


def check_integrity(session_factory) -> IntegrityReport:
    with get_db(session_factory) as db:
        return find_orphans(db)


def full_sync(
    session_factory,
    entity_types: Iterable[EntityType] = SYNCABLE_ENTITY_TYPES,
    orchestrator: Optional[SyncOrchestrator] = None,
    cancel_event: Optional[threading.Event] = None,
    check: bool = True,
) -> FullSyncResult:
    """
    Full refresh of each entity kind, one run per kind, in the given order.

    Runs are independent: a failed run is logged and the next kind still runs.
    """
    orchestrator = orchestrator or build_orchestrator(session_factory)
    results: Dict[str, SyncStats] = {}

    for entity_type in entity_types:
        entity_type = EntityType(entity_type)
        if cancel_event is not None and cancel_event.is_set():
            logger.warning(f"🛑 Full sync cancelled before {entity_type.value}")
            break
        results[entity_type.value] = orchestrator.run_full(entity_type, cancel_event=cancel_event)

    integrity = check_integrity(session_factory) if check else None
    if integrity is not None and not integrity.ok:
        logger.warning(f"⚠️ Core layer has {len(integrity.orphans)} orphan references after sync")

    return FullSyncResult(stats=results, integrity=integrity)


# =============================================================================
# VALIDATION
# =============================================================================

def validate_runner():
    """
    Scheduled-job entry point - full refresh against the configured database.
    """
    import sys
    sys.path.insert(0, ".")
    from db import SessionLocal, init_db

    logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(message)s")
    init_db()

    print("=" * 60)
    print("FULL SYNC")
    print("=" * 60)

    result = full_sync(SessionLocal)

    for entity_type, stats in result.stats.items():
        print(f"\n{entity_type}: {stats.status}")
        print(f"   total={stats.total} synced={stats.synced} failed={stats.failed} skipped={stats.skipped}")

    if result.integrity is not None:
        print(f"\n--- INTEGRITY ---")
        if result.integrity.ok:
            print("  no orphans")
        for key, count in result.integrity.count_by_column().items():
            print(f"  ⚠️  {key}: {count}")

    print("\n" + "=" * 60)
    print("SYNC COMPLETE ✓" if result.ok else "SYNC FINISHED WITH ISSUES")
    print("=" * 60)

    return result


if __name__ == "__main__":
    result = validate_runner()
    raise SystemExit(0 if result.ok else 1)
