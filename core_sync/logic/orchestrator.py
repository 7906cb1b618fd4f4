"""
Sync Orchestrator

Drives a full or incremental batch run over one entity kind:

    enumerate ids -> bounded worker pool -> EntitySyncer.sync(id)
                  -> aggregate SyncStats -> finalize the SyncRun audit row

Per-unit failures and timeouts are counted and logged, never fatal. Only a
RunLevelError (cannot enumerate ids, cannot persist the audit row) marks the
run failed.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait, FIRST_COMPLETED, Future
from datetime import datetime
from typing import Callable, Dict, List, Optional

from core_sync.config import SYNC_MAX_WORKERS, SYNC_UNIT_TIMEOUT_SECONDS
from .concurrency import KeyedLocks, RetryPolicy
from .constants import EntityType, SyncType, RunStatus, PROGRESS_LOG_INTERVAL
from .contracts import SyncOutcome, SyncRun, SyncStats
from .errors import RunLevelError
from .repository import SourceRepository, CoreRepository, AuditRepository, utcnow
from .syncers import EntitySyncer, build_syncers

logger = logging.getLogger(__name__)


class UnitTimeoutError(Exception):
    """A single sync(id) call exceeded the per-unit timeout."""


class SyncOrchestrator:
    """
    Runs batches of EntitySyncer calls on a bounded thread pool.

    At most max_workers units are in flight; each worker runs one
    sync(id) to completion before taking the next id. A unit running longer
    than unit_timeout seconds, measured from when a worker began it, is
    counted as failed and its late result is discarded. A hung worker is left
    behind and later units run on a fresh pool of max_workers threads.
    """

    def __init__(
        self,
        source: SourceRepository,
        core: CoreRepository,
        audit: AuditRepository,
        syncers: Optional[Dict[EntityType, EntitySyncer]] = None,
        max_workers: int = SYNC_MAX_WORKERS,
        unit_timeout: float = SYNC_UNIT_TIMEOUT_SECONDS,
        retry: Optional[RetryPolicy] = None,
        locks: Optional[KeyedLocks] = None,
        current_year: Optional[int] = None,
        clock=utcnow,
        poll_interval: float = 0.5,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.source = source
        self.core = core
        self.audit = audit
        self.max_workers = max_workers
        self.unit_timeout = unit_timeout
        self.clock = clock
        self.poll_interval = poll_interval
        self.syncers = syncers or build_syncers(
            source, core, locks=locks or KeyedLocks(), retry=retry, current_year=current_year
        )

    # -------------------------------------------------------------------------
    # Public entry points
    # -------------------------------------------------------------------------

    def run_full(self, entity_type: EntityType, cancel_event: Optional[threading.Event] = None) -> SyncStats:
        entity_type = EntityType(entity_type)
        return self._run(
            SyncType.FULL,
            entity_type,
            lambda: self.source.list_ids(entity_type),
            cancel_event,
        )

    def run_incremental(
        self,
        entity_type: EntityType,
        since: datetime,
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncStats:
        entity_type = EntityType(entity_type)
        return self._run(
            SyncType.INCREMENTAL,
            entity_type,
            lambda: self.source.list_ids(entity_type, since=since),
            cancel_event,
        )

    # -------------------------------------------------------------------------
    # Run lifecycle
    # -------------------------------------------------------------------------

    def _run(
        self,
        sync_type: SyncType,
        entity_type: EntityType,
        enumerate_ids: Callable[[], List[str]],
        cancel_event: Optional[threading.Event],
    ) -> SyncStats:
        syncer = self.syncers.get(entity_type)
        if syncer is None:
            raise ValueError(f"No syncer registered for entity type: {entity_type.value}")

        run = SyncRun(sync_type=sync_type, entity_type=entity_type.value, start_time=self.clock())
        stats = SyncStats(run_id=run.id)
        started = time.perf_counter()

        logger.info(f"🔄 Starting {sync_type.value} sync of {entity_type.value} (run {run.id})")

        try:
            run.transition(RunStatus.RUNNING)
            self.audit.start(run)
        except RunLevelError as e:
            logger.error(f"❌ Run {run.id} could not be recorded: {e}")
            return self._abort(run, stats, started, e)

        try:
            ids = enumerate_ids()
        except Exception as e:
            logger.error(f"❌ Run {run.id}: cannot enumerate {entity_type.value} ids: {e}")
            return self._abort(run, stats, started, RunLevelError(str(e)))

        stats.total = len(ids)
        logger.info(f"📦 {stats.total} {entity_type.value} records to sync")

        self._execute(syncer, ids, stats, cancel_event)

        status = RunStatus.COMPLETED if stats.failed == 0 else RunStatus.COMPLETED_WITH_ERRORS
        return self._finalize(run, stats, started, status)

    def _finalize(self, run: SyncRun, stats: SyncStats, started: float, status: RunStatus) -> SyncStats:
        run.apply_stats(stats)
        run.end_time = self.clock()
        run.duration_ms = int((time.perf_counter() - started) * 1000)
        run.transition(status)

        try:
            self.audit.finish(run)
        except RunLevelError as e:
            logger.error(f"❌ Run {run.id}: audit log could not be finalized: {e}")
            # Terminal in memory already; report the persistence failure as failed
            run.status = RunStatus.FAILED.value
            run.error_message = str(e)

        stats.status = run.status
        if RunStatus(run.status) == RunStatus.COMPLETED:
            logger.info(f"✅ {run.entity_type} sync complete: {stats.synced}/{stats.total} ({run.duration_ms}ms)")
        else:
            logger.warning(
                f"⚠️ {run.entity_type} sync finished with status {run.status}: "
                f"synced={stats.synced} failed={stats.failed} skipped={stats.skipped} total={stats.total}"
            )
        return stats

    def _abort(self, run: SyncRun, stats: SyncStats, started: float, error: Exception) -> SyncStats:
        run.apply_stats(stats)
        run.end_time = self.clock()
        run.duration_ms = int((time.perf_counter() - started) * 1000)
        run.error_message = str(error)
        run.transition(RunStatus.FAILED)

        try:
            self.audit.finish(run)
        except RunLevelError as e:
            logger.error(f"❌ Run {run.id}: failed status could not be persisted: {e}")

        stats.status = run.status
        return stats

    # -------------------------------------------------------------------------
    # Worker pool
    # -------------------------------------------------------------------------

    def _execute(
        self,
        syncer: EntitySyncer,
        ids: List[str],
        stats: SyncStats,
        cancel_event: Optional[threading.Event],
    ) -> None:
        entity_type = syncer.entity_type.value
        pending = iter(ids)
        dequeued = 0
        in_flight: Dict[Future, str] = {}
        # entity_id -> monotonic time the worker began the unit
        started: Dict[str, float] = {}
        cancelled = False

        def run_unit(entity_id: str) -> SyncOutcome:
            started[entity_id] = time.monotonic()
            return syncer.sync(entity_id)

        pool = self._new_pool(entity_type)
        retired: List[ThreadPoolExecutor] = []
        try:
            while True:
                cancelled = cancelled or (cancel_event is not None and cancel_event.is_set())

                while not cancelled and len(in_flight) < self.max_workers:
                    entity_id = next(pending, None)
                    if entity_id is None:
                        break
                    dequeued += 1
                    in_flight[pool.submit(run_unit, entity_id)] = entity_id

                if not in_flight:
                    break

                timeout = self._wait_timeout([started.get(i) for i in in_flight.values()])
                done, _ = wait(list(in_flight), timeout=timeout, return_when=FIRST_COMPLETED)

                for future in done:
                    entity_id = in_flight.pop(future)
                    self._record(stats, entity_type, entity_id, self._outcome(future, entity_type, entity_id))

                now = time.monotonic()
                abandoned = False
                for future, entity_id in list(in_flight.items()):
                    began = started.get(entity_id)
                    if began is None or now - began < self.unit_timeout:
                        continue
                    in_flight.pop(future)
                    # The worker thread cannot be interrupted: if it completes later its
                    # upsert still lands, but this run has already counted the unit failed.
                    if not future.cancel():
                        abandoned = True
                    error = UnitTimeoutError(f"sync exceeded {self.unit_timeout}s")
                    self._record(stats, entity_type, entity_id,
                                 SyncOutcome.failed(entity_type, entity_id, error))

                if abandoned:
                    # Hung workers keep their threads; later units get a fresh pool
                    retired.append(pool)
                    pool = self._new_pool(entity_type)
                    for future in list(in_flight):
                        if not future.running() and not future.done():
                            # Queued behind a hung worker: resubmit on the fresh pool
                            if future.cancel():
                                entity_id = in_flight.pop(future)
                                in_flight[pool.submit(run_unit, entity_id)] = entity_id
        finally:
            for old in retired + [pool]:
                old.shutdown(wait=False, cancel_futures=True)

        if cancelled:
            not_attempted = len(ids) - dequeued
            stats.skipped += not_attempted
            logger.warning(f"🛑 {entity_type} sync cancelled: {not_attempted} records not attempted")

    def _new_pool(self, entity_type: str) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix=f"sync-{entity_type}")

    def _wait_timeout(self, start_times: List[Optional[float]]) -> float:
        running = [t for t in start_times if t is not None]
        if not running:
            return self.poll_interval
        remaining = self.unit_timeout - (time.monotonic() - min(running))
        return max(0.0, min(self.poll_interval, remaining))

    @staticmethod
    def _outcome(future: Future, entity_type: str, entity_id: str) -> SyncOutcome:
        try:
            return future.result()
        except Exception as e:
            logger.exception(f"❌ Unexpected error syncing {entity_type} {entity_id}")
            return SyncOutcome.failed(entity_type, entity_id, e)

    @staticmethod
    def _record(stats: SyncStats, entity_type: str, entity_id: str, outcome: SyncOutcome) -> None:
        stats.record(outcome)
        if not outcome.ok and outcome.error is not None:
            logger.error(
                f"❌ Sync failed: entity_type={entity_type} id={entity_id} "
                f"error={outcome.error_type}: {outcome.error}"
            )
        if stats.processed % PROGRESS_LOG_INTERVAL == 0:
            logger.info(f"  Progress: {stats.processed}/{stats.total}")
