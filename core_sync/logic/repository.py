"""
Store Contracts

Read access to the cleaned layer, the versioned upsert into the core layer and
the sync_logs audit trail.

Every public method opens its own short session so it can be called from any
worker thread. SQLAlchemy errors are translated into the sync error taxonomy:
connection/lock problems become TransientStoreError (retried by the syncer),
anything else StoreError.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.exc import (
    SQLAlchemyError,
    OperationalError,
    DisconnectionError,
    IntegrityError,
    TimeoutError as PoolTimeoutError,
)

from db import get_db
from core_sync.config import SYNC_SOURCE_LABEL
from core_sync.models import (
    CleanedCollege,
    CleanedMajor,
    CleanedAdmissionScore,
    CleanedCampusLife,
    CleanedEnrollmentPlan,
    CoreCollege,
    CoreAdmissionScore,
    CoreCampusLife,
    CoreMajor,
    SyncLog,
)
from .constants import EntityType, RunStatus, TERMINAL_RUN_STATUSES
from .contracts import SyncRun, UpsertResult
from .errors import (
    CoreSyncError,
    StoreError,
    TransientStoreError,
    VersionConflictError,
    RunLevelError,
)


SOURCE_MODELS = {
    EntityType.COLLEGE: CleanedCollege,
    EntityType.MAJOR: CleanedMajor,
    EntityType.ADMISSION_SCORE: CleanedAdmissionScore,
    EntityType.CAMPUS_LIFE: CleanedCampusLife,
    EntityType.ENROLLMENT_PLAN: CleanedEnrollmentPlan,
}

CORE_MODELS = {
    EntityType.COLLEGE: CoreCollege,
    EntityType.MAJOR: CoreMajor,
    EntityType.ADMISSION_SCORE: CoreAdmissionScore,
    EntityType.CAMPUS_LIFE: CoreCampusLife,
}

# Owned by the upsert itself, never taken from a built record
SYNC_METADATA_FIELDS = frozenset({
    "data_version",
    "last_synced_at",
    "sync_source",
    "created_at",
    "updated_at",
})


def utcnow() -> datetime:
    """Naive UTC wall clock, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_dict(obj) -> Dict:
    return {column.name: getattr(obj, column.name) for column in obj.__table__.columns}


@contextmanager
def store_errors(action: str):
    try:
        yield
    except CoreSyncError:
        raise
    except (OperationalError, DisconnectionError, PoolTimeoutError) as e:
        raise TransientStoreError(f"{action}: {e}") from e
    except SQLAlchemyError as e:
        raise StoreError(f"{action}: {e}") from e


# =============================================================================
# CLEANED LAYER (READ ONLY)
# =============================================================================

class SourceRepository:
    """Read-only view of the cleaned layer."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def list_ids(self, entity_type: EntityType, since: Optional[datetime] = None) -> List[str]:
        model = SOURCE_MODELS[EntityType(entity_type)]
        stmt = select(model.id)
        if since is not None:
            stmt = stmt.where(model.updated_at > since)
        stmt = stmt.order_by(model.id)

        with store_errors(f"list {entity_type} ids"):
            with get_db(self.session_factory) as db:
                return list(db.execute(stmt).scalars())

    def get(self, entity_type: EntityType, entity_id: str) -> Optional[Dict]:
        model = SOURCE_MODELS[EntityType(entity_type)]
        with store_errors(f"read {entity_type} {entity_id}"):
            with get_db(self.session_factory) as db:
                obj = db.get(model, entity_id)
                return to_dict(obj) if obj is not None else None

    def admission_points(self, college_id: str, year_from: int, year_to: int) -> List[Dict]:
        """Score rows of one college in [year_from, year_to] with a known min_score."""
        stmt = (
            select(
                CleanedAdmissionScore.year,
                CleanedAdmissionScore.min_score,
                CleanedAdmissionScore.min_rank,
            )
            .where(
                CleanedAdmissionScore.cleaned_college_id == college_id,
                CleanedAdmissionScore.year >= year_from,
                CleanedAdmissionScore.year <= year_to,
                CleanedAdmissionScore.min_score.is_not(None),
            )
            .order_by(CleanedAdmissionScore.year, CleanedAdmissionScore.id)
        )
        with store_errors(f"read admission window for college {college_id}"):
            with get_db(self.session_factory) as db:
                return [dict(row._mapping) for row in db.execute(stmt)]

    def distinct_major_count(self, college_id: str) -> int:
        stmt = select(func.count(func.distinct(CleanedAdmissionScore.cleaned_major_id))).where(
            CleanedAdmissionScore.cleaned_college_id == college_id,
            CleanedAdmissionScore.cleaned_major_id.is_not(None),
        )
        with store_errors(f"count majors for college {college_id}"):
            with get_db(self.session_factory) as db:
                return int(db.execute(stmt).scalar() or 0)

    def enrollment_province_count(self, college_id: str) -> int:
        stmt = select(func.count(func.distinct(CleanedEnrollmentPlan.source_province))).where(
            CleanedEnrollmentPlan.cleaned_college_id == college_id,
            CleanedEnrollmentPlan.source_province.is_not(None),
        )
        with store_errors(f"count enrollment provinces for college {college_id}"):
            with get_db(self.session_factory) as db:
                return int(db.execute(stmt).scalar() or 0)

    def campus_life_for_college(self, college_id: str) -> Optional[Dict]:
        """Most recently updated survey row of a college."""
        stmt = (
            select(CleanedCampusLife)
            .where(CleanedCampusLife.cleaned_college_id == college_id)
            .order_by(CleanedCampusLife.updated_at.desc(), CleanedCampusLife.id)
            .limit(1)
        )
        with store_errors(f"read campus life for college {college_id}"):
            with get_db(self.session_factory) as db:
                obj = db.execute(stmt).scalars().first()
                return to_dict(obj) if obj is not None else None

    def score_series(
        self,
        college_id: str,
        major_id: Optional[str],
        province: Optional[str],
        year_from: int,
        year_to: int,
    ) -> List[Tuple[int, float]]:
        """(year, min_score) history of one college/major/province combination."""
        stmt = select(CleanedAdmissionScore.year, CleanedAdmissionScore.min_score).where(
            CleanedAdmissionScore.cleaned_college_id == college_id,
            CleanedAdmissionScore.year >= year_from,
            CleanedAdmissionScore.year <= year_to,
            CleanedAdmissionScore.min_score.is_not(None),
        )
        if major_id is None:
            stmt = stmt.where(CleanedAdmissionScore.cleaned_major_id.is_(None))
        else:
            stmt = stmt.where(CleanedAdmissionScore.cleaned_major_id == major_id)
        if province is None:
            stmt = stmt.where(CleanedAdmissionScore.source_province.is_(None))
        else:
            stmt = stmt.where(CleanedAdmissionScore.source_province == province)
        stmt = stmt.order_by(CleanedAdmissionScore.year, CleanedAdmissionScore.id)

        with store_errors(f"read score series for college {college_id}"):
            with get_db(self.session_factory) as db:
                return [(row.year, row.min_score) for row in db.execute(stmt)]

    def major_admission_summary(self, major_id: str) -> Tuple[int, List[float]]:
        """Distinct colleges admitting into a major, and every known min_score."""
        count_stmt = select(func.count(func.distinct(CleanedAdmissionScore.cleaned_college_id))).where(
            CleanedAdmissionScore.cleaned_major_id == major_id,
            CleanedAdmissionScore.cleaned_college_id.is_not(None),
        )
        score_stmt = (
            select(CleanedAdmissionScore.min_score)
            .where(
                CleanedAdmissionScore.cleaned_major_id == major_id,
                CleanedAdmissionScore.min_score.is_not(None),
            )
            .order_by(CleanedAdmissionScore.id)
        )
        with store_errors(f"read admission summary for major {major_id}"):
            with get_db(self.session_factory) as db:
                college_count = int(db.execute(count_stmt).scalar() or 0)
                scores = list(db.execute(score_stmt).scalars())
                return college_count, scores


# =============================================================================
# CORE LAYER
# =============================================================================

class CoreRepository:
    """
    Versioned writes into the core layer.

    Conflict policy of upsert(), the single place where core rows change:
    - id never changes; created_at is set once on insert
    - every business, snapshot and statistic field of the record overwrites
      the stored value (no field-level merge)
    - data_version is 1 on insert and exactly +1 per successful update,
      applied as a compare-and-swap on the version read in the same call
    - last_synced_at / updated_at are the write time, sync_source the
      configured source label
    A lost compare-and-swap or a concurrent first insert raises
    VersionConflictError, which callers retry like any transient failure.
    """

    def __init__(self, session_factory, sync_source: str = SYNC_SOURCE_LABEL, clock=utcnow):
        self.session_factory = session_factory
        self.sync_source = sync_source
        self.clock = clock

    def get(self, entity_type: EntityType, entity_id: str) -> Optional[Dict]:
        model = CORE_MODELS[EntityType(entity_type)]
        with store_errors(f"read core {entity_type} {entity_id}"):
            with get_db(self.session_factory) as db:
                obj = db.get(model, entity_id)
                return to_dict(obj) if obj is not None else None

    def upsert(self, entity_type: EntityType, record: Dict) -> UpsertResult:
        entity_type = EntityType(entity_type)
        model = CORE_MODELS[entity_type]
        entity_id = record["id"]
        values = {
            key: value for key, value in record.items()
            if key != "id" and key not in SYNC_METADATA_FIELDS
        }
        now = self.clock()

        with store_errors(f"upsert core {entity_type.value} {entity_id}"):
            with get_db(self.session_factory) as db:
                current_version = db.execute(
                    select(model.data_version).where(model.id == entity_id)
                ).scalar_one_or_none()

                if current_version is None:
                    db.add(model(
                        id=entity_id,
                        data_version=1,
                        last_synced_at=now,
                        sync_source=self.sync_source,
                        created_at=now,
                        updated_at=now,
                        **values,
                    ))
                    try:
                        db.flush()
                    except IntegrityError as e:
                        raise VersionConflictError(entity_type.value, entity_id, None) from e
                    return UpsertResult(entity_id=entity_id, inserted=True, data_version=1)

                result = db.execute(
                    update(model)
                    .where(model.id == entity_id, model.data_version == current_version)
                    .values(
                        data_version=current_version + 1,
                        last_synced_at=now,
                        sync_source=self.sync_source,
                        updated_at=now,
                        **values,
                    )
                )
                if result.rowcount != 1:
                    raise VersionConflictError(entity_type.value, entity_id, current_version)
                return UpsertResult(entity_id=entity_id, inserted=False, data_version=current_version + 1)


# =============================================================================
# AUDIT LOG
# =============================================================================

def _log_to_run(row: SyncLog) -> SyncRun:
    return SyncRun(
        id=row.id,
        sync_type=row.sync_type,
        entity_type=row.entity_type,
        source_layer=row.source_layer,
        target_layer=row.target_layer,
        total=row.total_records,
        synced=row.synced_count,
        failed=row.failed_count,
        skipped=row.skipped_count,
        start_time=row.start_time,
        end_time=row.end_time,
        duration_ms=row.duration_ms,
        status=row.sync_status,
        error_message=row.error_message,
    )


def _run_values(run: SyncRun) -> Dict:
    return {
        "sync_type": run.sync_type,
        "entity_type": run.entity_type,
        "source_layer": run.source_layer,
        "target_layer": run.target_layer,
        "total_records": run.total,
        "synced_count": run.synced,
        "failed_count": run.failed,
        "skipped_count": run.skipped,
        "start_time": run.start_time,
        "end_time": run.end_time,
        "duration_ms": run.duration_ms,
        "sync_status": run.status,
        "error_message": run.error_message,
    }


class AuditRepository:
    """Append-only sync_logs. A run row is inserted once and finalized once."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def start(self, run: SyncRun) -> None:
        try:
            with store_errors(f"record start of run {run.id}"):
                with get_db(self.session_factory) as db:
                    db.add(SyncLog(id=run.id, **_run_values(run)))
        except StoreError as e:
            raise RunLevelError(str(e)) from e

    def finish(self, run: SyncRun) -> None:
        open_statuses = [s.value for s in RunStatus if s not in TERMINAL_RUN_STATUSES]
        try:
            with store_errors(f"finalize run {run.id}"):
                with get_db(self.session_factory) as db:
                    result = db.execute(
                        update(SyncLog)
                        .where(SyncLog.id == run.id, SyncLog.sync_status.in_(open_statuses))
                        .values(**_run_values(run))
                    )
                    if result.rowcount == 1:
                        return
                    # Run could not even be started: append its terminal row
                    if db.get(SyncLog, run.id) is None:
                        db.add(SyncLog(id=run.id, **_run_values(run)))
                        return
        except StoreError as e:
            raise RunLevelError(str(e)) from e
        raise RunLevelError(f"Run {run.id} is already finalized")

    def get_run(self, run_id: str) -> Optional[SyncRun]:
        with store_errors(f"read run {run_id}"):
            with get_db(self.session_factory) as db:
                row = db.get(SyncLog, run_id)
                return _log_to_run(row) if row is not None else None

    def list_runs(
        self,
        entity_type: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[SyncRun]:
        """Runs whose start_time falls in [start, end], newest first."""
        stmt = select(SyncLog)
        if entity_type:
            stmt = stmt.where(SyncLog.entity_type == str(EntityType(entity_type).value))
        if start is not None:
            stmt = stmt.where(SyncLog.start_time >= start)
        if end is not None:
            stmt = stmt.where(SyncLog.start_time <= end)
        stmt = stmt.order_by(SyncLog.start_time.desc(), SyncLog.id).limit(limit)

        with store_errors("list sync runs"):
            with get_db(self.session_factory) as db:
                return [_log_to_run(row) for row in db.execute(stmt).scalars()]
