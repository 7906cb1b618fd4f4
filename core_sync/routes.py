"""
Sync API Routes

Operational surface over the sync engine:
    POST /sync/jobs                  start a full or incremental run
    GET  /sync/jobs/{job_id}         job state and stats
    POST /sync/jobs/{job_id}/cancel  cooperative cancellation
    GET  /sync/runs                  audit log query
    GET  /sync/integrity             orphan report

The job store and session factory live on app.state.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request
from pydantic import BaseModel, Field

from .logic.constants import EntityType, SyncType, SYNCABLE_ENTITY_TYPES
from .logic.errors import StoreError
from .logic.jobs import SyncJobStore
from .logic.repository import AuditRepository
from .logic.runner import build_orchestrator, check_integrity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class SyncJobRequest(BaseModel):
    """Request body for starting a sync job."""
    entity_type: EntityType = Field(..., description="college, major, admission_score or campus_life")
    sync_type: SyncType = Field(default=SyncType.FULL, description="'full' or 'incremental'")
    since: Optional[datetime] = Field(
        default=None,
        description="Incremental runs only: sync source records updated after this instant",
    )


# =============================================================================
# HELPERS
# =============================================================================

def _job_store(request: Request) -> SyncJobStore:
    return request.app.state.job_store


def _session_factory(request: Request):
    return request.app.state.session_factory


def _run_job(job_store: SyncJobStore, session_factory, job_id: str, payload: SyncJobRequest) -> None:
    job_store.mark_running(job_id)
    cancel_event = job_store.cancel_event(job_id)
    try:
        orchestrator = build_orchestrator(session_factory)
        if payload.sync_type == SyncType.INCREMENTAL:
            stats = orchestrator.run_incremental(payload.entity_type, payload.since, cancel_event=cancel_event)
        else:
            stats = orchestrator.run_full(payload.entity_type, cancel_event=cancel_event)
        job_store.finish(job_id, stats)
    except Exception as e:
        logger.exception(f"❌ Sync job {job_id} crashed")
        job_store.fail(job_id, str(e))


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/jobs", status_code=202, summary="Start a sync job")
def start_job(payload: SyncJobRequest, background_tasks: BackgroundTasks, request: Request):
    """
    Queue a full or incremental sync of one entity kind.

    The run executes after the response is sent; poll GET /sync/jobs/{job_id}.
    """
    if payload.entity_type not in SYNCABLE_ENTITY_TYPES:
        raise HTTPException(status_code=400, detail=f"Entity type cannot be synced: {payload.entity_type.value}")
    if payload.sync_type == SyncType.INCREMENTAL and payload.since is None:
        raise HTTPException(status_code=400, detail="Incremental sync requires 'since'")

    job_store = _job_store(request)
    job = job_store.create(payload.entity_type, payload.sync_type, since=payload.since)
    background_tasks.add_task(_run_job, job_store, _session_factory(request), job.job_id, payload)

    logger.info(f"📥 Queued {payload.sync_type.value} sync of {payload.entity_type.value} as job {job.job_id}")
    return job


@router.get("/jobs", summary="List known sync jobs")
def list_jobs(request: Request):
    return _job_store(request).list_jobs()


@router.get("/jobs/{job_id}", summary="Sync job status")
def get_job(job_id: str, request: Request):
    job = _job_store(request).get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.post("/jobs/{job_id}/cancel", summary="Cancel a sync job")
def cancel_job(job_id: str, request: Request):
    job_store = _job_store(request)
    if job_store.get(job_id) is None:
        raise HTTPException(status_code=404, detail="Job not found")
    if not job_store.cancel(job_id):
        raise HTTPException(status_code=409, detail="Job already finished")
    return {"job_id": job_id, "cancel_requested": True}


@router.get("/runs", summary="Query the sync audit log")
def list_runs(
    request: Request,
    entity_type: Optional[EntityType] = Query(default=None),
    start: Optional[datetime] = Query(default=None, description="Runs started at or after this instant"),
    end: Optional[datetime] = Query(default=None, description="Runs started at or before this instant"),
    limit: int = Query(default=100, ge=1, le=1000),
):
    audit = AuditRepository(_session_factory(request))
    try:
        runs = audit.list_runs(entity_type=entity_type, start=start, end=end, limit=limit)
    except StoreError as e:
        logger.error(f"❌ Audit log query failed: {e}")
        raise HTTPException(status_code=503, detail="Audit log unavailable")
    return {"runs": runs, "count": len(runs)}


@router.get("/integrity", summary="Core layer orphan report")
def integrity(request: Request):
    try:
        report = check_integrity(_session_factory(request))
    except StoreError as e:
        logger.error(f"❌ Integrity check failed: {e}")
        raise HTTPException(status_code=503, detail="Integrity check unavailable")
    return {
        "ok": report.ok,
        "checked_at": report.checked_at,
        "orphan_count": len(report.orphans),
        "by_column": report.count_by_column(),
        "orphans": report.orphans,
    }
