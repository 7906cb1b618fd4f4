"""
Sync Job Store

Tracks runs started from the operational API. The store is owned by whoever
creates it (the FastAPI app keeps one on app.state); nothing here is a module
global. Finished jobs expire ttl_seconds after they finish.
"""

import threading
import time
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from core_sync.config import SYNC_JOB_TTL_SECONDS
from .constants import EntityType, SyncType
from .contracts import SyncStats
from .repository import utcnow


class JobStatus:
    QUEUED = "queued"
    RUNNING = "running"
    FINISHED = "finished"
    ERROR = "error"


class SyncJob(BaseModel):
    job_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    entity_type: EntityType
    sync_type: SyncType
    since: Optional[datetime] = None
    status: str = JobStatus.QUEUED
    cancel_requested: bool = False
    stats: Optional[SyncStats] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    class Config:
        use_enum_values = True


class SyncJobStore:
    """Thread-safe job registry with TTL-based expiry of finished jobs."""

    def __init__(self, ttl_seconds: float = SYNC_JOB_TTL_SECONDS, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._lock = threading.Lock()
        self._jobs: Dict[str, SyncJob] = {}
        self._cancel_events: Dict[str, threading.Event] = {}
        self._finished_at: Dict[str, float] = {}

    def create(self, entity_type: EntityType, sync_type: SyncType, since: Optional[datetime] = None) -> SyncJob:
        job = SyncJob(entity_type=entity_type, sync_type=sync_type, since=since)
        with self._lock:
            self._purge_locked()
            self._jobs[job.job_id] = job
            self._cancel_events[job.job_id] = threading.Event()
        return job.model_copy()

    def get(self, job_id: str) -> Optional[SyncJob]:
        with self._lock:
            self._purge_locked()
            job = self._jobs.get(job_id)
            return job.model_copy() if job is not None else None

    def list_jobs(self) -> List[SyncJob]:
        with self._lock:
            self._purge_locked()
            return [job.model_copy() for job in self._jobs.values()]

    def cancel_event(self, job_id: str) -> Optional[threading.Event]:
        with self._lock:
            return self._cancel_events.get(job_id)

    def mark_running(self, job_id: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is not None and job.status == JobStatus.QUEUED:
                job.status = JobStatus.RUNNING

    def finish(self, job_id: str, stats: SyncStats) -> None:
        self._close(job_id, JobStatus.FINISHED, stats=stats)

    def fail(self, job_id: str, error: str) -> None:
        self._close(job_id, JobStatus.ERROR, error=error)

    def cancel(self, job_id: str) -> bool:
        """Request cooperative cancellation. False if unknown or already done."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status in (JobStatus.FINISHED, JobStatus.ERROR):
                return False
            job.cancel_requested = True
            self._cancel_events[job_id].set()
            return True

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_locked()

    def _close(self, job_id: str, status: str, stats: Optional[SyncStats] = None, error: Optional[str] = None) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.status = status
            job.stats = stats
            job.error = error
            job.finished_at = utcnow()
            self._finished_at[job_id] = self.clock()

    def _purge_locked(self) -> int:
        now = self.clock()
        expired = [
            job_id for job_id, finished in self._finished_at.items()
            if now - finished >= self.ttl_seconds
        ]
        for job_id in expired:
            self._jobs.pop(job_id, None)
            self._cancel_events.pop(job_id, None)
            self._finished_at.pop(job_id, None)
        return len(expired)
