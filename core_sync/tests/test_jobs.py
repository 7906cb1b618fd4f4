"""
Tests for the in-memory sync job store.
"""

from core_sync.logic.constants import EntityType, SyncType
from core_sync.logic.contracts import SyncStats
from core_sync.logic.jobs import SyncJobStore, JobStatus


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_store(ttl=60):
    clock = FakeClock()
    return SyncJobStore(ttl_seconds=ttl, clock=clock), clock


def test_job_lifecycle():
    store, _ = make_store()
    job = store.create(EntityType.COLLEGE, SyncType.FULL)

    assert store.get(job.job_id).status == JobStatus.QUEUED
    store.mark_running(job.job_id)
    assert store.get(job.job_id).status == JobStatus.RUNNING

    store.finish(job.job_id, SyncStats(total=3, synced=3, status="completed"))
    finished = store.get(job.job_id)
    assert finished.status == JobStatus.FINISHED
    assert finished.stats.synced == 3
    assert finished.finished_at is not None


def test_failed_job_keeps_error():
    store, _ = make_store()
    job = store.create(EntityType.MAJOR, SyncType.FULL)

    store.fail(job.job_id, "boom")

    assert store.get(job.job_id).status == JobStatus.ERROR
    assert store.get(job.job_id).error == "boom"


def test_cancel_sets_the_event():
    store, _ = make_store()
    job = store.create(EntityType.COLLEGE, SyncType.FULL)
    event = store.cancel_event(job.job_id)

    assert not event.is_set()
    assert store.cancel(job.job_id) is True
    assert event.is_set()
    assert store.get(job.job_id).cancel_requested is True


def test_cannot_cancel_finished_or_unknown_job():
    store, _ = make_store()
    job = store.create(EntityType.COLLEGE, SyncType.FULL)
    store.finish(job.job_id, SyncStats())

    assert store.cancel(job.job_id) is False
    assert store.cancel("unknown") is False


def test_finished_jobs_expire_after_ttl():
    store, clock = make_store(ttl=60)
    done = store.create(EntityType.COLLEGE, SyncType.FULL)
    running = store.create(EntityType.MAJOR, SyncType.FULL)
    store.mark_running(running.job_id)
    store.finish(done.job_id, SyncStats())

    clock.now += 59
    assert store.get(done.job_id) is not None

    clock.now += 1
    assert store.get(done.job_id) is None
    assert store.cancel_event(done.job_id) is None
    # Unfinished jobs never expire
    assert store.get(running.job_id) is not None


def test_purge_expired_counts_removed_jobs():
    store, clock = make_store(ttl=10)
    for _ in range(3):
        job = store.create(EntityType.COLLEGE, SyncType.FULL)
        store.finish(job.job_id, SyncStats())
    store.create(EntityType.COLLEGE, SyncType.FULL)

    clock.now += 10

    assert store.purge_expired() == 3
    assert len(store.list_jobs()) == 1


def test_returned_jobs_are_copies():
    store, _ = make_store()
    job = store.create(EntityType.COLLEGE, SyncType.FULL)
    job.status = JobStatus.FINISHED

    assert store.get(job.job_id).status == JobStatus.QUEUED
