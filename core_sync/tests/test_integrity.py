"""
Tests for full refreshes and the core referential integrity check.
"""

from db import get_db
from core_sync.logic.concurrency import RetryPolicy
from core_sync.logic.constants import EntityType, RunStatus
from core_sync.logic.integrity import find_orphans
from core_sync.logic.runner import build_orchestrator, full_sync, check_integrity
from core_sync.models import CoreCollege, CoreAdmissionScore, CoreCampusLife

from conftest import CURRENT_YEAR


def seed_small_catalog(seed):
    seed.college("c1", name="Nanjing University")
    seed.college("c2", name="Southeast University")
    seed.major("m1", name="Physics")
    seed.score("s1", "c1", 2024, min_score=640, min_rank=1500, major_id="m1")
    seed.score("s2", "c1", 2025, min_score=645, min_rank=1400, major_id="m1")
    seed.score("s3", "c2", 2025, min_score=610, min_rank=6000, major_id="m1")
    seed.campus_life("l1", "c1", dorm_score=8.0)


def test_full_sync_leaves_no_orphans(seed, session_factory):
    seed_small_catalog(seed)
    orchestrator = build_orchestrator(
        session_factory, retry=RetryPolicy(max_retries=2, base_delay=0, max_delay=0),
        current_year=CURRENT_YEAR,
    )

    result = full_sync(session_factory, orchestrator=orchestrator)

    assert list(result.stats) == ["college", "major", "admission_score", "campus_life"]
    assert result.stats["college"].synced == 2
    assert result.stats["admission_score"].synced == 3
    assert all(s.status == RunStatus.COMPLETED for s in result.stats.values())
    assert result.integrity.ok
    assert result.ok


def test_orphans_are_reported(session_factory):
    with get_db(session_factory) as db:
        db.add(CoreCollege(id="c1", name="Sun Yat-sen University"))
        db.add(CoreAdmissionScore(id="s1", college_id="c1", major_id="gone-major", year=2025))
        db.add(CoreAdmissionScore(id="s2", college_id="gone-college", major_id=None, year=2025))
        db.add(CoreCampusLife(id="l1", college_id="gone-college"))

    with get_db(session_factory) as db:
        report = find_orphans(db)

    assert not report.ok
    assert report.count_by_column() == {
        "core_admission_scores.college_id": 1,
        "core_admission_scores.major_id": 1,
        "core_campus_life.college_id": 1,
    }
    missing = {(o.record_id, o.column, o.missing_id) for o in report.orphans}
    assert ("s1", "major_id", "gone-major") in missing
    assert ("s2", "college_id", "gone-college") in missing


def test_null_references_are_not_orphans(session_factory):
    with get_db(session_factory) as db:
        db.add(CoreAdmissionScore(id="s1", college_id=None, major_id=None, year=2025))

    assert check_integrity(session_factory).ok


def test_partial_refresh_reports_orphans(seed, session_factory):
    seed_small_catalog(seed)
    orchestrator = build_orchestrator(
        session_factory, retry=RetryPolicy(max_retries=0, base_delay=0, max_delay=0),
        current_year=CURRENT_YEAR,
    )

    # Scores synced before any college or major exists in the core layer
    result = full_sync(session_factory, entity_types=[EntityType.ADMISSION_SCORE], orchestrator=orchestrator)

    assert result.stats["admission_score"].synced == 3
    assert not result.integrity.ok
    assert not result.ok
