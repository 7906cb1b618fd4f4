import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from db import init_db, get_db
from core_sync.logic.concurrency import RetryPolicy
from core_sync.models import (
    CleanedCollege,
    CleanedMajor,
    CleanedAdmissionScore,
    CleanedCampusLife,
    CleanedEnrollmentPlan,
)

CURRENT_YEAR = 2025


@pytest.fixture
def engine(tmp_path):
    # File-backed so every worker thread gets its own connection
    engine = create_engine(
        f"sqlite:///{tmp_path / 'core_sync_test.db'}",
        future=True,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def no_wait_retry():
    return RetryPolicy(max_retries=2, base_delay=0, max_delay=0)


class Seeder:
    """Writes cleaned-layer rows for a test."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _add(self, obj):
        with get_db(self.session_factory) as db:
            db.add(obj)
            db.flush()
            # Read while attached; the instance is expired once get_db commits
            obj_id = obj.id
        return obj_id

    def college(self, college_id, name=None, updated_at=None, **fields):
        return self._add(CleanedCollege(
            id=college_id,
            standard_name=name or f"College {college_id}",
            updated_at=updated_at or datetime(2025, 1, 1),
            **fields,
        ))

    def major(self, major_id, name=None, updated_at=None, **fields):
        return self._add(CleanedMajor(
            id=major_id,
            standard_name=name or f"Major {major_id}",
            updated_at=updated_at or datetime(2025, 1, 1),
            **fields,
        ))

    def score(self, score_id, college_id, year, min_score=None, min_rank=None,
              major_id=None, province="Zhejiang", updated_at=None, **fields):
        return self._add(CleanedAdmissionScore(
            id=score_id,
            cleaned_college_id=college_id,
            cleaned_major_id=major_id,
            year=year,
            source_province=province,
            min_score=min_score,
            min_rank=min_rank,
            updated_at=updated_at or datetime(2025, 1, 1),
            **fields,
        ))

    def campus_life(self, life_id, college_id, updated_at=None, **fields):
        return self._add(CleanedCampusLife(
            id=life_id,
            cleaned_college_id=college_id,
            updated_at=updated_at or datetime(2025, 1, 1),
            **fields,
        ))

    def enrollment_plan(self, plan_id, college_id, province, year=CURRENT_YEAR, **fields):
        return self._add(CleanedEnrollmentPlan(
            id=plan_id,
            cleaned_college_id=college_id,
            source_province=province,
            year=year,
            **fields,
        ))


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)
