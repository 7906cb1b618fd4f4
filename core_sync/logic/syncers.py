"""
Entity Syncers

One syncer per core entity kind. Each sync(id) call:
1. Reads the cleaned record (missing -> NotFoundError -> Failed)
2. Takes the per-aggregate lock
3. Fetches directly related cleaned records (missing ones are recorded, their
   snapshot fields written NULL)
4. Validates inputs and computes statistics
5. Builds the full core record in memory and upserts it in a single call

Transient store errors are retried with backoff; every unit-level error ends
up as a Failed outcome instead of escaping.
"""

import logging
from typing import Dict, List, Optional, Type

from .calculations import (
    compute_college_stats,
    score_volatility,
    competitiveness,
    difficulty_level,
    overall_life_score,
    window_average,
    validate_finite,
    validate_non_negative,
)
from .concurrency import KeyedLocks, RetryPolicy
from .constants import EntityType, HISTORY_WINDOW_YEARS, LIFE_SUBSCORE_FIELDS
from .contracts import SyncOutcome
from .errors import (
    NotFoundError,
    RelationMissingError,
    StoreError,
    TransientStoreError,
    ValidationError,
)
from .repository import SourceRepository, CoreRepository, utcnow

logger = logging.getLogger(__name__)


class EntitySyncer:
    """Base syncer: retry loop, locking, skip check and the single upsert."""

    entity_type: EntityType

    def __init__(
        self,
        source: SourceRepository,
        core: CoreRepository,
        locks: Optional[KeyedLocks] = None,
        retry: Optional[RetryPolicy] = None,
        skip_unchanged: bool = False,
        clock=utcnow,
    ):
        self.source = source
        self.core = core
        self.locks = locks or KeyedLocks()
        self.retry = retry or RetryPolicy()
        self.skip_unchanged = skip_unchanged
        self.clock = clock

    # -------------------------------------------------------------------------
    # Public contract
    # -------------------------------------------------------------------------

    def sync(self, entity_id: str) -> SyncOutcome:
        entity_type = self.entity_type.value
        attempt = 0

        while True:
            try:
                return self._sync_once(entity_id, attempts=attempt + 1)
            except TransientStoreError as e:
                if not self.retry.should_retry(attempt):
                    logger.warning(
                        f"⚠️ {entity_type} {entity_id}: giving up after {attempt + 1} attempts: {e}"
                    )
                    return SyncOutcome.failed(entity_type, entity_id, e, attempts=attempt + 1)
                logger.info(f"🔁 {entity_type} {entity_id}: transient error, retry {attempt + 1}: {e}")
                self.retry.sleep(attempt)
                attempt += 1
            except (NotFoundError, ValidationError, StoreError) as e:
                return SyncOutcome.failed(entity_type, entity_id, e, attempts=attempt + 1)

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def lock_key(self, source: Dict) -> Optional[str]:
        return f"{self.entity_type.value}:{source['id']}"

    def build_record(self, source: Dict, missing: List[RelationMissingError]) -> Dict:
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _sync_once(self, entity_id: str, attempts: int) -> SyncOutcome:
        entity_type = self.entity_type.value

        source = self.source.get(self.entity_type, entity_id)
        if source is None:
            raise NotFoundError(entity_type, entity_id)

        missing: List[RelationMissingError] = []
        with self.locks.hold(self.lock_key(source)):
            if self.skip_unchanged and self._is_unchanged(source):
                return SyncOutcome.skipped(entity_type, entity_id, "unchanged since last sync")

            record = self.build_record(source, missing)
            result = self.core.upsert(self.entity_type, record)

        for relation in missing:
            logger.info(f"🔗 {relation}")

        return SyncOutcome.synced(
            entity_type,
            entity_id,
            data_version=result.data_version,
            inserted=result.inserted,
            missing_relations=[m.relation for m in missing],
            attempts=attempts,
        )

    def _is_unchanged(self, source: Dict) -> bool:
        existing = self.core.get(self.entity_type, source["id"])
        if existing is None:
            return False
        synced_at = existing.get("last_synced_at")
        updated_at = source.get("updated_at")
        return synced_at is not None and updated_at is not None and synced_at >= updated_at

    def _related(
        self,
        source: Dict,
        relation: str,
        related_type: EntityType,
        related_id: Optional[str],
        missing: List[RelationMissingError],
    ) -> Optional[Dict]:
        """Fetch a related cleaned record; a dangling reference is recorded, not raised."""
        if related_id is None:
            return None
        related = self.source.get(related_type, related_id)
        if related is None:
            missing.append(RelationMissingError(self.entity_type.value, source["id"], relation, related_id))
        return related


# =============================================================================
# COLLEGE
# =============================================================================

class CollegeSyncer(EntitySyncer):
    """
    Copies college attributes and computes admission roll-ups over explicit
    windows: [Y-3, Y] for the 3-year figures, {Y-1} for the recent year,
    where Y is current_year (defaults to the clock's year at sync time).
    """

    entity_type = EntityType.COLLEGE

    def __init__(self, *args, current_year: Optional[int] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.current_year = current_year

    def lock_key(self, source: Dict) -> Optional[str]:
        return f"college:{source['id']}"

    def build_record(self, college: Dict, missing: List[RelationMissingError]) -> Dict:
        college_id = college["id"]
        year = self.current_year or self.clock().year

        window = self.source.admission_points(college_id, year - HISTORY_WINDOW_YEARS, year)
        for point in window:
            validate_finite("min_score", point["min_score"])
            validate_non_negative("min_rank", point["min_rank"])

        major_count = self.source.distinct_major_count(college_id)
        province_count = self.source.enrollment_province_count(college_id)
        stats = compute_college_stats(window, year, major_count, province_count)

        life = self.source.campus_life_for_college(college_id)
        if life is None:
            missing.append(RelationMissingError(self.entity_type.value, college_id, "campus_life"))
            life = {}
        subscores = {field: life.get(field) for field in LIFE_SUBSCORE_FIELDS}
        for field, value in subscores.items():
            validate_finite(field, value)

        return {
            "id": college_id,
            "name": college["standard_name"],
            "code": college.get("code"),
            "province": college.get("province"),
            "city": college.get("city"),
            "college_type": college.get("college_type"),
            "affiliation": college.get("affiliation"),
            "is_985": college.get("is_985"),
            "is_211": college.get("is_211"),
            "is_double_first_class": college.get("is_double_first_class"),
            "is_world_class": college.get("is_world_class"),
            "education_level": college.get("education_level"),
            "founded_year": college.get("founded_year"),
            "student_count": college.get("student_count"),
            "website": college.get("website"),

            **stats.model_dump(),

            "dorm_score": subscores["dorm_score"],
            "canteen_score": subscores["canteen_quality_score"],
            "transport_score": subscores["transport_score"],
            "study_environment_score": subscores["study_environment_score"],
            "overall_life_score": overall_life_score(
                [v for v in subscores.values() if v is not None]
            ),
        }


# =============================================================================
# ADMISSION SCORE
# =============================================================================

class AdmissionScoreSyncer(EntitySyncer):
    """
    Embeds college and major snapshots; volatility is computed over the same
    college/major/province series in [year-3, year].
    """

    entity_type = EntityType.ADMISSION_SCORE

    def lock_key(self, source: Dict) -> Optional[str]:
        # Serialized with the owning college aggregate
        college_id = source.get("cleaned_college_id")
        if college_id is None:
            return f"{self.entity_type.value}:{source['id']}"
        return f"college:{college_id}"

    def build_record(self, score: Dict, missing: List[RelationMissingError]) -> Dict:
        year = score.get("year")
        if not isinstance(year, int) or isinstance(year, bool):
            raise ValidationError(f"admission score {score['id']}: year must be an integer, got {year!r}")
        for field in ("min_score", "avg_score", "max_score"):
            validate_finite(field, score.get(field))
        for field in ("min_rank", "max_rank", "plan_count"):
            validate_non_negative(field, score.get(field))

        college_id = score.get("cleaned_college_id")
        major_id = score.get("cleaned_major_id")
        college = self._related(score, "college", EntityType.COLLEGE, college_id, missing) or {}
        major = self._related(score, "major", EntityType.MAJOR, major_id, missing) or {}

        points = []
        if college_id is not None:
            points = self.source.score_series(
                college_id, major_id, score.get("source_province"),
                year - HISTORY_WINDOW_YEARS, year,
            )

        return {
            "id": score["id"],
            "college_id": college_id if college else None,
            "major_id": major_id if major else None,

            "college_name": college.get("standard_name"),
            "college_code": college.get("code"),
            "college_province": college.get("province"),
            "college_city": college.get("city"),
            "college_is_985": college.get("is_985"),
            "college_is_211": college.get("is_211"),
            "college_is_double_first_class": college.get("is_double_first_class"),
            "college_type": college.get("college_type"),

            "major_name": major.get("standard_name"),
            "major_code": major.get("code"),
            "major_category": major.get("category"),
            "major_discipline": major.get("discipline"),

            "year": year,
            "source_province": score.get("source_province"),
            "subject_type": score.get("subject_type"),
            "batch": score.get("batch"),
            "min_score": score.get("min_score"),
            "min_rank": score.get("min_rank"),
            "avg_score": score.get("avg_score"),
            "max_score": score.get("max_score"),
            "max_rank": score.get("max_rank"),
            "plan_count": score.get("plan_count"),
            "major_group_code": score.get("major_group_code"),
            "major_group_name": score.get("major_group_name"),
            "subject_requirements": score.get("subject_requirements"),

            "score_volatility": score_volatility(points, year),
            "difficulty_level": difficulty_level(score.get("avg_score"), score.get("min_rank")).value,
            "competitiveness": competitiveness(score.get("min_rank"), score.get("plan_count")),
        }


# =============================================================================
# CAMPUS LIFE
# =============================================================================

CAMPUS_LIFE_COPY_FIELDS = [
    "dorm_style",
    "has_air_conditioner",
    "has_independent_bathroom",
    "dorm_score",
    "has_library",
    "has_overnight_study_room",
    "study_environment_score",
    "canteen_price_level",
    "canteen_quality_score",
    "has_subway",
    "in_urban_area",
    "transport_score",
    "campus_wifi_quality",
    "has_power_cutoff",
    "reliability",
]


class CampusLifeSyncer(EntitySyncer):
    entity_type = EntityType.CAMPUS_LIFE

    def build_record(self, survey: Dict, missing: List[RelationMissingError]) -> Dict:
        for field in LIFE_SUBSCORE_FIELDS:
            validate_finite(field, survey.get(field))
        validate_finite("reliability", survey.get("reliability"))
        validate_non_negative("answer_count", survey.get("answer_count"))

        college_id = survey.get("cleaned_college_id")
        college = self._related(survey, "college", EntityType.COLLEGE, college_id, missing) or {}
        subscores = [survey.get(field) for field in LIFE_SUBSCORE_FIELDS]

        record = {
            "id": survey["id"],
            "college_id": college_id if college else None,
            "college_name": college.get("standard_name"),
            "college_code": college.get("code"),
            "college_province": college.get("province"),
            "college_city": college.get("city"),
            "overall_score": overall_life_score([s for s in subscores if s is not None]),
            "answer_count": survey.get("answer_count") or 0,
        }
        record.update({field: survey.get(field) for field in CAMPUS_LIFE_COPY_FIELDS})
        return record


# =============================================================================
# MAJOR
# =============================================================================

class MajorSyncer(EntitySyncer):
    entity_type = EntityType.MAJOR

    def build_record(self, major: Dict, missing: List[RelationMissingError]) -> Dict:
        validate_non_negative("avg_salary", major.get("avg_salary"))
        validate_non_negative("employment_rate", major.get("employment_rate"))
        validate_non_negative("study_years", major.get("study_years"))

        college_count, scores = self.source.major_admission_summary(major["id"])
        for value in scores:
            validate_finite("min_score", value)

        return {
            "id": major["id"],
            "name": major["standard_name"],
            "code": major.get("code"),
            "discipline": major.get("discipline"),
            "category": major.get("category"),
            "sub_category": major.get("sub_category"),
            "degree_type": major.get("degree_type"),
            "study_years": major.get("study_years"),
            "description": major.get("description"),
            "avg_salary": major.get("avg_salary"),
            "employment_rate": major.get("employment_rate"),
            "college_count": college_count,
            "avg_admission_score": window_average(scores),
        }


SYNCER_CLASSES: Dict[EntityType, Type[EntitySyncer]] = {
    EntityType.COLLEGE: CollegeSyncer,
    EntityType.ADMISSION_SCORE: AdmissionScoreSyncer,
    EntityType.CAMPUS_LIFE: CampusLifeSyncer,
    EntityType.MAJOR: MajorSyncer,
}


def build_syncers(
    source: SourceRepository,
    core: CoreRepository,
    locks: Optional[KeyedLocks] = None,
    retry: Optional[RetryPolicy] = None,
    current_year: Optional[int] = None,
    skip_unchanged: bool = False,
) -> Dict[EntityType, EntitySyncer]:
    """One syncer per kind, all sharing the same lock table and retry policy."""
    locks = locks or KeyedLocks()
    retry = retry or RetryPolicy()
    syncers: Dict[EntityType, EntitySyncer] = {}
    for entity_type, cls in SYNCER_CLASSES.items():
        kwargs = {"locks": locks, "retry": retry, "skip_unchanged": skip_unchanged}
        if cls is CollegeSyncer:
            kwargs["current_year"] = current_year
        syncers[entity_type] = cls(source, core, **kwargs)
    return syncers
