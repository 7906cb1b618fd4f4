"""
Sync Engine Constants

Defines all thresholds, enums and state transitions used by the Cleaned → Core
pipeline. All values are deterministic.
"""

from enum import Enum
from typing import Dict, FrozenSet, List, Tuple


# =============================================================================
# ENUMS
# =============================================================================

class EntityType(str, Enum):
    """Entity kinds handled by the pipeline."""
    COLLEGE = "college"
    ADMISSION_SCORE = "admission_score"
    CAMPUS_LIFE = "campus_life"
    MAJOR = "major"
    # Read-only relation; never synced on its own
    ENROLLMENT_PLAN = "enrollment_plan"


class SyncType(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


class OutcomeStatus(str, Enum):
    SYNCED = "synced"
    SKIPPED = "skipped"
    FAILED = "failed"


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"


class DifficultyLevel(str, Enum):
    VERY_HARD = "very_hard"
    HARD = "hard"
    MEDIUM = "medium"
    EASY = "easy"


# Entity types that have a syncer, in dependency order for a full refresh
SYNCABLE_ENTITY_TYPES: List[EntityType] = [
    EntityType.COLLEGE,
    EntityType.MAJOR,
    EntityType.ADMISSION_SCORE,
    EntityType.CAMPUS_LIFE,
]

SOURCE_LAYER = "cleaned"
TARGET_LAYER = "core"


# =============================================================================
# RUN STATE MACHINE
# =============================================================================

TERMINAL_RUN_STATUSES: FrozenSet[RunStatus] = frozenset({
    RunStatus.COMPLETED,
    RunStatus.COMPLETED_WITH_ERRORS,
    RunStatus.FAILED,
})

RUN_TRANSITIONS: Dict[RunStatus, FrozenSet[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.RUNNING, RunStatus.FAILED}),
    RunStatus.RUNNING: TERMINAL_RUN_STATUSES,
    RunStatus.COMPLETED: frozenset(),
    RunStatus.COMPLETED_WITH_ERRORS: frozenset(),
    RunStatus.FAILED: frozenset(),
}


# =============================================================================
# HOT LEVEL (0-100)
# =============================================================================

HOT_LEVEL_BASE = 50
HOT_LEVEL_MIN = 0
HOT_LEVEL_MAX = 100

# (max rank inclusive, bonus) - first matching tier wins
HOT_RANK_TIERS: List[Tuple[int, int]] = [
    (1000, 30),
    (5000, 20),
    (10000, 10),
    (50000, 5),
]

# (min count inclusive, bonus) - first matching tier wins
HOT_MAJOR_COUNT_TIERS: List[Tuple[int, int]] = [
    (50, 10),
    (30, 5),
]

HOT_PROVINCE_COUNT_TIERS: List[Tuple[int, int]] = [
    (30, 10),
    (20, 5),
]


# =============================================================================
# DIFFICULTY
# =============================================================================

# Rank takes priority over score when both are known
DIFFICULTY_RANK_TIERS: List[Tuple[int, DifficultyLevel]] = [
    (1000, DifficultyLevel.VERY_HARD),
    (10000, DifficultyLevel.HARD),
    (50000, DifficultyLevel.MEDIUM),
]

DIFFICULTY_SCORE_TIERS: List[Tuple[float, DifficultyLevel]] = [
    (650, DifficultyLevel.VERY_HARD),
    (600, DifficultyLevel.HARD),
    (500, DifficultyLevel.MEDIUM),
]

DEFAULT_DIFFICULTY = DifficultyLevel.MEDIUM


# =============================================================================
# COMPETITIVENESS (0-100)
# =============================================================================

COMPETITIVENESS_NEUTRAL = 50
COMPETITIVENESS_MAX = 100

COMPETITIVENESS_RANK_TIERS: List[Tuple[int, int]] = [
    (1000, 50),
    (10000, 40),
    (50000, 30),
]
COMPETITIVENESS_RANK_FLOOR = 20

# Fewer seats = scarcer = more competitive
COMPETITIVENESS_PLAN_TIERS: List[Tuple[int, int]] = [
    (10, 30),
    (50, 20),
    (100, 10),
]
COMPETITIVENESS_PLAN_FLOOR = 5


# =============================================================================
# WINDOWS
# =============================================================================

# Trailing window used for volatility and 3-year college averages
HISTORY_WINDOW_YEARS = 3

VOLATILITY_MIN_POINTS = 2
VOLATILITY_DECIMALS = 2
LIFE_SCORE_DECIMALS = 1

# Campus-life sub-scores that feed the overall life score
LIFE_SUBSCORE_FIELDS: List[str] = [
    "dorm_score",
    "canteen_quality_score",
    "transport_score",
    "study_environment_score",
]


# =============================================================================
# LOGGING
# =============================================================================

# Log progress every N completed units
PROGRESS_LOG_INTERVAL = 100
