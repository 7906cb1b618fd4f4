"""
Statistics Engine

Pure functions computing the derived fields written to the core layer.
No I/O, no clock reads: identical inputs always give identical outputs.
Callers validate inputs with validate_non_negative / validate_finite first;
the statistic functions themselves never raise over their input domains.
"""

import math
from decimal import Decimal, ROUND_HALF_UP
from statistics import pstdev
from typing import Iterable, List, Optional, Sequence, Tuple

from .constants import (
    HOT_LEVEL_BASE,
    HOT_LEVEL_MIN,
    HOT_LEVEL_MAX,
    HOT_RANK_TIERS,
    HOT_MAJOR_COUNT_TIERS,
    HOT_PROVINCE_COUNT_TIERS,
    DIFFICULTY_RANK_TIERS,
    DIFFICULTY_SCORE_TIERS,
    DEFAULT_DIFFICULTY,
    DifficultyLevel,
    COMPETITIVENESS_NEUTRAL,
    COMPETITIVENESS_MAX,
    COMPETITIVENESS_RANK_TIERS,
    COMPETITIVENESS_RANK_FLOOR,
    COMPETITIVENESS_PLAN_TIERS,
    COMPETITIVENESS_PLAN_FLOOR,
    HISTORY_WINDOW_YEARS,
    VOLATILITY_MIN_POINTS,
    VOLATILITY_DECIMALS,
    LIFE_SCORE_DECIMALS,
)
from .contracts import CollegeStats
from .errors import ValidationError


def round_half_up(value: float, decimals: int) -> float:
    """Decimal rounding with ties away from zero (7.25 -> 7.3), on the shortest repr of value."""
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _tier_at_most(value: float, tiers: Sequence[Tuple[float, object]], default):
    for limit, result in tiers:
        if value <= limit:
            return result
    return default


def _tier_at_least(value: float, tiers: Sequence[Tuple[float, object]], default):
    for limit, result in tiers:
        if value >= limit:
            return result
    return default


def hot_level(min_rank: Optional[int], major_count: int, province_count: int) -> int:
    """
    Popularity index in [0, 100].

    Base 50, plus the best matching rank tier (a better rank is a smaller
    number), plus major-count and enrollment-province-count bonuses.
    """
    score = HOT_LEVEL_BASE

    if min_rank is not None:
        score += _tier_at_most(min_rank, HOT_RANK_TIERS, 0)

    score += _tier_at_least(major_count, HOT_MAJOR_COUNT_TIERS, 0)
    score += _tier_at_least(province_count, HOT_PROVINCE_COUNT_TIERS, 0)

    return min(HOT_LEVEL_MAX, max(HOT_LEVEL_MIN, score))


def difficulty_level(avg_score: Optional[float], min_rank: Optional[int]) -> DifficultyLevel:
    """Rank decides when known, else the average score, else medium."""
    if min_rank is not None:
        return _tier_at_most(min_rank, DIFFICULTY_RANK_TIERS, DifficultyLevel.EASY)

    if avg_score is not None:
        return _tier_at_least(avg_score, DIFFICULTY_SCORE_TIERS, DifficultyLevel.EASY)

    return DEFAULT_DIFFICULTY


def score_volatility(points: Iterable[Tuple[int, float]], current_year: int) -> Optional[float]:
    """
    Population standard deviation of minimum scores over
    [current_year - 3, current_year], rounded to 2 decimals.

    Returns None when fewer than two points fall inside the window.
    """
    window_start = current_year - HISTORY_WINDOW_YEARS
    values = [score for year, score in points if window_start <= year <= current_year]

    if len(values) < VOLATILITY_MIN_POINTS:
        return None

    return round_half_up(pstdev(values), VOLATILITY_DECIMALS)


def competitiveness(min_rank: Optional[int], plan_count: Optional[int]) -> int:
    """Rank selectivity plus seat scarcity, neutral 50 when either is unknown."""
    if min_rank is None or plan_count is None:
        return COMPETITIVENESS_NEUTRAL

    rank_score = _tier_at_most(min_rank, COMPETITIVENESS_RANK_TIERS, COMPETITIVENESS_RANK_FLOOR)
    plan_score = _tier_at_most(plan_count, COMPETITIVENESS_PLAN_TIERS, COMPETITIVENESS_PLAN_FLOOR)

    return min(COMPETITIVENESS_MAX, rank_score + plan_score)


def overall_life_score(subscores: List[float]) -> Optional[float]:
    if not subscores:
        return None
    return round_half_up(sum(subscores) / len(subscores), LIFE_SCORE_DECIMALS)


def window_average(values: List[float]) -> Optional[int]:
    """Mean rounded half-up to an integer, None for an empty window."""
    if not values:
        return None
    return int(math.floor(sum(values) / len(values) + 0.5))


def window_min(values: List[int]) -> Optional[int]:
    if not values:
        return None
    return min(values)


# =============================================================================
# INPUT VALIDATION
# =============================================================================

def validate_finite(name: str, value: Optional[float]) -> None:
    """None is allowed (unknown); NaN and infinities are not."""
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be numeric, got {value!r}")
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite, got {value!r}")


def validate_non_negative(name: str, value: Optional[float]) -> None:
    validate_finite(name, value)
    if value is not None and value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value!r}")


# =============================================================================
# COLLEGE ROLL-UP
# =============================================================================

def compute_college_stats(
    window_points: List[dict],
    current_year: int,
    major_count: int,
    province_count: int,
) -> CollegeStats:
    """
    Admission statistics of one college.

    window_points are the college's rows with a known min_score; only those in
    [current_year - 3, current_year] feed the 3-year figures and only those of
    current_year - 1 feed the recent-year figures.
    """
    window_start = current_year - HISTORY_WINDOW_YEARS
    three_years = [p for p in window_points if window_start <= p["year"] <= current_year]
    recent_year = [p for p in three_years if p["year"] == current_year - 1]

    scores_3y = [p["min_score"] for p in three_years]
    ranks_3y = [p["min_rank"] for p in three_years if p["min_rank"] is not None]
    scores_recent = [p["min_score"] for p in recent_year]
    ranks_recent = [p["min_rank"] for p in recent_year if p["min_rank"] is not None]

    min_rank_3y = window_min(ranks_3y)
    raw_avg_3y = sum(scores_3y) / len(scores_3y) if scores_3y else None

    return CollegeStats(
        avg_admission_score_recent_3years=window_average(scores_3y),
        min_rank_recent_3years=min_rank_3y,
        avg_admission_score_recent_year=window_average(scores_recent),
        min_rank_recent_year=window_min(ranks_recent),
        hot_level=hot_level(min_rank_3y, major_count, province_count),
        difficulty_level=difficulty_level(raw_avg_3y, min_rank_3y).value,
        major_count=major_count,
        enrollment_province_count=province_count,
    )
