"""
Tests for the statistics functions written to the core layer.
"""

import math
import random

import pytest

from core_sync.logic.calculations import (
    hot_level,
    difficulty_level,
    score_volatility,
    competitiveness,
    overall_life_score,
    round_half_up,
    window_average,
    window_min,
    validate_finite,
    validate_non_negative,
    compute_college_stats,
)
from core_sync.logic.constants import DifficultyLevel
from core_sync.logic.errors import ValidationError


def test_reference_examples():
    assert hot_level(1000, 50, 30) == 100
    assert hot_level(None, 0, 0) == 50
    assert difficulty_level(None, 800) == DifficultyLevel.VERY_HARD
    assert difficulty_level(620, None) == DifficultyLevel.HARD
    assert difficulty_level(None, None) == DifficultyLevel.MEDIUM
    assert overall_life_score([]) is None
    assert overall_life_score([80]) == 80.0
    assert overall_life_score([80, 90, 70, 60]) == 75.0
    assert score_volatility([(2024, 600)], 2024) is None
    assert score_volatility([(2023, 600), (2024, 610)], 2024) == 5.0


# =============================================================================
# HOT LEVEL
# =============================================================================

def test_hot_level_rank_tier_boundaries():
    assert hot_level(1000, 0, 0) == 80
    assert hot_level(1001, 0, 0) == 70
    assert hot_level(5000, 0, 0) == 70
    assert hot_level(10000, 0, 0) == 60
    assert hot_level(50000, 0, 0) == 55
    assert hot_level(50001, 0, 0) == 50


def test_hot_level_count_bonuses():
    assert hot_level(None, 30, 0) == 55
    assert hot_level(None, 50, 0) == 60
    assert hot_level(None, 0, 20) == 55
    assert hot_level(None, 0, 30) == 60
    assert hot_level(None, 29, 19) == 50


def test_hot_level_is_clamped():
    assert hot_level(1, 500, 34) == 100


def test_hot_level_unknown_rank_is_base():
    assert hot_level(None, 0, 0) == 50


# =============================================================================
# DIFFICULTY
# =============================================================================

def test_difficulty_rank_takes_priority():
    assert difficulty_level(450, 800) == DifficultyLevel.VERY_HARD
    assert difficulty_level(690, 60000) == DifficultyLevel.EASY


def test_difficulty_rank_boundaries():
    assert difficulty_level(None, 1000) == DifficultyLevel.VERY_HARD
    assert difficulty_level(None, 1001) == DifficultyLevel.HARD
    assert difficulty_level(None, 10000) == DifficultyLevel.HARD
    assert difficulty_level(None, 50000) == DifficultyLevel.MEDIUM
    assert difficulty_level(None, 50001) == DifficultyLevel.EASY


def test_difficulty_score_boundaries():
    assert difficulty_level(650, None) == DifficultyLevel.VERY_HARD
    assert difficulty_level(649.9, None) == DifficultyLevel.HARD
    assert difficulty_level(600, None) == DifficultyLevel.HARD
    assert difficulty_level(500, None) == DifficultyLevel.MEDIUM
    assert difficulty_level(499.5, None) == DifficultyLevel.EASY


def test_difficulty_unknown_is_medium():
    assert difficulty_level(None, None) == DifficultyLevel.MEDIUM


# =============================================================================
# VOLATILITY
# =============================================================================

def test_volatility_population_stdev():
    points = [(2022, 600), (2023, 610), (2024, 620)]
    assert score_volatility(points, 2025) == 8.16


def test_volatility_identical_scores_is_zero():
    assert score_volatility([(2023, 600), (2024, 600)], 2025) == 0.0


def test_volatility_needs_two_points():
    assert score_volatility([], 2025) is None
    assert score_volatility([(2024, 600)], 2025) is None


def test_volatility_ignores_points_outside_window():
    # 2021 falls before [2022, 2025]; 2026 after it
    assert score_volatility([(2021, 500), (2022, 600), (2026, 700)], 2025) is None
    assert score_volatility([(2021, 500), (2022, 600), (2025, 620)], 2025) == 10.0


# =============================================================================
# COMPETITIVENESS
# =============================================================================

def test_competitiveness_neutral_when_unknown():
    assert competitiveness(None, 10) == 50
    assert competitiveness(1000, None) == 50


def test_competitiveness_tiers():
    assert competitiveness(1000, 10) == 80
    assert competitiveness(10000, 50) == 60
    assert competitiveness(50000, 100) == 40
    assert competitiveness(50001, 101) == 25


# =============================================================================
# LIFE SCORE & WINDOW HELPERS
# =============================================================================

def test_overall_life_score_mean_of_known_subscores():
    assert overall_life_score([8.0, 7.0, 9.0, 6.0]) == 7.5
    assert overall_life_score([9.0]) == 9.0
    assert overall_life_score([]) is None


def test_decimal_ties_round_half_up():
    assert overall_life_score([7.0, 7.5]) == 7.3
    assert overall_life_score([8.0, 8.5, 8.0, 8.5]) == 8.3
    assert score_volatility([(2024, 600), (2025, 600.25)], 2025) == 0.13
    assert round_half_up(2.675, 2) == 2.68
    assert round_half_up(0.05, 1) == 0.1


def test_window_average_rounds_half_up():
    assert window_average([600, 601]) == 601
    assert window_average([600, 600, 601]) == 600
    assert window_average([]) is None


def test_window_min():
    assert window_min([3000, 1200, 5000]) == 1200
    assert window_min([]) is None


# =============================================================================
# VALIDATION
# =============================================================================

def test_validation_accepts_unknown_values():
    validate_finite("min_score", None)
    validate_non_negative("min_rank", None)
    validate_non_negative("min_rank", 0)


@pytest.mark.parametrize("value", [float("nan"), float("inf"), "600", True])
def test_validate_finite_rejects(value):
    with pytest.raises(ValidationError):
        validate_finite("min_score", value)


def test_validate_non_negative_rejects_negative():
    with pytest.raises(ValidationError):
        validate_non_negative("min_rank", -1)


# =============================================================================
# COLLEGE ROLL-UP
# =============================================================================

def test_college_stats_windows():
    points = [
        {"year": 2021, "min_score": 500, "min_rank": 900},    # before the window
        {"year": 2022, "min_score": 600, "min_rank": 5000},
        {"year": 2024, "min_score": 620, "min_rank": 3000},
        {"year": 2025, "min_score": 630, "min_rank": 2000},
    ]
    stats = compute_college_stats(points, 2025, major_count=35, province_count=0)

    assert stats.avg_admission_score_recent_3years == 617
    assert stats.min_rank_recent_3years == 2000
    assert stats.avg_admission_score_recent_year == 620
    assert stats.min_rank_recent_year == 3000
    assert stats.hot_level == 75
    assert stats.difficulty_level == DifficultyLevel.HARD.value
    assert stats.major_count == 35


def test_college_stats_without_history():
    stats = compute_college_stats([], 2025, major_count=0, province_count=0)

    assert stats.avg_admission_score_recent_3years is None
    assert stats.min_rank_recent_3years is None
    assert stats.avg_admission_score_recent_year is None
    assert stats.min_rank_recent_year is None
    assert stats.hot_level == 50
    assert stats.difficulty_level == DifficultyLevel.MEDIUM.value


def test_college_stats_difficulty_uses_unrounded_average():
    # Mean 649.5 rounds to 650 for display but stays below the very_hard threshold
    points = [
        {"year": 2024, "min_score": 649, "min_rank": None},
        {"year": 2024, "min_score": 650, "min_rank": None},
    ]
    stats = compute_college_stats(points, 2025, major_count=0, province_count=0)

    assert stats.avg_admission_score_recent_3years == 650
    assert stats.difficulty_level == DifficultyLevel.HARD.value


# =============================================================================
# DETERMINISM
# =============================================================================

def test_statistics_are_deterministic_and_bounded():
    rng = random.Random(20250601)

    for _ in range(500):
        rank = rng.choice([None, rng.randint(0, 200000)])
        plans = rng.choice([None, rng.randint(0, 500)])
        majors = rng.randint(0, 120)
        provinces = rng.randint(0, 34)
        avg = rng.choice([None, rng.uniform(300, 750)])
        points = [(rng.randint(2019, 2026), rng.uniform(300, 750)) for _ in range(rng.randint(0, 6))]

        hot = hot_level(rank, majors, provinces)
        comp = competitiveness(rank, plans)
        vol = score_volatility(points, 2025)

        assert hot == hot_level(rank, majors, provinces)
        assert comp == competitiveness(rank, plans)
        assert vol == score_volatility(list(points), 2025)
        assert difficulty_level(avg, rank) == difficulty_level(avg, rank)

        assert 0 <= hot <= 100
        assert 0 <= comp <= 100
        assert vol is None or (vol >= 0 and math.isfinite(vol))
