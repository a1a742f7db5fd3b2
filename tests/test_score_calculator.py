import pytest

from app.core.errors import InvalidThresholdsError
from app.engine.score_calculator import (
    calculate_score,
    classify_status,
    rating_for,
    weighted_overall,
)
from app.models.kpi_models import KPIStatus, Thresholds
from app.models.performance_models import RatingTier

BAND = Thresholds(minimum=10, target=20, excellent=30)


def test_target_scores_80_and_excellent_scores_100():
    assert calculate_score(20, BAND) == 80
    assert calculate_score(30, BAND) == 100
    assert calculate_score(45, BAND) == 100


def test_interpolates_inside_each_band():
    assert calculate_score(15, BAND) == pytest.approx(70)
    assert calculate_score(25, BAND) == pytest.approx(90)
    assert calculate_score(10, BAND) == pytest.approx(60)
    assert calculate_score(5, BAND) == pytest.approx(30)


def test_zero_and_negative_actuals_score_zero():
    assert calculate_score(0, BAND) == 0
    assert calculate_score(-3, BAND) == 0


def test_score_is_monotonic_and_bounded():
    actuals = [x / 2 for x in range(-4, 80)]
    scores = [calculate_score(a, BAND) for a in actuals]
    assert all(0 <= s <= 100 for s in scores)
    assert scores == sorted(scores)


def test_collapsed_bands_do_not_divide_by_zero():
    low_equal = Thresholds(minimum=10, target=10, excellent=30)
    assert calculate_score(10, low_equal) == 80
    assert calculate_score(5, low_equal) == pytest.approx(30)

    high_equal = Thresholds(minimum=10, target=20, excellent=20)
    assert calculate_score(20, high_equal) == 100
    assert calculate_score(15, high_equal) == pytest.approx(70)


def test_inverted_thresholds_raise():
    with pytest.raises(InvalidThresholdsError):
        calculate_score(5, Thresholds(minimum=30, target=20, excellent=10))


@pytest.mark.parametrize(
    "actual, status",
    [
        (35, KPIStatus.EXCELLENT),
        (30, KPIStatus.EXCELLENT),
        (20, KPIStatus.ON_TRACK),
        (15, KPIStatus.AT_RISK),
        (9.99, KPIStatus.FAILING),
    ],
)
def test_classify_status(actual, status):
    assert classify_status(actual, BAND) == status


@pytest.mark.parametrize(
    "score, tier, stars",
    [
        (100, RatingTier.EXCELLENT, 5),
        (90, RatingTier.EXCELLENT, 5),
        (89.9, RatingTier.GOOD, 4),
        (75, RatingTier.GOOD, 4),
        (60, RatingTier.AVERAGE, 3),
        (40, RatingTier.BELOW_AVERAGE, 2),
        (39.9, RatingTier.POOR, 1),
        (0, RatingTier.POOR, 1),
    ],
)
def test_rating_breakpoints(score, tier, stars):
    assert rating_for(score) == (tier, stars)


def test_weighted_overall_ignores_zero_weights():
    assert weighted_overall([(0, 0), (90, 100)]) == pytest.approx(90)
    assert weighted_overall([(80, 70), (50, 30)]) == pytest.approx(71)


def test_weighted_overall_without_weight_is_zero():
    assert weighted_overall([]) == 0
    assert weighted_overall([(70, 0), (90, 0)]) == 0
