"""PERFORMA — Score Calculator.

Pure functions mapping an actual value and a threshold band to a score in
[0, 100], a status label, and the rating tier / star breakpoints shared by
daily records and summaries.

    actual >= excellent          -> 100
    target <= actual < excellent -> 80 .. 100
    minimum <= actual < target   -> 60 .. 80
    0 < actual < minimum         -> 0 .. 60
    actual <= 0                  -> 0
"""

from typing import Iterable, Tuple

from app.core.errors import InvalidThresholdsError
from app.models.kpi_models import KPIStatus, Thresholds
from app.models.performance_models import RatingTier

# (floor, tier, stars), checked top-down
RATING_BREAKPOINTS: Tuple[Tuple[float, RatingTier, int], ...] = (
    (90, RatingTier.EXCELLENT, 5),
    (75, RatingTier.GOOD, 4),
    (60, RatingTier.AVERAGE, 3),
    (40, RatingTier.BELOW_AVERAGE, 2),
)


def _check_order(thresholds: Thresholds) -> None:
    # Equal neighbours are a collapsed band and are scored; inversions are not.
    if thresholds.minimum > thresholds.target or thresholds.target > thresholds.excellent:
        raise InvalidThresholdsError(
            f"Inverted thresholds {thresholds.minimum} / {thresholds.target} / "
            f"{thresholds.excellent}"
        )


def calculate_score(actual: float, thresholds: Thresholds) -> float:
    """Score an actual value against a threshold band."""
    _check_order(thresholds)
    minimum, target, excellent = (
        thresholds.minimum,
        thresholds.target,
        thresholds.excellent,
    )

    if actual >= excellent:
        return 100.0
    if actual >= target:
        return 80 + 20 * (actual - target) / (excellent - target)
    if actual >= minimum:
        return 60 + 20 * (actual - minimum) / (target - minimum)
    if actual > 0:
        return 60 * actual / minimum
    return 0.0


def classify_status(actual: float, thresholds: Thresholds) -> KPIStatus:
    if actual >= thresholds.excellent:
        return KPIStatus.EXCELLENT
    if actual >= thresholds.target:
        return KPIStatus.ON_TRACK
    if actual >= thresholds.minimum:
        return KPIStatus.AT_RISK
    return KPIStatus.FAILING


def rating_for(score: float) -> Tuple[RatingTier, int]:
    """Return (tier, stars) for a 0-100 score."""
    for floor, tier, stars in RATING_BREAKPOINTS:
        if score >= floor:
            return tier, stars
    return RatingTier.POOR, 1


def rating_tier(score: float) -> RatingTier:
    return rating_for(score)[0]


def stars_for(score: float) -> int:
    return rating_for(score)[1]


def weighted_overall(scored: Iterable[Tuple[float, float]]) -> float:
    """Weighted mean of (score, weight) pairs, ignoring zero-weight entries."""
    total_weight = 0.0
    total = 0.0
    for score, weight in scored:
        if weight <= 0:
            continue
        total += score * weight
        total_weight += weight
    return total / total_weight if total_weight > 0 else 0.0
