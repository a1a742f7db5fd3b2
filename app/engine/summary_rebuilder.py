"""PERFORMA — Summary Rebuilder.

Re-derives an employee's PerformanceSummary from their daily records:
rolling 7/30/90-day averages, current rating, streak, and PIP eligibility.
Always a full rebuild, never an incremental patch.
"""

from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Sequence

from sqlmodel import Session, select

from app.core.logging import get_logger
from app.engine.score_calculator import rating_for
from app.models.performance_models import (
    Averages,
    DailyPerformanceRecord,
    PerformanceSummary,
    PIPDetails,
    Streak,
    StreakType,
)

logger = get_logger("engine.summary")

GOOD_SCORE_THRESHOLD = 75
PIP_ELIGIBILITY_RATING = 50
FAILING_KPI_SCORE = 60
ELIGIBILITY_WINDOW_DAYS = 30


def records_in_window(
    session: Session, employee_id: str, days: int, as_of: date
) -> List[DailyPerformanceRecord]:
    """Records of the last `days` days ending on `as_of`, newest first."""
    since = as_of - timedelta(days=days - 1)
    return list(
        session.exec(
            select(DailyPerformanceRecord)
            .where(
                DailyPerformanceRecord.employee_id == employee_id,
                DailyPerformanceRecord.day >= since,
                DailyPerformanceRecord.day <= as_of,
            )
            .order_by(DailyPerformanceRecord.day.desc())  # type: ignore
        ).all()
    )


def average_score(records: Sequence[DailyPerformanceRecord]) -> float:
    if not records:
        return 0.0
    return sum(r.overall_score for r in records) / len(records)


def calculate_streak(records: Sequence[DailyPerformanceRecord]) -> Streak:
    """Consecutive most-recent days on the same side of the good threshold."""
    if not records:
        return Streak()

    ordered = sorted(records, key=lambda r: r.day, reverse=True)
    positive = ordered[0].overall_score >= GOOD_SCORE_THRESHOLD

    days = 0
    for record in ordered:
        if (record.overall_score >= GOOD_SCORE_THRESHOLD) != positive:
            break
        days += 1

    if positive:
        return Streak(
            type=StreakType.POSITIVE, days=days, description=f"{days} days above target"
        )
    return Streak(
        type=StreakType.NEGATIVE, days=days, description=f"{days} days below target"
    )


def eligibility_reason(latest: Optional[DailyPerformanceRecord]) -> str:
    """Name the weakest failing KPI of the latest record, if any."""
    if latest is not None:
        failing = [s for s in latest.scores if s.score < FAILING_KPI_SCORE]
        if failing:
            worst = min(failing, key=lambda s: s.score)
            return f"Failing expected target for: {worst.kpi_name}"
    return "Overall low performance"


def _apply_eligibility(
    summary: PerformanceSummary,
    current_rating: float,
    latest: Optional[DailyPerformanceRecord],
) -> None:
    # While a PIP is open its details belong to the lifecycle manager.
    if summary.is_pip:
        return

    if latest is None or current_rating >= PIP_ELIGIBILITY_RATING:
        summary.pip_eligible = False
        summary.set_pip_details(None)
        return

    now = datetime.now(timezone.utc)
    existing = summary.pip_details
    if existing is None:
        start, end = now, now + timedelta(days=ELIGIBILITY_WINDOW_DAYS)
    else:
        # Keep the open window; re-runs must not push the deadline forward.
        start, end = existing.start_date, existing.end_date

    summary.pip_eligible = True
    summary.set_pip_details(
        PIPDetails(start_date=start, end_date=end, reason=eligibility_reason(latest))
    )


def update_performance_summary(
    session: Session, employee_id: str, as_of: Optional[date] = None
) -> PerformanceSummary:
    """Rebuild and upsert the summary for one employee."""
    as_of = as_of or datetime.now(timezone.utc).date()

    last_7 = records_in_window(session, employee_id, 7, as_of)
    last_30 = records_in_window(session, employee_id, 30, as_of)
    last_90 = records_in_window(session, employee_id, 90, as_of)

    averages = Averages(
        last_7_days=average_score(last_7),
        last_30_days=average_score(last_30),
        last_90_days=average_score(last_90),
    )
    current_rating = averages.last_30_days
    tier, stars = rating_for(current_rating)
    streak = calculate_streak(last_30)

    summary = session.exec(
        select(PerformanceSummary).where(PerformanceSummary.employee_id == employee_id)
    ).first()
    if summary is None:
        summary = PerformanceSummary(employee_id=employee_id)

    summary.current_rating = current_rating
    summary.rating_tier = tier.value
    summary.stars = stars
    summary.streak_type = streak.type.value
    summary.streak_days = streak.days
    summary.streak_description = streak.description
    summary.avg_last_7_days = averages.last_7_days
    summary.avg_last_30_days = averages.last_30_days
    summary.avg_last_90_days = averages.last_90_days
    _apply_eligibility(summary, current_rating, last_30[0] if last_30 else None)
    summary.last_calculated_at = datetime.now(timezone.utc)

    session.add(summary)
    session.commit()
    session.refresh(summary)

    logger.info(
        f"📊 Updated summary: {current_rating:.1f}/100 ({streak.description})",
        extra={"employee_id": employee_id},
    )
    return summary
