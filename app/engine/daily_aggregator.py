"""PERFORMA — Daily Aggregator.

Scores every active KPI of an employee's role for one date and upserts a
single DailyPerformanceRecord:
  attendance gate → resolve targets → fetch actuals → score → weighted mean →
  upsert record → rebuild summary
Re-running for the same (employee, date) overwrites the same record.
"""

import time
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlmodel import Session, select

from app.connectors.base import AttendanceStatus, EmployeeDirectory, TransactionalSource
from app.core.errors import InvalidThresholdsError
from app.core.events import EventType, LoggingNotifier, Notifier, PerformanceEvent
from app.core.kpi_catalog import active_kpis_for_role
from app.core.logging import get_logger
from app.engine.metric_fetcher import MeasurementWindow, MetricFetcherRegistry
from app.engine.score_calculator import (
    calculate_score,
    classify_status,
    rating_for,
    weighted_overall,
)
from app.engine.summary_rebuilder import update_performance_summary
from app.engine.target_resolver import (
    WorkingCalendar,
    get_or_create_target,
    resolve_target,
)
from app.models.kpi_models import TargetSnapshot
from app.models.performance_models import DailyPerformanceRecord, DailyResult, KPIScore

logger = get_logger("engine.daily")


def date_key_for(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def _upsert_record(
    session: Session, employee_id: str, day: date, result: DailyResult
) -> DailyPerformanceRecord:
    record = session.exec(
        select(DailyPerformanceRecord).where(
            DailyPerformanceRecord.employee_id == employee_id,
            DailyPerformanceRecord.date_key == result.date_key,
        )
    ).first()
    if record is None:
        record = DailyPerformanceRecord(
            employee_id=employee_id, day=day, date_key=result.date_key
        )

    record.kpi_scores = [s.model_dump() for s in result.kpi_scores]
    record.overall_score = result.overall_score
    record.rating = result.rating.value
    record.stars = result.stars
    record.is_automated = True
    record.calculated_at = datetime.now(timezone.utc)
    session.add(record)
    return record


async def calculate_employee_performance(
    session: Session,
    employee_id: str,
    day: date,
    *,
    source: TransactionalSource,
    directory: EmployeeDirectory,
    notifier: Optional[Notifier] = None,
    fetchers: Optional[MetricFetcherRegistry] = None,
    calendar: Optional[WorkingCalendar] = None,
    as_of: Optional[date] = None,
) -> Optional[DailyResult]:
    """Calculate and persist one employee's performance for `day`.

    Returns None when the employee is skipped (unknown, inactive, absent, or
    no KPIs for the role). Source failures propagate so the caller can retry.
    """
    started = time.monotonic()
    notifier = notifier or LoggingNotifier()
    date_key = date_key_for(day)
    log_extra = {"employee_id": employee_id, "date_key": date_key}

    employee = await directory.get_employee(employee_id)
    if employee is None or not employee.active:
        logger.info("⏭️ Skipping inactive or unknown employee", extra=log_extra)
        return None

    attendance = await source.get_attendance_status(employee_id, day)
    if AttendanceStatus(attendance) == AttendanceStatus.ABSENT:
        logger.info("⏭️ Skipping absent employee", extra=log_extra)
        return None

    kpis = active_kpis_for_role(session, employee.role)
    if not kpis:
        logger.info(f"⏭️ No KPIs configured for role: {employee.role}", extra=log_extra)
        return None

    calendar = calendar or WorkingCalendar()
    fetchers = fetchers or MetricFetcherRegistry.default(session, source, calendar)
    now = datetime.now(timezone.utc)
    kpi_scores: List[KPIScore] = []

    for kpi in kpis:
        try:
            resolved = resolve_target(session, employee_id, kpi, day, calendar)
        except InvalidThresholdsError as e:
            logger.error(
                f"Excluding KPI '{kpi.name}': {e}",
                extra={**log_extra, "kpi_id": kpi.id},
            )
            continue

        window = MeasurementWindow.to_date(resolved.window, day)
        actual = await fetchers.fetch_actual(employee_id, kpi, window)
        score = calculate_score(actual, resolved.paced)
        status = classify_status(actual, resolved.paced)

        target_row = get_or_create_target(session, employee_id, kpi.id, resolved.window)
        target_row.record_snapshot(
            TargetSnapshot(actual=actual, score=score, status=status.value, calculated_at=now)
        )
        session.add(target_row)

        kpi_scores.append(
            KPIScore(
                kpi_id=kpi.id,
                kpi_name=kpi.name,
                target=resolved.paced.target,
                base_target=resolved.base.target,
                actual=actual,
                score=score,
                status=status.value,
                weight=kpi.weight,
            )
        )

    if not kpi_scores:
        session.commit()
        logger.warning("⏭️ No scorable KPIs, record not written", extra=log_extra)
        return None

    overall = weighted_overall((s.score, s.weight) for s in kpi_scores)
    tier, stars = rating_for(overall)
    result = DailyResult(
        employee_id=employee_id,
        date_key=date_key,
        overall_score=overall,
        rating=tier,
        stars=stars,
        kpi_scores=kpi_scores,
    )

    _upsert_record(session, employee_id, day, result)
    session.commit()

    logger.info(
        f"✅ Calculated performance: {overall:.1f}/100 ({stars}⭐)",
        extra={**log_extra, "duration_ms": round((time.monotonic() - started) * 1000, 1)},
    )

    update_performance_summary(session, employee_id, as_of=as_of)

    notifier.emit(
        PerformanceEvent(
            type=EventType.RECALCULATED,
            employee_id=employee_id,
            payload={
                "date_key": date_key,
                "overall_score": round(overall, 2),
                "rating": tier.value,
                "stars": stars,
            },
        )
    )
    return result
