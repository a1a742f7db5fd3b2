"""PERFORMA — PIP Lifecycle Manager.

Turns sustained low daily scores into Performance Improvement Plans and
manages their lifecycle (weekly reviews, extension, close).

Trigger rules (first match wins, trailing 14-day record window):
  critical  last 7 records all < 40            → 30 days
  high      last 14 records all < 50           → 45 days
  medium    0 < 30-day average < 60            → 60 days
No trigger while the employee is already on a PIP or with < 7 records.
"""

from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from sqlmodel import Session, select

from app.connectors.base import EmployeeDirectory
from app.core.errors import PIPError, PIPNotFoundError
from app.core.events import EventType, LoggingNotifier, Notifier, PerformanceEvent
from app.core.logging import get_logger
from app.engine.escalation import DirectoryManagerResolver, ManagerResolver
from app.engine.summary_rebuilder import (
    average_score,
    records_in_window,
    update_performance_summary,
)
from app.models.performance_models import PerformanceSummary, PIPDetails
from app.models.pip_models import (
    OPEN_PIP_STATUSES,
    PIP,
    PIPCheckResult,
    PIPGoal,
    PIPOutcome,
    PIPResult,
    PIPSeverity,
    PIPStatus,
    PIPTrigger,
    WeeklyReview,
)

logger = get_logger("engine.pip")

TRAILING_WINDOW_DAYS = 14
MIN_HISTORY_RECORDS = 7
CRITICAL_SCORE = 40
HIGH_SCORE = 50
MEDIUM_AVERAGE = 60
WARNING_AVERAGE = 60

CLOSED_STATUS = {
    PIPResult.SUCCESS: PIPStatus.COMPLETED_SUCCESS,
    PIPResult.FAILURE: PIPStatus.COMPLETED_FAILURE,
    PIPResult.CANCELLED: PIPStatus.CANCELLED,
}


def _get_summary(session: Session, employee_id: str) -> Optional[PerformanceSummary]:
    return session.exec(
        select(PerformanceSummary).where(PerformanceSummary.employee_id == employee_id)
    ).first()


def _get_pip(session: Session, pip_id: int) -> PIP:
    pip = session.get(PIP, pip_id)
    if pip is None:
        raise PIPNotFoundError(pip_id)
    return pip


def find_open_pip(session: Session, employee_id: str) -> Optional[PIP]:
    return session.exec(
        select(PIP).where(
            PIP.employee_id == employee_id,
            PIP.status.in_(OPEN_PIP_STATUSES),  # type: ignore
        )
    ).first()


def _today(as_of: Optional[date]) -> date:
    return as_of or datetime.now(timezone.utc).date()


# ─────────────────────────────────────────────
# TRIGGERING
# ─────────────────────────────────────────────


def check_pip_criteria(
    session: Session, employee_id: str, as_of: Optional[date] = None
) -> Optional[PIPTrigger]:
    """Evaluate the trigger rules for one employee."""
    summary = _get_summary(session, employee_id)
    if summary is not None and summary.is_pip:
        return None
    if find_open_pip(session, employee_id) is not None:
        return None

    as_of = _today(as_of)
    recent = records_in_window(session, employee_id, TRAILING_WINDOW_DAYS, as_of)
    if len(recent) < MIN_HISTORY_RECORDS:
        return None

    last_7 = recent[:7]
    if all(r.overall_score < CRITICAL_SCORE for r in last_7):
        return PIPTrigger(
            severity=PIPSeverity.CRITICAL,
            reason=f"Performance below {CRITICAL_SCORE} for {len(last_7)} consecutive days",
            avg_score=average_score(last_7),
        )

    last_14 = recent[:14]
    if len(last_14) >= 14 and all(r.overall_score < HIGH_SCORE for r in last_14):
        return PIPTrigger(
            severity=PIPSeverity.HIGH,
            reason=f"Performance below {HIGH_SCORE} for {len(last_14)} consecutive days",
            avg_score=average_score(last_14),
        )

    avg_30 = average_score(records_in_window(session, employee_id, 30, as_of))
    if 0 < avg_30 < MEDIUM_AVERAGE:
        return PIPTrigger(
            severity=PIPSeverity.MEDIUM,
            reason=f"30-day average performance below {MEDIUM_AVERAGE} ({avg_30:.1f})",
            avg_score=avg_30,
        )
    return None


async def trigger_pip(
    session: Session,
    employee_id: str,
    trigger: PIPTrigger,
    *,
    resolver: ManagerResolver,
    notifier: Optional[Notifier] = None,
    as_of: Optional[date] = None,
) -> PIP:
    """Open an automatic PIP and flag the employee's summary."""
    notifier = notifier or LoggingNotifier()
    manager_id = await resolver.resolve(employee_id)
    if not manager_id:
        raise PIPError(f"No manager, HR or admin available to own a PIP for {employee_id}")

    start = datetime.now(timezone.utc)
    end = start + timedelta(days=trigger.duration_days)
    pip = PIP(
        employee_id=employee_id,
        status=PIPStatus.ACTIVE.value,
        trigger_reason=trigger.reason,
        severity=trigger.severity.value,
        is_automatic=True,
        start_date=start,
        end_date=end,
        duration=trigger.duration_days,
        goals=[],
        assigned_manager=manager_id,
    )
    session.add(pip)
    session.flush()

    summary = _get_summary(session, employee_id)
    if summary is None:
        summary = update_performance_summary(session, employee_id, as_of=as_of)
    summary.is_pip = True
    summary.pip_eligible = False
    summary.set_pip_details(
        PIPDetails(start_date=start, end_date=end, reason=trigger.reason, pip_id=pip.id)
    )
    session.add(summary)
    session.commit()
    session.refresh(pip)

    logger.warning(
        f"🚨 PIP triggered ({trigger.severity.value}, {trigger.duration_days} days): "
        f"{trigger.reason}; avg {trigger.avg_score:.1f}/100",
        extra={"employee_id": employee_id, "pip_id": pip.id},
    )
    notifier.emit(
        PerformanceEvent(
            type=EventType.PIP_TRIGGERED,
            employee_id=employee_id,
            payload={
                "pip_id": pip.id,
                "severity": trigger.severity.value,
                "reason": trigger.reason,
                "duration_days": trigger.duration_days,
                "assigned_manager": manager_id,
            },
        )
    )
    return pip


def _needs_warning(session: Session, employee_id: str, as_of: date) -> Optional[float]:
    """7-day average when it sits in the warning band, else None."""
    summary = _get_summary(session, employee_id)
    if summary is not None and summary.is_pip:
        return None
    avg_7 = average_score(records_in_window(session, employee_id, 7, as_of))
    if 0 < avg_7 < WARNING_AVERAGE:
        return avg_7
    return None


async def check_and_trigger_pips(
    session: Session,
    directory: EmployeeDirectory,
    *,
    resolver: Optional[ManagerResolver] = None,
    notifier: Optional[Notifier] = None,
    as_of: Optional[date] = None,
) -> PIPCheckResult:
    """Sweep all active eligible employees. One failure never aborts the sweep."""
    resolver = resolver or DirectoryManagerResolver(directory)
    notifier = notifier or LoggingNotifier()
    as_of = _today(as_of)
    result = PIPCheckResult()

    logger.info("🔍 Checking employees for PIP triggers...")
    employees = await directory.get_active_eligible_employees()

    for employee in employees:
        result.total_checked += 1
        try:
            trigger = check_pip_criteria(session, employee.id, as_of)
            if trigger is not None:
                await trigger_pip(
                    session,
                    employee.id,
                    trigger,
                    resolver=resolver,
                    notifier=notifier,
                    as_of=as_of,
                )
                result.new_pips += 1
                continue

            avg_7 = _needs_warning(session, employee.id, as_of)
            if avg_7 is not None:
                notifier.emit(
                    PerformanceEvent(
                        type=EventType.PIP_WARNING,
                        employee_id=employee.id,
                        payload={"avg_last_7_days": round(avg_7, 2)},
                    )
                )
                result.warnings_sent += 1
        except Exception as e:
            session.rollback()
            result.errors += 1
            logger.error(
                f"❌ PIP check failed: {e}",
                extra={"employee_id": employee.id},
                exc_info=True,
            )

    logger.info(
        f"✅ PIP check complete: {result.total_checked} checked, "
        f"{result.new_pips} new PIPs, {result.warnings_sent} warnings, {result.errors} errors"
    )
    return result


# ─────────────────────────────────────────────
# LIFECYCLE
# ─────────────────────────────────────────────


def add_weekly_review(session: Session, pip_id: int, review: WeeklyReview) -> PIP:
    """Append a manager review. Does not change the PIP status."""
    pip = _get_pip(session, pip_id)
    if not pip.is_open:
        raise PIPError(f"PIP {pip_id} is {pip.status}; reviews are closed")

    entry = review.model_dump(mode="json", exclude={"goals"})
    pip.weekly_reviews = [*(pip.weekly_reviews or []), entry]
    if review.goals:
        pip.goals = [g.model_dump(mode="json") for g in review.goals]
    pip.updated_at = datetime.now(timezone.utc)
    session.add(pip)
    session.commit()
    session.refresh(pip)

    logger.info(
        f"📝 Added weekly review #{review.week_number} ({review.progress.value})",
        extra={"pip_id": pip_id, "employee_id": pip.employee_id},
    )
    return pip


def close_pip(
    session: Session,
    pip_id: int,
    result: PIPResult,
    closed_by: str,
    *,
    final_notes: str = "",
    final_score: Optional[float] = None,
    hr_notes: str = "",
    notifier: Optional[Notifier] = None,
) -> PIP:
    """Close a PIP with a success, failure or cancelled outcome.

    Success and cancellation clear the summary's PIP flag; a failure keeps
    the employee flagged so no new plan is auto-triggered on top of it.
    `hr_notes`, when given, replaces the plan's HR notes.
    """
    if result not in CLOSED_STATUS:
        raise PIPError(f"'{result.value}' is not a closing outcome; use extend_pip")
    notifier = notifier or LoggingNotifier()
    pip = _get_pip(session, pip_id)
    if not pip.is_open:
        raise PIPError(f"PIP {pip_id} is already {pip.status}")

    now = datetime.now(timezone.utc)
    pip.status = CLOSED_STATUS[result].value
    pip.outcome = PIPOutcome(
        result=result,
        closed_date=now,
        closed_by=closed_by,
        final_notes=final_notes,
        final_score=final_score,
    ).model_dump(mode="json")
    if hr_notes:
        pip.hr_notes = hr_notes
    pip.updated_at = now
    session.add(pip)

    if result in (PIPResult.SUCCESS, PIPResult.CANCELLED):
        summary = _get_summary(session, pip.employee_id)
        if summary is not None:
            summary.is_pip = False
            summary.pip_eligible = False
            summary.set_pip_details(None)
            session.add(summary)

    session.commit()
    session.refresh(pip)

    logger.info(
        f"✅ PIP closed with result: {result.value}",
        extra={"pip_id": pip_id, "employee_id": pip.employee_id},
    )
    notifier.emit(
        PerformanceEvent(
            type=EventType.PIP_CLOSED,
            employee_id=pip.employee_id,
            payload={"pip_id": pip_id, "result": result.value, "closed_by": closed_by},
        )
    )
    return pip


def extend_pip(
    session: Session,
    pip_id: int,
    additional_days: int,
    extended_by: str,
    *,
    notes: str = "",
    notifier: Optional[Notifier] = None,
) -> PIP:
    """Manager-driven extension of an open PIP."""
    if additional_days <= 0:
        raise PIPError("Extension must be at least one day")
    notifier = notifier or LoggingNotifier()
    pip = _get_pip(session, pip_id)
    if not pip.is_open:
        raise PIPError(f"PIP {pip_id} is already {pip.status}")

    now = datetime.now(timezone.utc)
    pip.end_date = pip.end_date + timedelta(days=additional_days)
    pip.duration += additional_days
    pip.status = PIPStatus.EXTENDED.value
    pip.outcome = PIPOutcome(
        result=PIPResult.EXTENSION,
        closed_date=now,
        closed_by=extended_by,
        final_notes=notes,
    ).model_dump(mode="json")
    pip.updated_at = now
    session.add(pip)

    summary = _get_summary(session, pip.employee_id)
    if summary is not None and summary.pip_id == pip.id:
        summary.pip_end_date = pip.end_date
        session.add(summary)

    session.commit()
    session.refresh(pip)

    logger.info(
        f"⏳ PIP extended by {additional_days} days",
        extra={"pip_id": pip_id, "employee_id": pip.employee_id},
    )
    notifier.emit(
        PerformanceEvent(
            type=EventType.PIP_EXTENDED,
            employee_id=pip.employee_id,
            payload={
                "pip_id": pip_id,
                "additional_days": additional_days,
                "end_date": pip.end_date.isoformat(),
            },
        )
    )
    return pip


def find_overdue_pips(session: Session, as_of: Optional[datetime] = None) -> List[PIP]:
    """Open PIPs past their end date. Closing or extending them is a manager decision."""
    as_of = as_of or datetime.now(timezone.utc)
    return list(
        session.exec(
            select(PIP)
            .where(PIP.status.in_(OPEN_PIP_STATUSES), PIP.end_date < as_of)  # type: ignore
            .order_by(PIP.end_date)
        ).all()
    )


def set_goals(session: Session, pip_id: int, goals: List[PIPGoal]) -> PIP:
    pip = _get_pip(session, pip_id)
    pip.goals = [g.model_dump(mode="json") for g in goals]
    pip.updated_at = datetime.now(timezone.utc)
    session.add(pip)
    session.commit()
    session.refresh(pip)
    return pip
