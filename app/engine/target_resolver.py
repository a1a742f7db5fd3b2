"""PERFORMA — Target Resolver.

Resolves which threshold band applies to an employee for a KPI on a given
day, and prorates ("paces") it to the share of the period's working days
already elapsed. Without pacing a monthly target would read as failing on
the 2nd of the month.
"""

from calendar import monthrange
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional

from pydantic import BaseModel
from sqlmodel import Session, select

from app.config import settings
from app.core.kpi_catalog import validate_thresholds
from app.core.logging import get_logger
from app.models.kpi_models import EmployeeTarget, Frequency, KPIDefinition, Thresholds

logger = get_logger("engine.target_resolver")

MIN_PACING_RATIO = 0.01


class PeriodWindow(BaseModel):
    frequency: Frequency
    start: date
    end: date
    period_key: str


class ResolvedTarget(BaseModel):
    window: PeriodWindow
    base: Thresholds
    paced: Thresholds
    pacing_ratio: float
    is_override: bool = False


class WorkingCalendar:
    """Which weekdays count as working days (Mon=0 … Sun=6)."""

    def __init__(self, working_weekdays: Optional[Iterable[int]] = None):
        weekdays = settings.working_weekdays if working_weekdays is None else working_weekdays
        self.working_weekdays = frozenset(weekdays)

    def is_working_day(self, day: date) -> bool:
        return day.weekday() in self.working_weekdays

    def working_days_between(self, start: date, end: date) -> int:
        """Working days in [start, end], both inclusive."""
        count = 0
        current = start
        while current <= end:
            if self.is_working_day(current):
                count += 1
            current += timedelta(days=1)
        return count


def period_window(frequency: Frequency | str, day: date) -> PeriodWindow:
    """The period of `frequency` that contains `day`."""
    frequency = Frequency(frequency)

    if frequency == Frequency.DAILY:
        start = end = day
        key = day.strftime("%Y-%m-%d")
    elif frequency == Frequency.WEEKLY:
        start = day - timedelta(days=day.weekday())
        end = start + timedelta(days=6)
        iso_year, iso_week, _ = day.isocalendar()
        key = f"{iso_year}-W{iso_week:02d}"
    elif frequency == Frequency.MONTHLY:
        start = day.replace(day=1)
        end = day.replace(day=monthrange(day.year, day.month)[1])
        key = day.strftime("%Y-%m")
    elif frequency == Frequency.QUARTERLY:
        quarter = (day.month - 1) // 3 + 1
        first_month = 3 * (quarter - 1) + 1
        last_month = first_month + 2
        start = date(day.year, first_month, 1)
        end = date(day.year, last_month, monthrange(day.year, last_month)[1])
        key = f"{day.year}-Q{quarter}"
    else:
        start = date(day.year, 1, 1)
        end = date(day.year, 12, 31)
        key = str(day.year)

    return PeriodWindow(frequency=frequency, start=start, end=end, period_key=key)


def pacing_ratio(
    window: PeriodWindow, day: date, calendar: Optional[WorkingCalendar] = None
) -> float:
    """Share of the period's working days elapsed through `day`, in [0.01, 1]."""
    if window.frequency == Frequency.DAILY:
        return 1.0
    calendar = calendar or WorkingCalendar()
    total = calendar.working_days_between(window.start, window.end)
    if total == 0:
        return 1.0
    elapsed = calendar.working_days_between(window.start, min(day, window.end))
    return max(MIN_PACING_RATIO, min(1.0, elapsed / total))


def find_target(
    session: Session, employee_id: str, kpi_id: int, period_key: str
) -> Optional[EmployeeTarget]:
    return session.exec(
        select(EmployeeTarget).where(
            EmployeeTarget.employee_id == employee_id,
            EmployeeTarget.kpi_id == kpi_id,
            EmployeeTarget.period_key == period_key,
        )
    ).first()


def get_or_create_target(
    session: Session, employee_id: str, kpi_id: int, window: PeriodWindow
) -> EmployeeTarget:
    """Fetch the (employee, kpi, period) row, adding an empty one if missing."""
    target = find_target(session, employee_id, kpi_id, window.period_key)
    if target is None:
        target = EmployeeTarget(
            employee_id=employee_id,
            kpi_id=kpi_id,
            period_key=window.period_key,
            period_start=window.start,
            period_end=window.end,
        )
        session.add(target)
    return target


def resolve_target(
    session: Session,
    employee_id: str,
    kpi: KPIDefinition,
    day: date,
    calendar: Optional[WorkingCalendar] = None,
) -> ResolvedTarget:
    """Effective and paced thresholds for one employee/KPI/day.

    Raises InvalidThresholdsError if the effective band is not strictly
    increasing.
    """
    window = period_window(kpi.frequency, day)
    override_row = find_target(session, employee_id, kpi.id, window.period_key)
    override = override_row.override_thresholds if override_row else None

    base = override or kpi.thresholds
    validate_thresholds(base, kpi_id=kpi.id)

    ratio = pacing_ratio(window, day, calendar)
    return ResolvedTarget(
        window=window,
        base=base,
        paced=base.scaled(ratio),
        pacing_ratio=ratio,
        is_override=override is not None,
    )


def assign_target_override(
    session: Session,
    employee_ids: List[str],
    kpi: KPIDefinition,
    day: date,
    thresholds: Optional[Thresholds] = None,
    notes: str = "",
) -> List[EmployeeTarget]:
    """Pin a threshold band for employees for the KPI period containing `day`.

    With no thresholds the KPI's current defaults are pinned.
    """
    thresholds = thresholds or kpi.thresholds
    validate_thresholds(thresholds, kpi_id=kpi.id)
    window = period_window(kpi.frequency, day)

    targets: List[EmployeeTarget] = []
    for employee_id in employee_ids:
        target = get_or_create_target(session, employee_id, kpi.id, window)
        target.override_minimum = thresholds.minimum
        target.override_target = thresholds.target
        target.override_excellent = thresholds.excellent
        if notes:
            target.notes = notes
        target.updated_at = datetime.now(timezone.utc)
        session.add(target)
        targets.append(target)
    session.commit()

    logger.info(
        f"Assigned KPI '{kpi.name}' ({window.period_key}) to {len(targets)} employee(s)",
        extra={"kpi_id": kpi.id},
    )
    return targets


def record_manual_actual(
    session: Session, employee_id: str, kpi: KPIDefinition, day: date, value: float
) -> EmployeeTarget:
    """Store a manually entered actual for the KPI period containing `day`."""
    window = period_window(kpi.frequency, day)
    target = get_or_create_target(session, employee_id, kpi.id, window)
    target.manual_actual = value
    target.updated_at = datetime.now(timezone.utc)
    session.add(target)
    session.commit()
    return target
