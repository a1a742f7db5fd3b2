"""PERFORMA — Metric Fetcher.

Pulls the "actual" value of a KPI for an employee over a measurement window.
Each data-source kind is a strategy implementing the same fetch_actual
contract; MetricFetcherRegistry dispatches on KPIDefinition.data_source_type.
"""

from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Dict, Optional

from pydantic import BaseModel
from sqlmodel import Session

from app.connectors.base import AttendanceStatus, TransactionalSource
from app.core.errors import MetricSourceError, PerformanceError
from app.core.logging import get_logger
from app.engine.target_resolver import PeriodWindow, WorkingCalendar, find_target
from app.models.kpi_models import DataSourceType, KPIDefinition, MetricType

logger = get_logger("engine.metric_fetcher")

ATTENDANCE_CREDIT = {
    AttendanceStatus.PRESENT: 1.0,
    AttendanceStatus.HALF_DAY: 0.5,
}


class MeasurementWindow(BaseModel):
    """Period-to-date range an actual is measured over."""

    start: date
    end: date
    period_key: str

    @classmethod
    def to_date(cls, window: PeriodWindow, day: date) -> "MeasurementWindow":
        return cls(start=window.start, end=min(day, window.end), period_key=window.period_key)


class MetricFetcher(ABC):
    """Strategy for one data-source kind."""

    @abstractmethod
    async def fetch_actual(
        self, employee_id: str, window: MeasurementWindow, kpi: KPIDefinition
    ) -> float:
        ...


class LeadsFetcher(MetricFetcher):
    def __init__(self, source: TransactionalSource):
        self.source = source

    async def fetch_actual(self, employee_id, window, kpi) -> float:
        return float(await self.source.count_leads(employee_id, window.start, window.end))


class SalesFetcher(MetricFetcher):
    """Closed-sale count or revenue, picked by query["measure"] or metric type."""

    def __init__(self, source: TransactionalSource):
        self.source = source

    async def fetch_actual(self, employee_id, window, kpi) -> float:
        totals = await self.source.count_and_sum_sales(employee_id, window.start, window.end)
        measure = (kpi.data_source_query or {}).get("measure")
        if measure is None:
            measure = "revenue" if kpi.metric_type == MetricType.AMOUNT else "count"
        return float(totals.revenue if measure == "revenue" else totals.count)


class AttendanceFetcher(MetricFetcher):
    """Days attended in the window; a percentage of working days for percentage KPIs."""

    def __init__(self, source: TransactionalSource, calendar: Optional[WorkingCalendar] = None):
        self.source = source
        self.calendar = calendar or WorkingCalendar()

    async def fetch_actual(self, employee_id, window, kpi) -> float:
        attended = 0.0
        current = window.start
        while current <= window.end:
            if self.calendar.is_working_day(current):
                status = await self.source.get_attendance_status(employee_id, current)
                attended += ATTENDANCE_CREDIT.get(AttendanceStatus(status), 0.0)
            current += timedelta(days=1)

        if kpi.metric_type == MetricType.PERCENTAGE:
            working = self.calendar.working_days_between(window.start, window.end)
            return attended / working * 100 if working else 0.0
        return attended


class ManualFetcher(MetricFetcher):
    """Reads the manually entered actual on the employee's target row."""

    def __init__(self, session: Session):
        self.session = session

    async def fetch_actual(self, employee_id, window, kpi) -> float:
        target = find_target(self.session, employee_id, kpi.id, window.period_key)
        if target is None or target.manual_actual is None:
            return 0.0
        return float(target.manual_actual)


class MetricFetcherRegistry:
    """Strategy table keyed by data-source kind."""

    def __init__(self, fetchers: Dict[str, MetricFetcher]):
        self.fetchers = fetchers

    @classmethod
    def default(
        cls,
        session: Session,
        source: TransactionalSource,
        calendar: Optional[WorkingCalendar] = None,
    ) -> "MetricFetcherRegistry":
        return cls(
            {
                DataSourceType.LEADS.value: LeadsFetcher(source),
                DataSourceType.SALES.value: SalesFetcher(source),
                DataSourceType.ATTENDANCE.value: AttendanceFetcher(source, calendar),
                DataSourceType.MANUAL.value: ManualFetcher(session),
            }
        )

    async def fetch_actual(
        self, employee_id: str, kpi: KPIDefinition, window: MeasurementWindow
    ) -> float:
        """Actual for a KPI; 0 when the KPI has no automated source.

        Raises MetricSourceError when the underlying source fails.
        """
        fetcher = self.fetchers.get(kpi.data_source_type)
        if fetcher is None:
            logger.warning(
                f"No metric source for '{kpi.name}' (type={kpi.data_source_type}), using 0",
                extra={"kpi_id": kpi.id, "employee_id": employee_id},
            )
            return 0.0
        try:
            return await fetcher.fetch_actual(employee_id, window, kpi)
        except PerformanceError:
            raise
        except Exception as e:
            raise MetricSourceError(
                f"{kpi.data_source_type} lookup failed for '{kpi.name}': {e}",
                source_type=kpi.data_source_type,
            ) from e
