import asyncio
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from sqlmodel import Session

from app.connectors.base import (
    AttendanceStatus,
    EmployeeDirectory,
    EmployeeInfo,
    SalesTotals,
    TransactionalSource,
)
from app.core.events import EventType, Notifier, PerformanceEvent
from app.database import build_engine, init_db
from app.models.kpi_models import KPIDefinition
from app.models.performance_models import DailyPerformanceRecord, KPIScore


class CollectingNotifier(Notifier):
    """Keeps events in memory for later inspection."""

    def __init__(self) -> None:
        self.events: List[PerformanceEvent] = []

    def emit(self, event: PerformanceEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> List[PerformanceEvent]:
        return [e for e in self.events if e.type == event_type]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def notifier():
    return CollectingNotifier()


class FakeHR(TransactionalSource, EmployeeDirectory):
    """In-memory identity store and transactional data."""

    def __init__(self):
        self.employees: Dict[str, EmployeeInfo] = {}
        self.leads: Dict[str, List[date]] = defaultdict(list)
        self.sales: Dict[str, List[Tuple[date, float]]] = defaultdict(list)
        self.attendance: Dict[Tuple[str, date], AttendanceStatus] = {}
        self.failing_sources: set = set()
        self.slow_employees: Dict[str, float] = {}

    def add_employee(
        self,
        employee_id: str,
        role: str = "Lead Person",
        active: bool = True,
        manager_id: Optional[str] = None,
    ) -> EmployeeInfo:
        info = EmployeeInfo(
            id=employee_id,
            role=role,
            active=active,
            full_name=employee_id.title(),
            manager_id=manager_id,
        )
        self.employees[employee_id] = info
        return info

    async def count_leads(self, employee_id, start, end):
        if "leads" in self.failing_sources:
            raise ConnectionError("leads store unreachable")
        return sum(1 for d in self.leads[employee_id] if start <= d <= end)

    async def count_and_sum_sales(self, employee_id, start, end):
        if "sales" in self.failing_sources:
            raise ConnectionError("sales store unreachable")
        rows = [r for d, r in self.sales[employee_id] if start <= d <= end]
        return SalesTotals(count=len(rows), revenue=sum(rows))

    async def get_attendance_status(self, employee_id, day):
        return self.attendance.get((employee_id, day), AttendanceStatus.PRESENT)

    async def get_employee(self, employee_id):
        delay = self.slow_employees.get(employee_id)
        if delay:
            await asyncio.sleep(delay)
        return self.employees.get(employee_id)

    async def get_active_eligible_employees(self):
        eligible = {"Lead Person", "Sales Person", "Manager"}
        return [e for e in self.employees.values() if e.active and e.role in eligible]

    async def find_manager_for(self, employee_id):
        employee = self.employees.get(employee_id)
        return employee.manager_id if employee else None

    async def find_active_with_roles(self, roles: Sequence[str]):
        return [e for e in self.employees.values() if e.active and e.role in roles]

    async def find_team_members(self, manager_id):
        return [
            e for e in self.employees.values() if e.active and e.manager_id == manager_id
        ]


@pytest.fixture
def hr():
    return FakeHR()


@pytest.fixture
def make_kpi(session):
    def _make(
        name: str = "Daily Leads Created",
        role: str = "Lead Person",
        frequency: str = "daily",
        thresholds: Tuple[float, float, float] = (5, 8, 12),
        weight: float = 100,
        source: str = "leads",
        metric_type: str = "count",
        query: Optional[dict] = None,
        active: bool = True,
    ) -> KPIDefinition:
        kpi = KPIDefinition(
            role=role,
            name=name,
            metric_type=metric_type,
            frequency=frequency,
            threshold_minimum=thresholds[0],
            threshold_target=thresholds[1],
            threshold_excellent=thresholds[2],
            weight=weight,
            data_source_type=source,
            data_source_query=query,
            is_active=active,
        )
        session.add(kpi)
        session.commit()
        session.refresh(kpi)
        return kpi

    return _make


@pytest.fixture
def add_records(session):
    """Insert one record per score, newest first, ending on `as_of`."""

    def _add(
        employee_id: str,
        scores: List[float],
        as_of: date,
        kpi_scores: Optional[List[KPIScore]] = None,
        gap_days: int = 1,
    ) -> List[DailyPerformanceRecord]:
        records = []
        for offset, score in enumerate(scores):
            day = as_of - timedelta(days=offset * gap_days)
            record = DailyPerformanceRecord(
                employee_id=employee_id,
                day=day,
                date_key=day.isoformat(),
                overall_score=score,
                kpi_scores=[s.model_dump() for s in (kpi_scores or [])] if offset == 0 else [],
            )
            session.add(record)
            records.append(record)
        session.commit()
        return records

    return _add
