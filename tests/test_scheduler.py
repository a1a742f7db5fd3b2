from datetime import date, datetime, timedelta, timezone

import pytest
from sqlmodel import select

from app.connectors.base import AttendanceStatus
from app.core.events import EventType
from app.models.performance_models import DailyPerformanceRecord
from app.models.pip_models import PIP, PIPStatus
from app.scheduler.jobs import notify_overdue_pips, run_daily_calculation

DAY = date(2026, 10, 14)


@pytest.mark.anyio
async def test_batch_counts_success_skips_and_timeouts(session, hr, make_kpi, notifier):
    make_kpi()
    hr.add_employee("emp-ok")
    hr.leads["emp-ok"] = [DAY] * 8
    hr.add_employee("emp-absent")
    hr.attendance[("emp-absent", DAY)] = AttendanceStatus.ABSENT
    hr.add_employee("emp-slow")
    hr.slow_employees["emp-slow"] = 1.0
    hr.add_employee("hr-1", role="HR")

    result = await run_daily_calculation(
        session, hr, hr, DAY, notifier=notifier, timeout=0.05
    )

    assert (result.total, result.success, result.skipped, result.errors) == (3, 1, 1, 1)
    rows = session.exec(select(DailyPerformanceRecord)).all()
    assert [r.employee_id for r in rows] == ["emp-ok"]


@pytest.mark.anyio
async def test_batch_continues_after_source_failure(session, hr, make_kpi):
    make_kpi()
    make_kpi(name="Sales", role="Sales Person", source="sales")
    hr.add_employee("emp-leads")
    hr.add_employee("emp-sales", role="Sales Person")
    hr.failing_sources.add("leads")

    result = await run_daily_calculation(session, hr, hr, DAY, timeout=5)

    assert (result.success, result.errors) == (1, 1)


def test_overdue_pips_are_reported(session, notifier):
    now = datetime.now(timezone.utc)
    session.add(
        PIP(
            employee_id="emp-1",
            trigger_reason="low",
            start_date=now - timedelta(days=40),
            end_date=now - timedelta(days=10),
            assigned_manager="mgr-1",
        )
    )
    session.add(
        PIP(
            employee_id="emp-2",
            status=PIPStatus.COMPLETED_SUCCESS.value,
            trigger_reason="low",
            end_date=now - timedelta(days=10),
            assigned_manager="mgr-1",
        )
    )
    session.commit()

    assert notify_overdue_pips(session, notifier) == 1
    [event] = notifier.of_type(EventType.PIP_OVERDUE)
    assert event.employee_id == "emp-1"
    assert event.payload["assigned_manager"] == "mgr-1"
