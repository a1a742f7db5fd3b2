from datetime import date

import pytest

from app.connectors.base import AttendanceStatus
from app.core.errors import MetricSourceError
from app.engine.metric_fetcher import MeasurementWindow, MetricFetcherRegistry
from app.engine.target_resolver import period_window, record_manual_actual

DAY = date(2026, 10, 14)


def month_to_date():
    return MeasurementWindow.to_date(period_window("monthly", DAY), DAY)


def test_measurement_window_stops_at_the_scored_day():
    window = month_to_date()
    assert (window.start, window.end, window.period_key) == (
        date(2026, 10, 1),
        DAY,
        "2026-10",
    )


@pytest.mark.anyio
async def test_leads_are_counted_period_to_date(session, hr, make_kpi):
    hr.leads["emp-1"] = [
        date(2026, 9, 30),
        date(2026, 10, 1),
        date(2026, 10, 10),
        date(2026, 10, 14),
        date(2026, 10, 20),
    ]
    kpi = make_kpi(frequency="monthly")
    registry = MetricFetcherRegistry.default(session, hr)

    assert await registry.fetch_actual("emp-1", kpi, month_to_date()) == 3


@pytest.mark.anyio
async def test_sales_measure_selects_count_or_revenue(session, hr, make_kpi):
    hr.sales["emp-1"] = [(date(2026, 10, 2), 4000.0), (date(2026, 10, 9), 2500.0)]
    registry = MetricFetcherRegistry.default(session, hr)

    by_count = make_kpi(name="Sales", source="sales", query={"measure": "count"})
    by_revenue = make_kpi(name="Revenue", source="sales", query={"measure": "revenue"})
    by_type = make_kpi(name="Amount", source="sales", metric_type="amount")

    window = month_to_date()
    assert await registry.fetch_actual("emp-1", by_count, window) == 2
    assert await registry.fetch_actual("emp-1", by_revenue, window) == 6500
    assert await registry.fetch_actual("emp-1", by_type, window) == 6500


@pytest.mark.anyio
async def test_attendance_credits_half_days(session, hr, make_kpi):
    hr.attendance[("emp-1", date(2026, 10, 13))] = AttendanceStatus.HALF_DAY
    hr.attendance[("emp-1", date(2026, 10, 14))] = AttendanceStatus.ABSENT
    window = MeasurementWindow.to_date(period_window("weekly", DAY), DAY)
    registry = MetricFetcherRegistry.default(session, hr)

    days = make_kpi(name="Days", source="attendance")
    percent = make_kpi(name="Rate", source="attendance", metric_type="percentage")

    assert await registry.fetch_actual("emp-1", days, window) == 1.5
    assert await registry.fetch_actual("emp-1", percent, window) == pytest.approx(50)


@pytest.mark.anyio
async def test_manual_kpi_reads_entered_value(session, hr, make_kpi):
    kpi = make_kpi(frequency="monthly", source="manual")
    registry = MetricFetcherRegistry.default(session, hr)

    assert await registry.fetch_actual("emp-1", kpi, month_to_date()) == 0
    record_manual_actual(session, "emp-1", kpi, DAY, 42)
    assert await registry.fetch_actual("emp-1", kpi, month_to_date()) == 42


@pytest.mark.anyio
async def test_custom_source_yields_zero(session, hr, make_kpi):
    kpi = make_kpi(source="custom")
    registry = MetricFetcherRegistry.default(session, hr)
    assert await registry.fetch_actual("emp-1", kpi, month_to_date()) == 0


@pytest.mark.anyio
async def test_source_failure_is_wrapped(session, hr, make_kpi):
    hr.failing_sources.add("leads")
    kpi = make_kpi()
    registry = MetricFetcherRegistry.default(session, hr)

    with pytest.raises(MetricSourceError) as exc:
        await registry.fetch_actual("emp-1", kpi, month_to_date())
    assert exc.value.source_type == "leads"
