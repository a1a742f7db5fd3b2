from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlmodel import select

from app.connectors.hr.client import get_hr_client
from app.database import get_session
from app.main import app
from app.models.performance_models import PerformanceSummary
from app.models.pip_models import PIP

DAY = date(2026, 10, 14)


@pytest.fixture
def client(session, hr):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_hr_client] = lambda: hr
    yield TestClient(app)
    app.dependency_overrides.clear()


def calculate(client, employee_id="emp-1", day="2026-10-14"):
    return client.post(
        f"/performance/employees/{employee_id}/calculate", json={"date": day}
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["service"] == "performa"


def test_list_kpis_filters_by_role(client, make_kpi):
    make_kpi(name="Leads")
    make_kpi(name="Team", role="Manager")

    response = client.get("/kpis", params={"role": "Manager"})

    assert response.status_code == 200
    assert [k["name"] for k in response.json()] == ["Team"]


def test_calculate_scores_and_stores_day(client, hr, make_kpi):
    hr.add_employee("emp-1")
    hr.leads["emp-1"] = [DAY] * 8
    make_kpi()

    response = calculate(client)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["result"]["overall_score"] == pytest.approx(80)
    assert body["result"]["rating"] == "good"

    daily = client.get(
        "/performance/employees/emp-1/daily",
        params={"start_date": "2026-10-01", "end_date": "2026-10-31"},
    )
    assert [r["date_key"] for r in daily.json()] == ["2026-10-14"]


def test_calculate_unknown_employee_is_skipped(client):
    assert calculate(client, "ghost").json() == {"status": "skipped", "result": None}


def test_calculate_rejects_bad_date(client):
    assert calculate(client, day="14/10/2026").status_code == 422


def test_calculate_reports_source_outage(client, hr, make_kpi):
    hr.add_employee("emp-1")
    hr.failing_sources.add("leads")
    make_kpi()

    assert calculate(client).status_code == 502


def test_performance_without_history_reports_no_data(client):
    body = client.get("/performance/employees/nobody").json()
    assert body["status"] == "no_data"
    assert body["summary"] is None


def test_summary_rebuild_endpoint(client, add_records):
    add_records("emp-1", [30, 30], datetime.now(timezone.utc).date())

    body = client.post("/performance/employees/emp-1/summary").json()

    assert body["employee_id"] == "emp-1"
    assert body["pip_eligible"] is True
    assert body["streak"]["type"] == "negative"


def test_pip_sweep_and_close(client, session, hr, add_records):
    hr.add_employee("emp-1", manager_id="mgr-1")
    add_records("emp-1", [20] * 7, datetime.now(timezone.utc).date())

    check = client.post("/pips/check").json()
    assert check["new_pips"] == 1

    overdue = client.get("/pips/overdue").json()
    assert overdue == []

    pip_id = session.exec(select(PIP.id)).one()

    review = client.post(
        f"/pips/{pip_id}/reviews",
        json={"week_number": 1, "reviewer_id": "mgr-1", "progress": "improving"},
    )
    assert review.status_code == 200
    assert len(review.json()["weekly_reviews"]) == 1

    closed = client.post(
        f"/pips/{pip_id}/close",
        json={"result": "success", "closed_by": "mgr-1", "hr_notes": "Met all goals"},
    )
    assert closed.json()["status"] == "completed-success"
    assert closed.json()["hr_notes"] == "Met all goals"

    again = client.post(f"/pips/{pip_id}/close", json={"result": "failure", "closed_by": "x"})
    assert again.status_code == 400


def test_unknown_pip_is_404(client):
    response = client.post("/pips/404/extend", json={"additional_days": 7, "extended_by": "mgr"})
    assert response.status_code == 404


def test_extend_requires_positive_days(client):
    response = client.post("/pips/1/extend", json={"additional_days": 0, "extended_by": "mgr"})
    assert response.status_code == 422


def test_assign_override_changes_scoring(client, hr, make_kpi):
    hr.add_employee("emp-1")
    hr.leads["emp-1"] = [DAY] * 4
    kpi = make_kpi()

    response = client.post(
        f"/kpis/{kpi.id}/assign",
        json={
            "employee_ids": ["emp-1", "emp-2"],
            "minimum": 2,
            "target": 4,
            "excellent": 6,
            "date": "2026-10-14",
            "notes": "ramp-up",
        },
    )

    assert response.status_code == 200
    assert [t["employee_id"] for t in response.json()] == ["emp-1", "emp-2"]
    assert response.json()[0]["period_key"] == "2026-10-14"
    assert response.json()[0]["thresholds"] == {"minimum": 2, "target": 4, "excellent": 6}
    assert calculate(client).json()["result"]["overall_score"] == pytest.approx(80)


def test_assign_validates_request(client, make_kpi):
    kpi = make_kpi()

    assert client.post("/kpis/999/assign", json={"employee_ids": ["a"]}).status_code == 404
    unordered = {"employee_ids": ["a"], "minimum": 5, "target": 5, "excellent": 9}
    assert client.post(f"/kpis/{kpi.id}/assign", json=unordered).status_code == 422
    partial = {"employee_ids": ["a"], "target": 5}
    assert client.post(f"/kpis/{kpi.id}/assign", json=partial).status_code == 422
    assert client.post(f"/kpis/{kpi.id}/assign", json={"employee_ids": []}).status_code == 422


def test_manual_actual_is_scored(client, hr, make_kpi):
    hr.add_employee("emp-1")
    kpi = make_kpi(name="Client Visits", source="manual")

    before = calculate(client).json()["result"]["overall_score"]
    recorded = client.post(
        f"/kpis/{kpi.id}/actuals",
        json={"employee_id": "emp-1", "value": 8, "date": "2026-10-14"},
    )
    after = calculate(client).json()["result"]["overall_score"]

    assert recorded.status_code == 200
    assert recorded.json()["manual_actual"] == 8
    assert before == 0
    assert after == pytest.approx(80)


def test_manual_actual_rejects_measured_kpi(client, make_kpi):
    kpi = make_kpi(source="leads")

    response = client.post(f"/kpis/{kpi.id}/actuals", json={"employee_id": "emp-1", "value": 3})

    assert response.status_code == 400
    assert client.post("/kpis/999/actuals", json={"employee_id": "e", "value": 1}).status_code == 404


def test_team_performance(client, session, hr):
    for employee_id, rating, tier in [("a", 92, "excellent"), ("b", 40, "below-average")]:
        hr.add_employee(employee_id, manager_id="mgr-1")
        session.add(
            PerformanceSummary(employee_id=employee_id, current_rating=rating, rating_tier=tier)
        )
    session.commit()
    hr.add_employee("c", manager_id="mgr-1")

    body = client.get("/performance/team/mgr-1").json()

    assert body["team_size"] == 3
    assert body["average_rating"] == pytest.approx(66)
    assert body["at_risk_count"] == 1
    assert body["distribution"]["excellent"] == 1
    assert [m["employee_id"] for m in body["top_performers"]] == ["a", "b"]
    assert body["without_summary"] == ["c"]
