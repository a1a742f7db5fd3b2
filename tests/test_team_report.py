import pytest

from app.engine.score_calculator import rating_for
from app.engine.team_report import team_performance
from app.models.performance_models import PerformanceSummary

pytestmark = pytest.mark.anyio

TEAM = {"a": 95, "b": 85, "c": 78, "d": 65, "e": 55, "f": 45, "g": 30}


def add_summary(session, employee_id, rating, is_pip=False):
    tier, stars = rating_for(rating)
    session.add(
        PerformanceSummary(
            employee_id=employee_id,
            current_rating=rating,
            rating_tier=tier.value,
            stars=stars,
            is_pip=is_pip,
        )
    )
    session.commit()


@pytest.fixture
def team(session, hr):
    for employee_id, rating in TEAM.items():
        hr.add_employee(employee_id, manager_id="mgr-1")
        add_summary(session, employee_id, rating, is_pip=employee_id == "g")
    hr.add_employee("h", manager_id="mgr-1")
    hr.add_employee("gone", manager_id="mgr-1", active=False)
    add_summary(session, "gone", 5)
    hr.add_employee("x", manager_id="mgr-2")
    add_summary(session, "x", 10)


async def test_team_statistics(session, hr, team):
    report = await team_performance(session, hr, "mgr-1")

    assert report.team_size == 8
    assert report.evaluated == 7
    assert report.without_summary == ["h"]
    assert report.average_rating == pytest.approx(64.71)
    assert report.at_risk_count == 2
    assert report.on_pip_count == 1
    assert report.distribution == {
        "excellent": 1,
        "good": 2,
        "average": 1,
        "below-average": 2,
        "poor": 1,
    }


async def test_top_and_bottom_performers(session, hr, team):
    report = await team_performance(session, hr, "mgr-1")

    assert [m.employee_id for m in report.top_performers] == ["a", "b", "c", "d", "e"]
    assert [m.employee_id for m in report.bottom_performers] == ["g", "f", "e", "d", "c"]
    assert report.top_performers[0].full_name == "A"
    assert report.bottom_performers[0].is_pip is True


async def test_small_team_lists_everyone_both_ways(session, hr):
    hr.add_employee("a", manager_id="mgr-1")
    hr.add_employee("b", manager_id="mgr-1")
    add_summary(session, "a", 70)
    add_summary(session, "b", 90)

    report = await team_performance(session, hr, "mgr-1")

    assert [m.employee_id for m in report.top_performers] == ["b", "a"]
    assert [m.employee_id for m in report.bottom_performers] == ["a", "b"]


async def test_manager_without_reports(session, hr):
    report = await team_performance(session, hr, "nobody")

    assert report.team_size == 0
    assert report.average_rating == 0
    assert report.members == []
    assert set(report.distribution.values()) == {0}


async def test_team_without_summaries_has_zero_average(session, hr):
    hr.add_employee("new-1", manager_id="mgr-1")

    report = await team_performance(session, hr, "mgr-1")

    assert report.evaluated == 0
    assert report.average_rating == 0
    assert report.without_summary == ["new-1"]
