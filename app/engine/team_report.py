"""PERFORMA — Team Performance Report.

Read-side roll-up of a manager's direct reports: average rating, at-risk
headcount, rating-tier distribution and the top/bottom performers. Built
from stored summaries only; nothing is recalculated here.
"""

from typing import Dict, List

from pydantic import BaseModel
from sqlmodel import Session, select

from app.connectors.base import EmployeeDirectory
from app.core.logging import get_logger
from app.engine.summary_rebuilder import PIP_ELIGIBILITY_RATING
from app.models.performance_models import PerformanceSummary, RatingTier

logger = get_logger("engine.team")

PERFORMER_LIST_SIZE = 5


class TeamMemberStanding(BaseModel):
    employee_id: str
    full_name: str = ""
    role: str = ""
    current_rating: float
    rating_tier: str
    is_pip: bool = False


class TeamPerformance(BaseModel):
    manager_id: str
    team_size: int = 0
    evaluated: int = 0
    average_rating: float = 0.0
    at_risk_count: int = 0
    on_pip_count: int = 0
    distribution: Dict[str, int] = {}
    top_performers: List[TeamMemberStanding] = []
    bottom_performers: List[TeamMemberStanding] = []
    members: List[TeamMemberStanding] = []
    without_summary: List[str] = []


async def team_performance(
    session: Session, directory: EmployeeDirectory, manager_id: str
) -> TeamPerformance:
    """Aggregate the stored summaries of everyone reporting to `manager_id`.

    Members with no summary yet are listed in `without_summary` and left out
    of every statistic. Bottom performers are ordered lowest rating first.
    """
    team = await directory.find_team_members(manager_id)
    report = TeamPerformance(
        manager_id=manager_id,
        team_size=len(team),
        distribution={tier.value: 0 for tier in RatingTier},
    )
    if not team:
        return report

    by_id = {member.id: member for member in team}
    summaries = session.exec(
        select(PerformanceSummary).where(
            PerformanceSummary.employee_id.in_(list(by_id))  # type: ignore
        )
    ).all()

    standings: List[TeamMemberStanding] = []
    for summary in summaries:
        member = by_id[summary.employee_id]
        standings.append(
            TeamMemberStanding(
                employee_id=summary.employee_id,
                full_name=member.full_name,
                role=member.role,
                current_rating=summary.current_rating,
                rating_tier=summary.rating_tier,
                is_pip=summary.is_pip,
            )
        )
        report.distribution[summary.rating_tier] = (
            report.distribution.get(summary.rating_tier, 0) + 1
        )

    # Ties keep a stable order by employee id.
    standings.sort(key=lambda s: (-s.current_rating, s.employee_id))
    report.members = standings
    report.evaluated = len(standings)
    report.without_summary = sorted(set(by_id) - {s.employee_id for s in standings})
    if standings:
        report.average_rating = round(
            sum(s.current_rating for s in standings) / len(standings), 2
        )
    report.at_risk_count = sum(
        1 for s in standings if s.current_rating < PIP_ELIGIBILITY_RATING
    )
    report.on_pip_count = sum(1 for s in standings if s.is_pip)
    report.top_performers = standings[:PERFORMER_LIST_SIZE]
    report.bottom_performers = list(reversed(standings[-PERFORMER_LIST_SIZE:]))

    logger.info(
        f"Team report for {manager_id}: {report.evaluated}/{report.team_size} "
        f"evaluated, {report.at_risk_count} at risk"
    )
    return report
