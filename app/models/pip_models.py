"""PERFORMA — Performance Improvement Plan Models."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field as PydanticField
from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class PIPStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED_SUCCESS = "completed-success"
    COMPLETED_FAILURE = "completed-failure"
    EXTENDED = "extended"
    CANCELLED = "cancelled"


OPEN_PIP_STATUSES = (PIPStatus.ACTIVE.value, PIPStatus.EXTENDED.value)


class PIPSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


PIP_DURATION_DAYS = {
    PIPSeverity.CRITICAL: 30,
    PIPSeverity.HIGH: 45,
    PIPSeverity.MEDIUM: 60,
}


class PIPResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    EXTENSION = "extension"
    CANCELLED = "cancelled"


class ReviewProgress(str, Enum):
    IMPROVING = "improving"
    STAGNANT = "stagnant"
    DECLINING = "declining"


class GoalStatus(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    ACHIEVED = "achieved"
    NOT_ACHIEVED = "not-achieved"


# ─────────────────────────────────────────────
# VALUE OBJECTS
# ─────────────────────────────────────────────


class PIPGoal(BaseModel):
    kpi_id: Optional[int] = None
    kpi_name: str
    current_performance: Optional[float] = None
    target_performance: Optional[float] = None
    deadline: Optional[datetime] = None
    status: GoalStatus = GoalStatus.NOT_STARTED


class WeeklyReview(BaseModel):
    week_number: int = PydanticField(ge=1)
    review_date: datetime = PydanticField(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    reviewer_id: str
    progress: ReviewProgress
    score: Optional[float] = PydanticField(default=None, ge=0, le=100)
    notes: str = ""
    manager_feedback: str = ""
    goals: List[PIPGoal] = []


class PIPOutcome(BaseModel):
    result: PIPResult
    closed_date: datetime
    closed_by: str
    final_notes: str = ""
    final_score: Optional[float] = None


class PIPTrigger(BaseModel):
    """A fired trigger rule."""

    severity: PIPSeverity
    reason: str
    avg_score: float

    @property
    def duration_days(self) -> int:
        return PIP_DURATION_DAYS[self.severity]


class PIPCheckResult(BaseModel):
    """Aggregate counts of a fleet-wide PIP sweep."""

    total_checked: int = 0
    new_pips: int = 0
    warnings_sent: int = 0
    errors: int = 0


# ─────────────────────────────────────────────
# DATABASE MODEL
# ─────────────────────────────────────────────


class PIP(SQLModel, table=True):
    """A time-boxed improvement plan for one employee."""

    __tablename__ = "pips"

    id: Optional[int] = Field(default=None, primary_key=True)
    employee_id: str = Field(index=True)
    status: str = Field(default=PIPStatus.ACTIVE.value, index=True)
    trigger_reason: str
    severity: Optional[str] = None
    is_automatic: bool = False
    start_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    end_date: datetime = Field(index=True)
    duration: int = Field(default=30, description="days")
    goals: list = Field(default_factory=list, sa_column=Column(JSON))
    weekly_reviews: list = Field(default_factory=list, sa_column=Column(JSON))
    outcome: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    assigned_manager: str = Field(index=True)
    hr_notes: str = Field(default="")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_PIP_STATUSES

    @property
    def reviews(self) -> List[WeeklyReview]:
        return [WeeklyReview(**r) for r in self.weekly_reviews or []]

    @property
    def pip_outcome(self) -> Optional[PIPOutcome]:
        return PIPOutcome(**self.outcome) if self.outcome else None


class PIPView(BaseModel):
    """API representation of a PIP."""

    id: int
    employee_id: str
    status: str
    trigger_reason: str
    severity: Optional[str] = None
    is_automatic: bool
    start_date: datetime
    end_date: datetime
    duration: int
    goals: List[PIPGoal] = []
    weekly_reviews: List[WeeklyReview] = []
    outcome: Optional[PIPOutcome] = None
    assigned_manager: str
    hr_notes: str = ""

    @classmethod
    def from_pip(cls, pip: PIP) -> "PIPView":
        return cls(
            id=pip.id,
            employee_id=pip.employee_id,
            status=pip.status,
            trigger_reason=pip.trigger_reason,
            severity=pip.severity,
            is_automatic=pip.is_automatic,
            start_date=pip.start_date,
            end_date=pip.end_date,
            duration=pip.duration,
            goals=[PIPGoal(**g) for g in pip.goals or []],
            weekly_reviews=pip.reviews,
            outcome=pip.pip_outcome,
            assigned_manager=pip.assigned_manager,
            hr_notes=pip.hr_notes or "",
        )
