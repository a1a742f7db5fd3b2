"""PERFORMA — Daily Record & Summary Models."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, UniqueConstraint


class RatingTier(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    BELOW_AVERAGE = "below-average"
    POOR = "poor"


class StreakType(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


# ─────────────────────────────────────────────
# VALUE OBJECTS
# ─────────────────────────────────────────────


class KPIScore(BaseModel):
    """Score of one KPI inside a daily record."""

    kpi_id: int
    kpi_name: str
    target: float  # paced
    base_target: float  # un-paced
    actual: float
    score: float
    status: str
    weight: float


class Streak(BaseModel):
    type: StreakType = StreakType.NEUTRAL
    days: int = 0
    description: str = "No data"


class Averages(BaseModel):
    last_7_days: float = 0.0
    last_30_days: float = 0.0
    last_90_days: float = 0.0


class PIPDetails(BaseModel):
    start_date: datetime
    end_date: datetime
    reason: str = ""
    pip_id: Optional[int] = None


class DailyResult(BaseModel):
    """Outcome of one employee/date calculation."""

    employee_id: str
    date_key: str
    overall_score: float
    rating: RatingTier
    stars: int
    kpi_scores: List[KPIScore] = []


# ─────────────────────────────────────────────
# DATABASE MODELS
# ─────────────────────────────────────────────


class DailyPerformanceRecord(SQLModel, table=True):
    """One scored day for one employee.

    Unique on (employee_id, date_key): recalculation overwrites in place.
    """

    __tablename__ = "daily_performance_records"
    __table_args__ = (
        UniqueConstraint("employee_id", "date_key", name="uq_daily_record_day"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    employee_id: str = Field(index=True)
    day: date = Field(index=True)
    date_key: str = Field(description="YYYY-MM-DD")
    kpi_scores: list = Field(default_factory=list, sa_column=Column(JSON))
    overall_score: float = Field(default=0.0, ge=0, le=100)
    rating: str = Field(default=RatingTier.POOR.value)
    stars: int = Field(default=1, ge=1, le=5)
    notes: str = Field(default="")
    is_automated: bool = True
    calculated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def scores(self) -> List[KPIScore]:
        return [KPIScore(**s) for s in self.kpi_scores or []]


class PerformanceSummary(SQLModel, table=True):
    """Derived projection of an employee's daily records.

    Everything except the PIP fields can be rebuilt from daily records at any
    time. is_pip / pip_* are owned by the PIP lifecycle manager.
    """

    __tablename__ = "performance_summaries"

    id: Optional[int] = Field(default=None, primary_key=True)
    employee_id: str = Field(unique=True, index=True)
    current_rating: float = Field(default=0.0, ge=0, le=100)
    rating_tier: str = Field(default=RatingTier.AVERAGE.value)
    stars: int = Field(default=3)

    streak_type: str = Field(default=StreakType.NEUTRAL.value)
    streak_days: int = 0
    streak_description: str = Field(default="No data")

    avg_last_7_days: float = 0.0
    avg_last_30_days: float = 0.0
    avg_last_90_days: float = 0.0

    is_pip: bool = Field(default=False, index=True)
    pip_eligible: bool = False
    pip_start_date: Optional[datetime] = None
    pip_end_date: Optional[datetime] = None
    pip_reason: Optional[str] = None
    pip_id: Optional[int] = None

    last_calculated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def streak(self) -> Streak:
        return Streak(
            type=StreakType(self.streak_type),
            days=self.streak_days,
            description=self.streak_description,
        )

    @property
    def averages(self) -> Averages:
        return Averages(
            last_7_days=self.avg_last_7_days,
            last_30_days=self.avg_last_30_days,
            last_90_days=self.avg_last_90_days,
        )

    @property
    def pip_details(self) -> Optional[PIPDetails]:
        if self.pip_start_date is None or self.pip_end_date is None:
            return None
        return PIPDetails(
            start_date=self.pip_start_date,
            end_date=self.pip_end_date,
            reason=self.pip_reason or "",
            pip_id=self.pip_id,
        )

    def set_pip_details(self, details: Optional[PIPDetails]) -> None:
        if details is None:
            self.pip_start_date = None
            self.pip_end_date = None
            self.pip_reason = None
            self.pip_id = None
            return
        self.pip_start_date = details.start_date
        self.pip_end_date = details.end_date
        self.pip_reason = details.reason
        self.pip_id = details.pip_id


class SummaryView(BaseModel):
    """API representation of a PerformanceSummary."""

    employee_id: str
    current_rating: float
    rating_tier: str
    stars: int
    streak: Streak
    averages: Averages
    is_pip: bool
    pip_eligible: bool
    pip_details: Optional[PIPDetails] = None
    last_calculated_at: datetime

    @classmethod
    def from_summary(cls, summary: PerformanceSummary) -> "SummaryView":
        return cls(
            employee_id=summary.employee_id,
            current_rating=summary.current_rating,
            rating_tier=summary.rating_tier,
            stars=summary.stars,
            streak=summary.streak,
            averages=summary.averages,
            is_pip=summary.is_pip,
            pip_eligible=summary.pip_eligible,
            pip_details=summary.pip_details,
            last_calculated_at=summary.last_calculated_at,
        )
