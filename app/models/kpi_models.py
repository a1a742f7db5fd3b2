"""PERFORMA — KPI Catalog & Employee Target Models.

KPIDefinition is the role-scoped template authored by an administrator.
EmployeeTarget holds two separate concerns for one (employee, KPI, period):
an override configuration (desired) and the last computed snapshot (observed).
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, UniqueConstraint


class Role(str, Enum):
    """Roles a KPI can be scoped to."""

    SALES_PERSON = "Sales Person"
    LEAD_PERSON = "Lead Person"
    MANAGER = "Manager"
    ADMIN = "Admin"
    HR = "HR"
    EMPLOYEE = "Employee"
    IT_MANAGER = "IT Manager"
    IT_INTERN = "IT Intern"
    IT_PERMANENT = "IT Permanent"


class MetricType(str, Enum):
    COUNT = "count"
    AMOUNT = "amount"
    PERCENTAGE = "percentage"
    RATING = "rating"
    BOOLEAN = "boolean"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


class DataSourceType(str, Enum):
    """Where the actual value of a KPI comes from."""

    LEADS = "leads"
    SALES = "sales"
    ATTENDANCE = "attendance"
    MANUAL = "manual"
    CUSTOM = "custom"


class KPIStatus(str, Enum):
    EXCELLENT = "excellent"
    ON_TRACK = "on-track"
    AT_RISK = "at-risk"
    FAILING = "failing"
    NOT_STARTED = "not-started"


class Thresholds(BaseModel):
    """A threshold band. Ordering is checked by kpi_catalog.validate_thresholds."""

    minimum: float
    target: float
    excellent: float

    def scaled(self, ratio: float) -> "Thresholds":
        """Return the band multiplied by a pacing ratio."""
        return Thresholds(
            minimum=self.minimum * ratio,
            target=self.target * ratio,
            excellent=self.excellent * ratio,
        )


class TargetSnapshot(BaseModel):
    """Last computed standing of an employee against one KPI period."""

    actual: float = 0.0
    score: float = 0.0
    status: str = KPIStatus.NOT_STARTED.value
    calculated_at: Optional[datetime] = None


# ─────────────────────────────────────────────
# DATABASE MODELS
# ─────────────────────────────────────────────


class KPIDefinition(SQLModel, table=True):
    """Role-scoped KPI template with threshold band and data source."""

    __tablename__ = "kpi_definitions"

    id: Optional[int] = Field(default=None, primary_key=True)
    role: str = Field(index=True, description="Role this KPI applies to")
    name: str = Field(description="Human-readable KPI name")
    description: str = Field(default="")
    metric_type: str = Field(default=MetricType.COUNT.value)
    frequency: str = Field(description="daily | weekly | monthly | quarterly | annually")
    threshold_minimum: float
    threshold_target: float
    threshold_excellent: float
    weight: float = Field(default=50, ge=0, le=100)
    data_source_type: str = Field(default=DataSourceType.MANUAL.value)
    data_source_query: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def thresholds(self) -> Thresholds:
        return Thresholds(
            minimum=self.threshold_minimum,
            target=self.threshold_target,
            excellent=self.threshold_excellent,
        )


class EmployeeTarget(SQLModel, table=True):
    """Per-employee, per-period target row.

    Unique on (employee_id, kpi_id, period_key). The override_* / manual_actual
    columns are configuration written by people; the last_* columns are a cache
    written by the daily aggregator and are never read back as thresholds.
    """

    __tablename__ = "employee_targets"
    __table_args__ = (
        UniqueConstraint(
            "employee_id", "kpi_id", "period_key", name="uq_employee_target_period"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    employee_id: str = Field(index=True)
    kpi_id: int = Field(index=True, foreign_key="kpi_definitions.id")
    period_key: str = Field(index=True, description="e.g. 2026-10, 2026-Q4, 2026-W42")
    period_start: date
    period_end: date

    # ── Override configuration ──
    override_minimum: Optional[float] = None
    override_target: Optional[float] = None
    override_excellent: Optional[float] = None
    manual_actual: Optional[float] = Field(
        default=None, description="Manually entered actual for manual KPIs"
    )
    notes: str = Field(default="")

    # ── Last computed snapshot ──
    last_actual: float = 0.0
    last_score: float = 0.0
    last_status: str = Field(default=KPIStatus.NOT_STARTED.value)
    last_calculated_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def override_thresholds(self) -> Optional[Thresholds]:
        if (
            self.override_minimum is None
            or self.override_target is None
            or self.override_excellent is None
        ):
            return None
        return Thresholds(
            minimum=self.override_minimum,
            target=self.override_target,
            excellent=self.override_excellent,
        )

    @property
    def snapshot(self) -> TargetSnapshot:
        return TargetSnapshot(
            actual=self.last_actual,
            score=self.last_score,
            status=self.last_status,
            calculated_at=self.last_calculated_at,
        )

    def record_snapshot(self, snapshot: TargetSnapshot) -> None:
        self.last_actual = snapshot.actual
        self.last_score = snapshot.score
        self.last_status = snapshot.status
        self.last_calculated_at = snapshot.calculated_at
        self.updated_at = datetime.now(timezone.utc)
