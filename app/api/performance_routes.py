"""PERFORMA — KPI & Performance API Routes."""

from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlmodel import Session, select

from app.connectors.hr.client import HRClient, get_hr_client
from app.core.errors import InvalidThresholdsError, MetricSourceError
from app.core.kpi_catalog import list_kpis
from app.core.logging import get_logger
from app.database import get_session
from app.engine.daily_aggregator import calculate_employee_performance
from app.engine.summary_rebuilder import update_performance_summary
from app.engine.target_resolver import assign_target_override, record_manual_actual
from app.engine.team_report import TeamPerformance, team_performance
from app.models.kpi_models import (
    DataSourceType,
    EmployeeTarget,
    KPIDefinition,
    Thresholds,
)
from app.models.performance_models import (
    DailyPerformanceRecord,
    DailyResult,
    PerformanceSummary,
    SummaryView,
)

logger = get_logger("api.performance")

router = APIRouter(tags=["Performance"])


# ── Request / Response Models ──


class CalculateRequest(BaseModel):
    """Request body for POST /performance/employees/{id}/calculate."""

    date: Optional[str] = None
    """Date to score in YYYY-MM-DD format. Defaults to today (UTC)."""


class CalculateResponse(BaseModel):
    status: str
    result: Optional[DailyResult] = None


class EmployeePerformanceResponse(BaseModel):
    status: str = "success"
    summary: Optional[SummaryView] = None
    recent_records: List[DailyPerformanceRecord] = []


class AssignRequest(BaseModel):
    """Request body for POST /kpis/{id}/assign.

    Leave all three thresholds out to pin the KPI's current defaults.
    """

    employee_ids: List[str] = Field(min_length=1)
    minimum: Optional[float] = None
    target: Optional[float] = None
    excellent: Optional[float] = None
    date: Optional[str] = None
    notes: str = ""

    def thresholds(self) -> Optional[Thresholds]:
        values = (self.minimum, self.target, self.excellent)
        if all(v is None for v in values):
            return None
        if any(v is None for v in values):
            raise HTTPException(
                status_code=422,
                detail="Provide minimum, target and excellent together, or none of them",
            )
        return Thresholds(minimum=self.minimum, target=self.target, excellent=self.excellent)


class ActualRequest(BaseModel):
    """Request body for POST /kpis/{id}/actuals."""

    employee_id: str
    value: float = Field(ge=0)
    date: Optional[str] = None


class TargetView(BaseModel):
    employee_id: str
    kpi_id: int
    period_key: str
    thresholds: Optional[Thresholds] = None
    manual_actual: Optional[float] = None
    notes: str = ""

    @classmethod
    def from_target(cls, target: EmployeeTarget) -> "TargetView":
        return cls(
            employee_id=target.employee_id,
            kpi_id=target.kpi_id,
            period_key=target.period_key,
            thresholds=target.override_thresholds,
            manual_actual=target.manual_actual,
            notes=target.notes,
        )


def _get_kpi(session: Session, kpi_id: int) -> KPIDefinition:
    kpi = session.get(KPIDefinition, kpi_id)
    if kpi is None:
        raise HTTPException(status_code=404, detail=f"KPI {kpi_id} not found")
    return kpi


def _parse_date(value: Optional[str]) -> date:
    if not value:
        return datetime.now(timezone.utc).date()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid date '{value}', expected YYYY-MM-DD")


# ── Endpoints ──


@router.get("/kpis", response_model=List[KPIDefinition])
async def get_kpis(
    role: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    session: Session = Depends(get_session),
):
    """List KPI definitions, optionally filtered by role and active flag."""
    return list_kpis(session, role=role, is_active=is_active)


@router.post("/kpis/{kpi_id}/assign", response_model=List[TargetView])
async def assign_kpi(
    kpi_id: int, request: AssignRequest, session: Session = Depends(get_session)
):
    """Pin a threshold band for employees for the KPI period containing `date`."""
    kpi = _get_kpi(session, kpi_id)
    day = _parse_date(request.date)
    try:
        targets = assign_target_override(
            session,
            request.employee_ids,
            kpi,
            day,
            thresholds=request.thresholds(),
            notes=request.notes,
        )
    except InvalidThresholdsError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return [TargetView.from_target(t) for t in targets]


@router.post("/kpis/{kpi_id}/actuals", response_model=TargetView)
async def post_manual_actual(
    kpi_id: int, request: ActualRequest, session: Session = Depends(get_session)
):
    """Record the actual of a manually tracked KPI for the period containing `date`."""
    kpi = _get_kpi(session, kpi_id)
    if kpi.data_source_type != DataSourceType.MANUAL.value:
        raise HTTPException(
            status_code=400,
            detail=f"KPI {kpi_id} reads its actual from '{kpi.data_source_type}', not manual entry",
        )
    day = _parse_date(request.date)
    target = record_manual_actual(session, request.employee_id, kpi, day, request.value)
    logger.info(
        f"Manual actual {request.value} recorded for '{kpi.name}' ({target.period_key})",
        extra={"employee_id": request.employee_id, "kpi_id": kpi_id},
    )
    return TargetView.from_target(target)


@router.post("/performance/employees/{employee_id}/calculate", response_model=CalculateResponse)
async def calculate(
    employee_id: str,
    request: CalculateRequest,
    session: Session = Depends(get_session),
    hr: HRClient = Depends(get_hr_client),
):
    """Score one employee for one day. Safe to repeat for the same day."""
    day = _parse_date(request.date)
    try:
        result = await calculate_employee_performance(
            session, employee_id, day, source=hr, directory=hr
        )
    except MetricSourceError as e:
        logger.error(f"Calculation failed: {e}", extra={"employee_id": employee_id})
        raise HTTPException(status_code=502, detail=f"Data source unavailable: {e}")

    if result is None:
        return CalculateResponse(status="skipped")
    return CalculateResponse(status="success", result=result)


@router.post("/performance/employees/{employee_id}/summary", response_model=SummaryView)
async def rebuild_summary(employee_id: str, session: Session = Depends(get_session)):
    """Rebuild the performance summary from daily records."""
    summary = update_performance_summary(session, employee_id)
    return SummaryView.from_summary(summary)


@router.get(
    "/performance/employees/{employee_id}", response_model=EmployeePerformanceResponse
)
async def get_employee_performance(
    employee_id: str, session: Session = Depends(get_session)
):
    """Summary plus the last 30 days of daily records."""
    summary = session.exec(
        select(PerformanceSummary).where(PerformanceSummary.employee_id == employee_id)
    ).first()
    since = datetime.now(timezone.utc).date() - timedelta(days=29)
    records = session.exec(
        select(DailyPerformanceRecord)
        .where(
            DailyPerformanceRecord.employee_id == employee_id,
            DailyPerformanceRecord.day >= since,
        )
        .order_by(DailyPerformanceRecord.day.desc())  # type: ignore
        .limit(30)
    ).all()

    if summary is None and not records:
        return EmployeePerformanceResponse(status="no_data")
    return EmployeePerformanceResponse(
        summary=SummaryView.from_summary(summary) if summary else None,
        recent_records=list(records),
    )


@router.get(
    "/performance/employees/{employee_id}/daily",
    response_model=List[DailyPerformanceRecord],
)
async def get_employee_daily(
    employee_id: str,
    start_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    limit: int = Query(30, ge=1, le=366),
    session: Session = Depends(get_session),
):
    """Daily records, newest first, optionally within a date range."""
    query = select(DailyPerformanceRecord).where(
        DailyPerformanceRecord.employee_id == employee_id
    )
    if start_date and end_date:
        query = query.where(
            DailyPerformanceRecord.day >= _parse_date(start_date),
            DailyPerformanceRecord.day <= _parse_date(end_date),
        )
    query = query.order_by(DailyPerformanceRecord.day.desc()).limit(limit)  # type: ignore
    return list(session.exec(query).all())


@router.get("/performance/team/{manager_id}", response_model=TeamPerformance)
async def get_team_performance(
    manager_id: str,
    session: Session = Depends(get_session),
    hr: HRClient = Depends(get_hr_client),
):
    """Rating roll-up of a manager's direct reports."""
    try:
        return await team_performance(session, hr, manager_id)
    except MetricSourceError as e:
        logger.error(f"Team lookup failed: {e}", extra={"employee_id": manager_id})
        raise HTTPException(status_code=502, detail=f"Directory unavailable: {e}")
