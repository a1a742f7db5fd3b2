"""PERFORMA — KPI Catalog.

Role-scoped KPI definitions and their threshold bands. The engine only
reads the catalog at calculation time; register_kpi is the authoring-time
gate that rejects malformed definitions outright.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field as PydanticField
from sqlmodel import Session, select

from app.core.errors import InvalidThresholdsError
from app.core.logging import get_logger
from app.models.kpi_models import (
    DataSourceType,
    Frequency,
    KPIDefinition,
    MetricType,
    Role,
    Thresholds,
)

logger = get_logger("core.kpi_catalog")


class KPITemplate(BaseModel):
    """Authoring payload for a KPI definition."""

    role: Role
    name: str
    description: str = ""
    metric_type: MetricType
    frequency: Frequency
    thresholds: Thresholds
    weight: float = PydanticField(default=50, ge=0, le=100)
    data_source_type: DataSourceType = DataSourceType.MANUAL
    data_source_query: Optional[Dict[str, Any]] = None
    is_active: bool = True


def validate_thresholds(thresholds: Thresholds, kpi_id: int | None = None) -> None:
    """Require minimum < target < excellent."""
    if not (thresholds.minimum < thresholds.target < thresholds.excellent):
        raise InvalidThresholdsError(
            f"Thresholds must satisfy minimum < target < excellent, got "
            f"{thresholds.minimum} / {thresholds.target} / {thresholds.excellent}",
            kpi_id=kpi_id,
        )


def register_kpi(session: Session, template: KPITemplate) -> KPIDefinition:
    """Validate and persist a new KPI definition."""
    validate_thresholds(template.thresholds)
    kpi = KPIDefinition(
        role=template.role.value,
        name=template.name,
        description=template.description,
        metric_type=template.metric_type.value,
        frequency=template.frequency.value,
        threshold_minimum=template.thresholds.minimum,
        threshold_target=template.thresholds.target,
        threshold_excellent=template.thresholds.excellent,
        weight=template.weight,
        data_source_type=template.data_source_type.value,
        data_source_query=template.data_source_query,
        is_active=template.is_active,
    )
    session.add(kpi)
    session.commit()
    session.refresh(kpi)
    logger.info(f"Registered KPI '{kpi.name}' for {kpi.role}", extra={"kpi_id": kpi.id})
    return kpi


def deactivate_kpi(session: Session, kpi_id: int) -> Optional[KPIDefinition]:
    """Soft delete: the definition stays for historical records."""
    kpi = session.get(KPIDefinition, kpi_id)
    if kpi is None:
        return None
    kpi.is_active = False
    kpi.updated_at = datetime.now(timezone.utc)
    session.add(kpi)
    session.commit()
    return kpi


def active_kpis_for_role(session: Session, role: str) -> List[KPIDefinition]:
    """Active KPI definitions for a role, heaviest first."""
    return list(
        session.exec(
            select(KPIDefinition)
            .where(KPIDefinition.role == role, KPIDefinition.is_active == True)  # noqa: E712
            .order_by(KPIDefinition.weight.desc(), KPIDefinition.id)  # type: ignore
        ).all()
    )


def list_kpis(
    session: Session, role: Optional[str] = None, is_active: Optional[bool] = None
) -> List[KPIDefinition]:
    query = select(KPIDefinition)
    if role:
        query = query.where(KPIDefinition.role == role)
    if is_active is not None:
        query = query.where(KPIDefinition.is_active == is_active)
    query = query.order_by(KPIDefinition.role, KPIDefinition.weight.desc())  # type: ignore
    return list(session.exec(query).all())


# ─────────────────────────────────────────────
# DEFAULT CATALOG — Seeded on first start
# ─────────────────────────────────────────────

DEFAULT_KPIS: List[KPITemplate] = [
    # Lead Person
    KPITemplate(
        role=Role.LEAD_PERSON,
        name="Daily Leads Created",
        description="Number of new leads created per day",
        metric_type=MetricType.COUNT,
        frequency=Frequency.DAILY,
        thresholds=Thresholds(minimum=5, target=8, excellent=12),
        weight=70,
        data_source_type=DataSourceType.LEADS,
    ),
    KPITemplate(
        role=Role.LEAD_PERSON,
        name="Lead Conversion Rate",
        description="Percentage of leads that convert to sales",
        metric_type=MetricType.PERCENTAGE,
        frequency=Frequency.MONTHLY,
        thresholds=Thresholds(minimum=10, target=20, excellent=30),
        weight=30,
        data_source_type=DataSourceType.CUSTOM,
    ),
    # Sales Person
    KPITemplate(
        role=Role.SALES_PERSON,
        name="Monthly Sales Closed",
        description="Number of sales closed per month",
        metric_type=MetricType.COUNT,
        frequency=Frequency.MONTHLY,
        thresholds=Thresholds(minimum=3, target=6, excellent=10),
        weight=50,
        data_source_type=DataSourceType.SALES,
        data_source_query={"measure": "count"},
    ),
    KPITemplate(
        role=Role.SALES_PERSON,
        name="Monthly Revenue Generated",
        description="Total revenue from closed sales per month",
        metric_type=MetricType.AMOUNT,
        frequency=Frequency.MONTHLY,
        thresholds=Thresholds(minimum=5000, target=10000, excellent=20000),
        weight=50,
        data_source_type=DataSourceType.SALES,
        data_source_query={"measure": "revenue"},
    ),
    # Manager
    KPITemplate(
        role=Role.MANAGER,
        name="Team Performance Average",
        description="Average performance score of team members",
        metric_type=MetricType.PERCENTAGE,
        frequency=Frequency.MONTHLY,
        thresholds=Thresholds(minimum=60, target=75, excellent=90),
        weight=60,
        data_source_type=DataSourceType.CUSTOM,
    ),
    KPITemplate(
        role=Role.MANAGER,
        name="Team Retention Rate",
        description="Percentage of team members retained (no exits)",
        metric_type=MetricType.PERCENTAGE,
        frequency=Frequency.MONTHLY,
        thresholds=Thresholds(minimum=85, target=95, excellent=100),
        weight=40,
        data_source_type=DataSourceType.CUSTOM,
    ),
]


def seed_default_kpis(session: Session) -> int:
    """Insert DEFAULT_KPIS when the catalog is empty. Returns rows created."""
    existing = session.exec(select(KPIDefinition.id).limit(1)).first()
    if existing is not None:
        logger.info("KPI catalog already seeded, skipping")
        return 0
    for template in DEFAULT_KPIS:
        register_kpi(session, template)
    logger.info(f"Seeded {len(DEFAULT_KPIS)} default KPI templates")
    return len(DEFAULT_KPIS)
