"""PERFORMA — Engine Events.

The engine emits structured events; delivering them (email, SMS, chat) is
the host's job. LoggingNotifier is the default sink.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field

from app.core.logging import get_logger

logger = get_logger("events")


class EventType(str, Enum):
    RECALCULATED = "performance.recalculated"
    PIP_TRIGGERED = "pip.triggered"
    PIP_WARNING = "pip.warning"
    PIP_CLOSED = "pip.closed"
    PIP_EXTENDED = "pip.extended"
    PIP_OVERDUE = "pip.overdue"


class PerformanceEvent(BaseModel):
    type: EventType
    employee_id: str
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    payload: Dict[str, Any] = {}


class Notifier(ABC):
    """Sink for engine events."""

    @abstractmethod
    def emit(self, event: PerformanceEvent) -> None:
        ...


class LoggingNotifier(Notifier):
    def emit(self, event: PerformanceEvent) -> None:
        logger.info(
            f"{event.type.value}: {event.payload}",
            extra={"event": event.type.value, "employee_id": event.employee_id},
        )
