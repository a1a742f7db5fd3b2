"""PERFORMA — External Collaborator Interfaces.

The engine never talks to sales, lead, attendance or identity storage
directly. Hosts implement these two interfaces; app.connectors.hr.client
ships an HTTP implementation.
"""

from abc import ABC, abstractmethod
from datetime import date
from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel


class AttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    HALF_DAY = "HALF_DAY"
    LEAVE = "LEAVE"
    HOLIDAY = "HOLIDAY"
    UNKNOWN = "UNKNOWN"


class SalesTotals(BaseModel):
    count: int = 0
    revenue: float = 0.0


class EmployeeInfo(BaseModel):
    id: str
    role: str
    active: bool = True
    full_name: str = ""
    manager_id: Optional[str] = None


class TransactionalSource(ABC):
    """Read-only access to the transactional records KPIs are measured on."""

    @abstractmethod
    async def count_leads(self, employee_id: str, start: date, end: date) -> int:
        """Leads created or worked by the employee in [start, end]."""
        ...

    @abstractmethod
    async def count_and_sum_sales(
        self, employee_id: str, start: date, end: date
    ) -> SalesTotals:
        """Closed sales and their revenue in [start, end]."""
        ...

    @abstractmethod
    async def get_attendance_status(
        self, employee_id: str, day: date
    ) -> AttendanceStatus:
        ...


class EmployeeDirectory(ABC):
    """Identity and role store."""

    @abstractmethod
    async def get_employee(self, employee_id: str) -> Optional[EmployeeInfo]:
        ...

    @abstractmethod
    async def get_active_eligible_employees(self) -> List[EmployeeInfo]:
        """Active employees whose role takes part in automated scoring."""
        ...

    @abstractmethod
    async def find_manager_for(self, employee_id: str) -> Optional[str]:
        ...

    @abstractmethod
    async def find_active_with_roles(
        self, roles: Sequence[str]
    ) -> List[EmployeeInfo]:
        ...

    @abstractmethod
    async def find_team_members(self, manager_id: str) -> List[EmployeeInfo]:
        """Active employees reporting directly to `manager_id`."""
        ...
