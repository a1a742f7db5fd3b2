"""PERFORMA — Manager Resolution for PIPs."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from app.config import settings
from app.connectors.base import EmployeeDirectory
from app.core.logging import get_logger

logger = get_logger("engine.escalation")


class ManagerResolver(ABC):
    """Decides who owns a new PIP."""

    @abstractmethod
    async def resolve(self, employee_id: str) -> Optional[str]:
        ...


class DirectoryManagerResolver(ManagerResolver):
    """Direct manager first, then any active user holding an escalation role."""

    def __init__(
        self,
        directory: EmployeeDirectory,
        fallback_roles: Optional[Sequence[str]] = None,
    ):
        self.directory = directory
        self.fallback_roles = list(fallback_roles or settings.escalation_roles)

    async def resolve(self, employee_id: str) -> Optional[str]:
        manager_id = await self.directory.find_manager_for(employee_id)
        if manager_id:
            return manager_id

        for candidate in await self.directory.find_active_with_roles(self.fallback_roles):
            if candidate.id != employee_id and candidate.active:
                logger.info(
                    f"No direct manager, escalating to {candidate.role} {candidate.id}",
                    extra={"employee_id": employee_id},
                )
                return candidate.id
        return None
