"""PERFORMA — HR System API Client.

Default implementation of the collaborator interfaces over the host HR
system's REST API. Handles authentication, retry with backoff, rate
limiting, and pagination.
"""

import asyncio
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import httpx

from app.config import settings
from app.connectors.base import (
    AttendanceStatus,
    EmployeeDirectory,
    EmployeeInfo,
    SalesTotals,
    TransactionalSource,
)
from app.core.errors import HRAPIError
from app.core.logging import get_logger

logger = get_logger("hr.client")

MAX_RETRIES = 3
RETRY_BASE_DELAY = 2  # seconds
RETRYABLE_STATUS = {408, 429}


def _employee_from_json(row: Dict[str, Any]) -> EmployeeInfo:
    return EmployeeInfo(
        id=str(row.get("id") or row.get("_id")),
        role=row.get("role", ""),
        active=bool(row.get("active", True)),
        full_name=row.get("fullName", ""),
        manager_id=row.get("managerId"),
    )


class HRClient(TransactionalSource, EmployeeDirectory):
    """Async HTTP client for the HR system."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_base_delay: float = RETRY_BASE_DELAY,
    ):
        self.base_url = (base_url or settings.hr_api_base_url).rstrip("/")
        self.token = token if token is not None else settings.hr_api_token
        self.retry_base_delay = retry_base_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
            self._client = httpx.AsyncClient(
                timeout=30.0, headers=headers, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ── Transport ──

    def _url(self, path_or_url: str) -> str:
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.base_url}{path_or_url}"

    async def _backoff(self, attempt: int, reason: str) -> None:
        wait = self.retry_base_delay * (2 ** (attempt - 1))
        logger.warning(f"{reason}. Retrying in {wait}s (attempt {attempt}/{MAX_RETRIES})")
        await asyncio.sleep(wait)

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        if resp.headers.get("content-type", "").startswith("application/json"):
            body = resp.json()
            if isinstance(body, dict) and body.get("message"):
                return str(body["message"])
        return f"HR API returned {resp.status_code}"

    async def _request(
        self,
        method: str,
        path_or_url: str,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Send one request; 429, 5xx and transport errors are retried."""
        client = await self._get_client()
        url = self._url(path_or_url)

        for attempt in range(1, MAX_RETRIES + 1):
            final = attempt == MAX_RETRIES
            try:
                resp = await client.request(method, url, params=params)
            except httpx.RequestError as e:
                if final:
                    raise HRAPIError(
                        f"HR API unreachable after {MAX_RETRIES} attempts: {e}"
                    ) from e
                await self._backoff(attempt, f"Request error ({e})")
                continue

            if resp.is_success:
                return resp.json()
            if resp.status_code in RETRYABLE_STATUS or resp.status_code >= 500:
                if not final:
                    await self._backoff(attempt, f"HR API answered {resp.status_code}")
                    continue
            raise HRAPIError(self._error_message(resp), resp.status_code)

        raise HRAPIError("Max retries exhausted")

    async def _paginated_get(
        self,
        path: str,
        params: Dict[str, Any] | None = None,
        max_pages: int = 50,
    ) -> List[Dict[str, Any]]:
        """Collect `data` across pages by following `paging.next`."""
        rows: List[Dict[str, Any]] = []
        next_url: Optional[str] = path
        page_params = params
        pages = 0

        while next_url and pages < max_pages:
            result = await self._request("GET", next_url, page_params)
            rows.extend(result.get("data", []))
            next_url = (result.get("paging") or {}).get("next")
            page_params = None
            pages += 1

        logger.info(f"Fetched {len(rows)} rows from {path} in {pages} page(s)")
        return rows

    # ── TransactionalSource ──

    async def count_leads(self, employee_id: str, start: date, end: date) -> int:
        result = await self._request(
            "GET",
            "/leads/count",
            {"employeeId": employee_id, "start": start.isoformat(), "end": end.isoformat()},
        )
        return int(result.get("count", 0))

    async def count_and_sum_sales(
        self, employee_id: str, start: date, end: date
    ) -> SalesTotals:
        result = await self._request(
            "GET",
            "/sales/summary",
            {
                "employeeId": employee_id,
                "start": start.isoformat(),
                "end": end.isoformat(),
                "status": "closed",
            },
        )
        return SalesTotals(
            count=int(result.get("count", 0)), revenue=float(result.get("revenue", 0))
        )

    async def get_attendance_status(
        self, employee_id: str, day: date
    ) -> AttendanceStatus:
        result = await self._request(
            "GET", "/attendance/status", {"employeeId": employee_id, "date": day.isoformat()}
        )
        try:
            return AttendanceStatus(str(result.get("status", "")).upper())
        except ValueError:
            return AttendanceStatus.UNKNOWN

    # ── EmployeeDirectory ──

    async def get_employee(self, employee_id: str) -> Optional[EmployeeInfo]:
        try:
            result = await self._request("GET", f"/employees/{employee_id}")
        except HRAPIError as e:
            if e.status_code == 404:
                return None
            raise
        return _employee_from_json(result)

    async def get_active_eligible_employees(self) -> List[EmployeeInfo]:
        rows = await self._paginated_get(
            "/employees", {"active": "true", "roles": ",".join(settings.eligible_roles)}
        )
        return [_employee_from_json(r) for r in rows]

    async def find_manager_for(self, employee_id: str) -> Optional[str]:
        employee = await self.get_employee(employee_id)
        return employee.manager_id if employee else None

    async def find_active_with_roles(self, roles: Sequence[str]) -> List[EmployeeInfo]:
        rows = await self._paginated_get(
            "/employees", {"active": "true", "roles": ",".join(roles)}
        )
        return [_employee_from_json(r) for r in rows]

    async def find_team_members(self, manager_id: str) -> List[EmployeeInfo]:
        rows = await self._paginated_get(
            "/employees", {"active": "true", "managerId": manager_id}
        )
        return [_employee_from_json(r) for r in rows]


async def get_hr_client():
    """Dependency — yields an HR client and closes it afterwards."""
    client = HRClient()
    try:
        yield client
    finally:
        await client.close()
