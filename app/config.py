"""PERFORMA — Central Configuration via Pydantic Settings."""

import os
from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database ──
    database_url: str = ""

    # ── HR System (identity, leads, sales, attendance) ──
    hr_api_base_url: str = "http://localhost:8080/api"
    hr_api_token: Optional[str] = None

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = True
    calculation_hour: int = 0  # Daily calculation at 00:05
    calculation_minute: int = 5
    pip_check_hour: int = 1  # PIP sweep at 01:00
    weekly_review_weekday: str = "mon"
    weekly_review_hour: int = 9
    employee_timeout_seconds: float = 60.0

    # ── Scoring Policy ──
    working_weekdays: List[int] = [0, 1, 2, 3, 4, 5]  # Mon=0 … Sat=5
    eligible_roles: List[str] = ["Lead Person", "Sales Person", "Manager"]
    escalation_roles: List[str] = ["Manager", "HR", "Admin"]

    @field_validator("working_weekdays")
    @classmethod
    def _check_weekdays(cls, value: List[int]) -> List[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("working_weekdays must lie in 0 (Mon) .. 6 (Sun)")
        return sorted(set(value))

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/performa.db"
        return "sqlite:///./performa.db"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
