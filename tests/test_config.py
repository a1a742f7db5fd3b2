import pytest
from pydantic import ValidationError

from app.config import Settings
from app.engine.target_resolver import WorkingCalendar


def test_sqlite_fallback_without_database_url(monkeypatch):
    monkeypatch.delenv("VERCEL", raising=False)
    assert Settings(database_url="").effective_database_url == "sqlite:///./performa.db"
    assert Settings(database_url="postgresql://u:p@db/x").effective_database_url.startswith(
        "postgresql://"
    )


def test_working_weekdays_are_normalised():
    assert Settings(working_weekdays=[4, 0, 4]).working_weekdays == [0, 4]


def test_working_weekdays_reject_out_of_range():
    with pytest.raises(ValidationError):
        Settings(working_weekdays=[0, 7])


def test_calendar_uses_configured_weekdays():
    settings = Settings(working_weekdays=[0, 1, 2, 3, 4])
    calendar = WorkingCalendar(settings.working_weekdays)
    assert calendar.working_weekdays == frozenset({0, 1, 2, 3, 4})
