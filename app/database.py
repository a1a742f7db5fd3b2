"""PERFORMA — Database Engine & Session Factory."""

from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from app.config import settings
from app.core.logging import get_logger

logger = get_logger("database")


def _mask_url(url: str) -> str:
    """Hide the password part of a database URL."""
    return make_url(url).render_as_string(hide_password=True)


def build_engine(url: str) -> Engine:
    """Engine for `url`; in-memory SQLite shares one connection across threads."""
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        logger.info(f"📦 Database backend: SQLite ({url})")
    else:
        kwargs = {
            "pool_pre_ping": True,
            "pool_size": 5,
            "max_overflow": 10,
            "pool_recycle": 300,
        }
        logger.info(f"🐘 Database backend: PostgreSQL ({_mask_url(url)})")
    return create_engine(url, echo=False, **kwargs)


engine = build_engine(settings.effective_database_url)


def test_connection(bind: Optional[Engine] = None) -> bool:
    """SELECT 1 against the database."""
    try:
        with (bind or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("✅ Database connection test: SUCCESS")
        return True
    except Exception as e:
        logger.error(f"❌ Database connection test: FAILED — {e}")
        return False


def init_db(bind: Optional[Engine] = None) -> None:
    """Create the KPI, performance and PIP tables."""
    import app.models.kpi_models  # noqa: F401
    import app.models.performance_models  # noqa: F401
    import app.models.pip_models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
    logger.info("✅ Database tables ready")


def get_session():
    """Dependency — yields a DB session."""
    with Session(engine) as session:
        yield session
