"""PERFORMA — FastAPI Application Entry Point.

Hosts the engine operations over HTTP and runs the cron driver in-process
unless deployed serverless.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from app.api.performance_routes import router as performance_router
from app.api.pip_routes import router as pip_router
from app.core.kpi_catalog import seed_default_kpis
from app.core.logging import get_logger
from app.database import engine, init_db, test_connection
from app.scheduler.jobs import scheduler, start_scheduler, stop_scheduler

logger = get_logger("main")

VERSION = "1.0.0"

IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


def _prepare_database() -> bool:
    """Create tables and seed the default KPI catalog on first start."""
    if not test_connection():
        logger.error("❌ Database NOT connected — endpoints will fail")
        return False
    try:
        init_db()
        with Session(engine) as session:
            created = seed_default_kpis(session)
        if created:
            logger.info(f"🌱 Seeded {created} KPI definitions")
        return True
    except Exception as e:
        logger.error(f"❌ Database setup failed: {e}", exc_info=True)
        return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    mode = "serverless" if IS_SERVERLESS else "long-running"
    logger.info(f"🚀 PERFORMA {VERSION} starting ({mode})")
    _prepare_database()
    if not IS_SERVERLESS:
        start_scheduler()
    yield
    if not IS_SERVERLESS:
        stop_scheduler()
    logger.info("PERFORMA shut down")


app = FastAPI(
    title="PERFORMA",
    description=(
        "Score employees against role KPIs, derive rolling performance "
        "signals, and manage performance improvement plans."
    ),
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(performance_router)
app.include_router(pip_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Liveness plus database and scheduler state."""
    return {
        "status": "healthy",
        "service": "performa",
        "version": VERSION,
        "database": "connected" if test_connection() else "unavailable",
        "scheduler": "running" if scheduler.running else "stopped",
        "environment": "serverless" if IS_SERVERLESS else "local",
    }
