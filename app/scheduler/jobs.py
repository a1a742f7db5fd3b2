"""PERFORMA — Scheduler Jobs.

APScheduler cron jobs:
  00:05 daily   — score yesterday for every active eligible employee
  01:00 daily   — PIP trigger sweep
  Mon 09:00     — report PIPs past their end date to their managers
"""

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import BaseModel
from sqlmodel import Session

from app.config import settings
from app.connectors.base import EmployeeDirectory, TransactionalSource
from app.connectors.hr.client import HRClient
from app.core.events import EventType, LoggingNotifier, Notifier, PerformanceEvent
from app.core.logging import get_logger, timed
from app.database import get_session
from app.engine.daily_aggregator import calculate_employee_performance
from app.engine.pip_manager import check_and_trigger_pips, find_overdue_pips

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler()


class BatchResult(BaseModel):
    total: int = 0
    success: int = 0
    skipped: int = 0
    errors: int = 0


async def run_daily_calculation(
    session: Session,
    source: TransactionalSource,
    directory: EmployeeDirectory,
    day: Optional[date] = None,
    *,
    notifier: Optional[Notifier] = None,
    timeout: Optional[float] = None,
) -> BatchResult:
    """Calculate `day` (default yesterday) for every active eligible employee.

    Each employee runs under its own timeout; failures and timeouts are
    counted and left for the next scheduled run.
    """
    day = day or (datetime.now(timezone.utc).date() - timedelta(days=1))
    timeout = timeout if timeout is not None else settings.employee_timeout_seconds
    notifier = notifier or LoggingNotifier()

    employees = await directory.get_active_eligible_employees()
    result = BatchResult(total=len(employees))
    date_key = day.isoformat()
    logger.info(f"🚀 Daily calculation for {date_key}: {len(employees)} employees")

    with timed(logger, f"✅ Daily calculation finished for {date_key}", date_key=date_key):
        for employee in employees:
            try:
                daily = await asyncio.wait_for(
                    calculate_employee_performance(
                        session,
                        employee.id,
                        day,
                        source=source,
                        directory=directory,
                        notifier=notifier,
                    ),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                session.rollback()
                result.errors += 1
                logger.error(
                    f"⏱️ Calculation timed out after {timeout}s",
                    extra={"employee_id": employee.id, "date_key": date_key},
                )
                continue
            except Exception as e:
                session.rollback()
                result.errors += 1
                logger.error(
                    f"❌ Calculation failed: {e}",
                    extra={"employee_id": employee.id, "date_key": date_key},
                    exc_info=True,
                )
                continue

            if daily is None:
                result.skipped += 1
            else:
                result.success += 1

    logger.info(
        f"Daily calculation totals: {result.success} success, "
        f"{result.skipped} skipped, {result.errors} errors"
    )
    return result


def notify_overdue_pips(session: Session, notifier: Notifier) -> int:
    overdue = find_overdue_pips(session)
    for pip in overdue:
        notifier.emit(
            PerformanceEvent(
                type=EventType.PIP_OVERDUE,
                employee_id=pip.employee_id,
                payload={
                    "pip_id": pip.id,
                    "assigned_manager": pip.assigned_manager,
                    "end_date": pip.end_date.isoformat(),
                },
            )
        )
    return len(overdue)


async def daily_calculation_job():
    """Score yesterday for the whole fleet."""
    logger.info("Scheduled daily calculation starting...")
    client = HRClient()
    try:
        session = next(get_session())
        await run_daily_calculation(session, client, client)
    except Exception as e:
        logger.error(f"Scheduled daily calculation failed: {e}")
    finally:
        await client.close()


async def pip_check_job():
    logger.info("Scheduled PIP check starting...")
    client = HRClient()
    try:
        session = next(get_session())
        result = await check_and_trigger_pips(session, client)
        logger.info(
            f"Scheduled PIP check complete. New PIPs: {result.new_pips}, "
            f"warnings: {result.warnings_sent}"
        )
    except Exception as e:
        logger.error(f"Scheduled PIP check failed: {e}")
    finally:
        await client.close()


async def weekly_pip_review_job():
    logger.info("Scheduled overdue PIP review starting...")
    try:
        session = next(get_session())
        count = notify_overdue_pips(session, LoggingNotifier())
        logger.info(f"Overdue PIPs reported: {count}")
    except Exception as e:
        logger.error(f"Scheduled overdue PIP review failed: {e}")


def start_scheduler():
    """Configure and start the scheduler."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return

    scheduler.add_job(
        daily_calculation_job,
        "cron",
        hour=settings.calculation_hour,
        minute=settings.calculation_minute,
        id="daily_calculation",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    scheduler.add_job(
        pip_check_job,
        "cron",
        hour=settings.pip_check_hour,
        minute=0,
        id="daily_pip_check",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    scheduler.add_job(
        weekly_pip_review_job,
        "cron",
        day_of_week=settings.weekly_review_weekday,
        hour=settings.weekly_review_hour,
        minute=0,
        id="weekly_pip_review",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started. Calculation {settings.calculation_hour:02d}:"
        f"{settings.calculation_minute:02d}, PIP check {settings.pip_check_hour:02d}:00 UTC"
    )


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
