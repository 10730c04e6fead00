"""
Overdue scan: flags SENT invoices whose due date has passed.

Runs either as a one-shot command (`invoicely-overdue`, e.g. from cron) or,
when OVERDUE_SCAN_ENABLED is set, as a background loop inside the API
process. Each run is a plain update_status(..., OVERDUE) per invoice, so
the state machine rules still apply.
"""
import argparse
import asyncio
import logging
from datetime import date
from typing import Optional

from invoicely.core.config import settings
from invoicely.db.session import SessionLocal
from invoicely.services.invoice_service import mark_overdue_invoices

logger = logging.getLogger(__name__)


def run_overdue_scan(today: Optional[date] = None) -> int:
    """One pass over all users. Returns the number of invoices marked overdue."""
    db = SessionLocal()
    try:
        return mark_overdue_invoices(db, today=today)
    except Exception as e:
        db.rollback()
        logger.error(f"[OverdueScan] Scan failed: {type(e).__name__}: {e}")
        raise
    finally:
        db.close()


# ============================================================================
# BACKGROUND TASK: runs in asyncio loop alongside FastAPI
# ============================================================================

_scheduler_running = False
_scheduler_task: Optional[asyncio.Task] = None


async def _overdue_scheduler_loop(interval_seconds: int):
    global _scheduler_running
    _scheduler_running = True

    logger.info(f"[OverdueScan] Scheduler started. Interval: {interval_seconds}s")

    while _scheduler_running:
        try:
            # Scanner is blocking DB work
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, run_overdue_scan)
        except Exception as e:
            logger.error(f"[OverdueScan] Scheduler error: {e}")

        await asyncio.sleep(interval_seconds)


def start_overdue_scheduler(interval_seconds: Optional[int] = None):
    """Start the background scan. Called from the FastAPI lifespan."""
    global _scheduler_task
    interval = interval_seconds or settings.OVERDUE_SCAN_INTERVAL_SECONDS
    _scheduler_task = asyncio.create_task(_overdue_scheduler_loop(interval))


def stop_overdue_scheduler():
    global _scheduler_running, _scheduler_task
    _scheduler_running = False
    if _scheduler_task is not None:
        _scheduler_task.cancel()
        _scheduler_task = None
    logger.info("[OverdueScan] Scheduler stopped")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Mark past-due sent invoices as overdue.")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Treat this ISO date as today (default: today)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    count = run_overdue_scan(today=args.date)
    print(f"Marked {count} invoice(s) overdue")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
