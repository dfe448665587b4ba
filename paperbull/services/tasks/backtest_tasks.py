"""Backtest execution tasks."""

import logging

from paperbull.core.celery_app import celery_app
from paperbull.core.database import get_sync_db
from paperbull.models.backtest import Backtest, BacktestStatus
from paperbull.services.backtest_service import execute_record
from paperbull.services.backtesting import BacktestEngine

from ._common import run_async

logger = logging.getLogger(__name__)


@celery_app.task(name="paperbull.services.tasks.run_backtest_job")
def run_backtest_job(backtest_id: int):
    """Execute a persisted backtest and store its outcome.

    Not retried: data-quality and validation failures are not transient,
    and provider fallback already happened inside the run.
    """
    with get_sync_db() as db:
        record = db.get(Backtest, backtest_id)
        if record is None:
            logger.warning(f"Backtest {backtest_id} not found; skipping")
            return {"status": "skipped", "reason": "not_found"}

        if record.status not in (BacktestStatus.PENDING, BacktestStatus.FAILED):
            logger.info(f"Backtest {backtest_id} is {record.status.value}; skipping")
            return {"status": "skipped", "reason": record.status.value}

        record.mark_running()
        db.commit()

        run_async(execute_record(record, BacktestEngine()))

        return {
            "status": record.status.value,
            "backtest_id": backtest_id,
            "error": record.error,
        }
