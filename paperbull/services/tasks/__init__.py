"""Celery tasks package.

Re-exports all tasks so ``celery_app.conf.include`` task names
(``paperbull.services.tasks.<name>``) resolve.
"""

from .backtest_tasks import run_backtest_job  # noqa: F401
from ._common import run_async  # noqa: F401
