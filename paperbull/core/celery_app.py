from celery import Celery

from paperbull.config import settings

celery_app = Celery(
    "paperbull",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "paperbull.services.tasks.backtest_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    task_soft_time_limit=240,  # 4 minutes (soft limit)
    worker_prefetch_multiplier=1,
    result_expires=3600,  # 1 hour
    task_acks_late=True,  # Acknowledge after completion
    worker_max_tasks_per_child=100,
)

celery_app.conf.task_routes = {
    "paperbull.services.tasks.run_backtest_job": {"queue": "backtests"},
}
