"""Celery worker and beat schedule for booking maintenance.

Start with ``celery -A app.worker worker -B``. The internal HTTP endpoints
expose the same sweeps for external schedulers.
"""

from celery import Celery
from celery.schedules import crontab

from app.config import settings

celery_app = Celery(
    "parkeo_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.availability_timezone,
    enable_utc=True,
    # Sweeps are idempotent; redelivery after a crash is harmless
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=120,
    task_soft_time_limit=90,
    worker_prefetch_multiplier=1,
    result_expires=3600,
)

celery_app.conf.beat_schedule = {
    "expire-stale-bookings": {
        "task": "app.tasks.expire_stale_bookings",
        "schedule": crontab(minute="*/5"),
    },
    "retry-failed-refunds": {
        "task": "app.tasks.retry_failed_refunds",
        "schedule": crontab(minute="*/15"),
    },
}


if __name__ == "__main__":
    celery_app.start()
