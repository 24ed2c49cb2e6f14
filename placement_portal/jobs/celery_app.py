"""
Celery application.

Broker: Redis. Results: MongoDB (same server as the dead-letter store).

Run a worker and the scheduler:
    celery -A placement_portal.jobs.celery_app worker --loglevel=info
    celery -A placement_portal.jobs.celery_app beat --loglevel=info
"""

from celery import Celery

from placement_portal.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "placement_portal",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["placement_portal.jobs.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    result_expires=7 * 24 * 3600,
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "refresh-materialized-views": {
            "task": "placement_portal.jobs.refresh-materialized-views",
            "schedule": settings.materialized_view_refresh_seconds,
            "kwargs": {"payload": {}, "attempts": settings.maintenance_job_attempts},
        },
    },
)

app = celery_app
