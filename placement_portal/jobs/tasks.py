"""
Celery tasks - one per job name, all thin wrappers around run_job().

Retry policy: a failing handler is retried with linear backoff until the
job's `attempts` are used up. The last failure lands in the MongoDB
dead-letter store; nothing retries it after that.
"""

import logging

from celery import Task
from pymongo.errors import PyMongoError

from placement_portal.core.config import get_settings
from placement_portal.jobs.celery_app import celery_app
from placement_portal.jobs.handlers import (
    run_job,
    ELIGIBILITY_FILTER_JOB,
    AUTO_PUBLISH_JOB,
    EXPORT_REGISTRATIONS_JOB,
    REFRESH_VIEWS_JOB,
)
from placement_portal.services.dead_letter_service import get_dead_letter_service

settings = get_settings()
logger = logging.getLogger(__name__)

TASK_PREFIX = "placement_portal.jobs."


def task_name(job_name: str) -> str:
    return TASK_PREFIX + job_name


class PlacementJobTask(Task):
    """Base task: dead-letters a job once its retries are exhausted."""

    job_name: str = ""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        payload = kwargs.get("payload", args[0] if args else {})
        attempts = kwargs.get("attempts", args[1] if len(args) > 1 else settings.job_attempts)
        logger.error("Job %s (%s) failed after %s attempts: %s", self.job_name, task_id, attempts, exc)
        try:
            get_dead_letter_service().record(
                task_id=task_id,
                job_name=self.job_name,
                payload=payload,
                attempts=attempts,
                error=f"{exc.__class__.__name__}: {exc}",
                traceback=str(einfo) if einfo else None,
            )
        except PyMongoError as e:
            logger.error("Could not dead-letter job %s (%s): %s", self.job_name, task_id, e)


def _execute(task: PlacementJobTask, payload: dict, attempts: int) -> dict:
    try:
        return run_job(task.job_name, payload)
    except Exception as exc:
        retries = task.request.retries
        if retries + 1 >= attempts:
            raise
        countdown = settings.job_retry_backoff_seconds * (retries + 1)
        logger.warning(
            "Job %s attempt %d/%d failed (%s); retrying in %ss",
            task.job_name, retries + 1, attempts, exc, countdown
        )
        raise task.retry(exc=exc, countdown=countdown, max_retries=attempts - 1)


@celery_app.task(bind=True, base=PlacementJobTask, name=task_name(ELIGIBILITY_FILTER_JOB), job_name=ELIGIBILITY_FILTER_JOB)
def eligibility_filter(self, payload: dict, attempts: int = 3) -> dict:
    return _execute(self, payload, attempts)


@celery_app.task(bind=True, base=PlacementJobTask, name=task_name(AUTO_PUBLISH_JOB), job_name=AUTO_PUBLISH_JOB)
def auto_publish(self, payload: dict, attempts: int = 3) -> dict:
    return _execute(self, payload, attempts)


@celery_app.task(bind=True, base=PlacementJobTask, name=task_name(EXPORT_REGISTRATIONS_JOB), job_name=EXPORT_REGISTRATIONS_JOB)
def export_registrations_csv(self, payload: dict, attempts: int = 3) -> dict:
    return _execute(self, payload, attempts)


@celery_app.task(bind=True, base=PlacementJobTask, name=task_name(REFRESH_VIEWS_JOB), job_name=REFRESH_VIEWS_JOB)
def refresh_materialized_views(self, payload: dict, attempts: int = 2) -> dict:
    return _execute(self, payload, attempts)


TASKS = {
    ELIGIBILITY_FILTER_JOB: eligibility_filter,
    AUTO_PUBLISH_JOB: auto_publish,
    EXPORT_REGISTRATIONS_JOB: export_registrations_csv,
    REFRESH_VIEWS_JOB: refresh_materialized_views,
}
