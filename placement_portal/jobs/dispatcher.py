"""
Job dispatcher - "enqueue, or do it now".

Every state-changing background job goes through JobDispatcher.submit():

    queue up?   -> enqueue to Celery, return the task id
    queue down? -> log a warning, run the same handler inline

Both paths call run_job(), so the end state does not depend on which
one ran. Pass `db` to make the inline run part of the caller's
transaction.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from kombu.exceptions import OperationalError
from sqlalchemy.orm import Session

from placement_portal.core.config import get_settings
from placement_portal.core.exceptions import QueueUnavailable, UnknownJob
from placement_portal.jobs.handlers import run_job, JOB_HANDLERS

logger = logging.getLogger(__name__)


@dataclass
class DispatchOutcome:
    job_name: str
    queued: bool
    task_id: Optional[str] = None
    result: Optional[dict] = None

    def as_dict(self) -> dict:
        return {
            "job_name": self.job_name,
            "queued": self.queued,
            "task_id": self.task_id,
            "result": self.result,
        }


class CeleryJobQueue:
    """Enqueues named jobs onto the Celery broker."""

    def enqueue(self, name: str, payload: dict, attempts: int) -> str:
        from placement_portal.jobs.tasks import TASKS

        task = TASKS.get(name)
        if task is None:
            raise UnknownJob(f"Unknown job: {name}")
        try:
            async_result = task.apply_async(
                kwargs={"payload": payload, "attempts": attempts},
                retry=False,
            )
        except (OperationalError, ConnectionError) as e:
            raise QueueUnavailable(f"Could not enqueue {name}", cause=e) from e
        return async_result.id


class JobDispatcher:
    def __init__(self, queue=None, enabled: Optional[bool] = None, default_attempts: Optional[int] = None):
        settings = get_settings()
        self.queue = queue if queue is not None else CeleryJobQueue()
        self.enabled = settings.jobs_enabled if enabled is None else enabled
        self.default_attempts = default_attempts or settings.job_attempts

    def submit(
        self,
        name: str,
        payload: dict,
        attempts: Optional[int] = None,
        db: Optional[Session] = None
    ) -> DispatchOutcome:
        """
        Queue `name` with `payload`, falling back to an inline run.

        Raises:
            UnknownJob: no handler for `name` (checked before anything runs)
            Whatever the handler raises when it runs inline
        """
        if name not in JOB_HANDLERS:
            raise UnknownJob(f"Unknown job: {name}")

        if self.enabled:
            try:
                task_id = self.queue.enqueue(name, payload, attempts or self.default_attempts)
                logger.info("Job %s enqueued (task %s)", name, task_id)
                return DispatchOutcome(job_name=name, queued=True, task_id=task_id)
            except QueueUnavailable as e:
                logger.warning("Queue unavailable for %s (%s); running inline", name, e.cause or e)

        result = run_job(name, payload, db=db)
        return DispatchOutcome(job_name=name, queued=False, result=result)


@lru_cache()
def get_job_dispatcher() -> JobDispatcher:
    """FastAPI dependency - process-wide dispatcher."""
    return JobDispatcher()
