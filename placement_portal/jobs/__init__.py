"""
Background jobs: handlers, Celery tasks and the dispatcher.

Import tasks/celery_app only where a Celery app is needed; handlers and
the dispatcher are usable without a broker.
"""

from placement_portal.jobs.handlers import run_job, JOB_HANDLERS
from placement_portal.jobs.dispatcher import JobDispatcher, DispatchOutcome, get_job_dispatcher

__all__ = ["run_job", "JOB_HANDLERS", "JobDispatcher", "DispatchOutcome", "get_job_dispatcher"]
