"""
Job Routes - operator view of background jobs (HEAD only)

GET /jobs/dead-letters - Jobs that failed on every attempt
POST /jobs/dead-letters/{id}/retry - Re-dispatch a dead-lettered job
GET /jobs/{task_id} - State of a queued job from the result backend
"""

from typing import List, Optional

from celery.result import AsyncResult
from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.errors import PyMongoError

from placement_portal.core.auth import require_roles
from placement_portal.jobs.celery_app import celery_app
from placement_portal.jobs.dispatcher import JobDispatcher, get_job_dispatcher
from placement_portal.models import UserRole
from placement_portal.schemas.schemas import DeadLetterResponse, RetryResponse, JobStatusResponse
from placement_portal.services.dead_letter_service import DeadLetterService, get_dead_letter_service

router = APIRouter(prefix="/jobs", tags=["Jobs"])

head_only = require_roles(UserRole.HEAD)


@router.get("/dead-letters", response_model=List[DeadLetterResponse])
async def list_dead_letters(
    status: Optional[str] = Query("open", pattern="^(open|retried)$"),
    limit: int = Query(50, ge=1, le=500),
    user: dict = Depends(head_only),
    service: DeadLetterService = Depends(get_dead_letter_service)
):
    try:
        return service.list_jobs(status=status, limit=limit)
    except PyMongoError as e:
        raise HTTPException(status_code=503, detail=f"Dead-letter store unavailable: {e}")


@router.post("/dead-letters/{dead_letter_id}/retry", response_model=RetryResponse)
async def retry_dead_letter(
    dead_letter_id: str,
    user: dict = Depends(head_only),
    service: DeadLetterService = Depends(get_dead_letter_service),
    dispatcher: JobDispatcher = Depends(get_job_dispatcher)
):
    """Dispatch the job again with its original payload; runs inline if the queue is down."""
    doc = service.get(dead_letter_id)
    outcome = dispatcher.submit(doc["job_name"], doc.get("payload") or {}, attempts=doc.get("attempts"))
    service.mark_retried(dead_letter_id, outcome.task_id)
    return {"dead_letter_id": dead_letter_id, "dispatch": outcome.as_dict()}


@router.get("/{task_id}", response_model=JobStatusResponse)
async def job_status(task_id: str, user: dict = Depends(head_only)):
    result = AsyncResult(task_id, app=celery_app)
    payload = None
    if result.ready():
        payload = result.result if result.successful() else str(result.result)
    return {"task_id": task_id, "state": result.state, "result": payload}
