"""
Eligibility Routes

POST /eligibility/{drive_id}/filter - Run eligibility with explicit criteria (COORDINATOR)
GET /eligibility/{drive_id}/list - Eligible students, computed on first read (COORDINATOR, HEAD)
GET /eligibility/mine - Drives the student can register for (STUDENT)
GET /eligibility/{drive_id}/check - Why the student can or cannot register (STUDENT)
GET /subfilter/{drive_id}/apply - Narrow eligible students before publishing (COORDINATOR)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from placement_portal.core.auth import get_current_student, require_roles
from placement_portal.core.config import get_settings
from placement_portal.db.postgres import get_db_session
from placement_portal.jobs.dispatcher import JobDispatcher, get_job_dispatcher
from placement_portal.jobs.handlers import ELIGIBILITY_FILTER_JOB
from placement_portal.models import UserRole
from placement_portal.schemas.schemas import (
    FilterRequest, DispatchResponse, EligibleStudent, EligibilityCheckResponse, SubFilterResponse
)
from placement_portal.services import drive_service, eligibility_service

settings = get_settings()

router = APIRouter(tags=["Eligibility"])


@router.post("/eligibility/{drive_id}/filter", response_model=DispatchResponse, status_code=202)
async def filter_students(
    drive_id: int,
    criteria: FilterRequest,
    user: dict = Depends(require_roles(UserRole.COORDINATOR)),
    dispatcher: JobDispatcher = Depends(get_job_dispatcher)
):
    """
    Evaluate the drive against the coordinator's criteria.

    Queued as an eligibility-filter job; runs inside this request when
    the queue is down.
    """
    payload = {"drive_id": drive_id, **criteria.model_dump(), "filtered_by": user["user_id"]}
    with get_db_session() as db:
        drive_service.load_drive(db, drive_id)
        outcome = dispatcher.submit(ELIGIBILITY_FILTER_JOB, payload, attempts=settings.job_attempts, db=db)
    return outcome.as_dict()


@router.get("/eligibility/{drive_id}/list", response_model=List[EligibleStudent])
async def list_eligible(
    drive_id: int,
    user: dict = Depends(require_roles(UserRole.COORDINATOR, UserRole.HEAD))
):
    with get_db_session() as db:
        return eligibility_service.ensure_eligibility(db, drive_id, user)


@router.get("/eligibility/mine")
async def my_drives(student: dict = Depends(get_current_student)):
    with get_db_session() as db:
        return eligibility_service.list_visible_drives_for_student(db, student["student_id"])


@router.get("/eligibility/{drive_id}/check", response_model=EligibilityCheckResponse)
async def check_eligibility(drive_id: int, student: dict = Depends(get_current_student)):
    with get_db_session() as db:
        return eligibility_service.check_student_eligibility(db, drive_id, student["student_id"])


@router.get("/subfilter/{drive_id}/apply", response_model=SubFilterResponse)
async def apply_sub_filter(
    drive_id: int,
    cgpa_min: Optional[float] = Query(None, ge=0, le=10),
    cgpa_max: Optional[float] = Query(None, ge=0, le=10),
    branch: Optional[str] = None,
    exclude_backlogs: Optional[int] = Query(None, ge=0),
    user: dict = Depends(require_roles(UserRole.COORDINATOR))
):
    with get_db_session() as db:
        return eligibility_service.apply_sub_filter(
            db, drive_id,
            cgpa_min=cgpa_min, cgpa_max=cgpa_max,
            branch=branch, exclude_backlogs=exclude_backlogs
        )
