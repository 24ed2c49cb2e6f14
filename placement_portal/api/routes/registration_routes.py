"""
Registration Routes

POST /registrations/{drive_id}/register - Register for a drive (STUDENT)
GET /registrations/mine - Own registrations (STUDENT)
GET /registrations/{drive_id}/check - Already registered? (STUDENT)
GET /registrations/{drive_id}/list - Registered students (COORDINATOR, HEAD, STAFF)
POST /registrations/{drive_id}/export - Queue the CSV export (COORDINATOR, HEAD)
"""

from fastapi import APIRouter, Depends

from placement_portal.core.auth import get_current_student, require_roles
from placement_portal.core.config import get_settings
from placement_portal.db.postgres import get_db_session
from placement_portal.jobs.dispatcher import JobDispatcher, get_job_dispatcher
from placement_portal.jobs.handlers import EXPORT_REGISTRATIONS_JOB
from placement_portal.models import UserRole
from placement_portal.schemas.schemas import (
    RegistrationResponse, RegistrationCheckResponse, DispatchResponse
)
from placement_portal.services import drive_service, registration_service

settings = get_settings()

router = APIRouter(prefix="/registrations", tags=["Registrations"])


@router.post("/{drive_id}/register", response_model=RegistrationResponse, status_code=201)
async def register(drive_id: int, student: dict = Depends(get_current_student)):
    with get_db_session() as db:
        return registration_service.register(db, drive_id, student["student_id"])


@router.get("/mine")
async def my_registrations(student: dict = Depends(get_current_student)):
    with get_db_session() as db:
        return registration_service.list_student_registrations(db, student["student_id"])


@router.get("/{drive_id}/check", response_model=RegistrationCheckResponse)
async def check_registration(drive_id: int, student: dict = Depends(get_current_student)):
    with get_db_session() as db:
        return {"registered": registration_service.is_registered(db, drive_id, student["student_id"])}


@router.get("/{drive_id}/list")
async def list_registrations(
    drive_id: int,
    user: dict = Depends(require_roles(UserRole.COORDINATOR, UserRole.HEAD, UserRole.STAFF))
):
    with get_db_session() as db:
        return registration_service.list_registrations_by_drive(db, drive_id)


@router.post("/{drive_id}/export", response_model=DispatchResponse, status_code=202)
async def export_registrations(
    drive_id: int,
    user: dict = Depends(require_roles(UserRole.COORDINATOR, UserRole.HEAD)),
    dispatcher: JobDispatcher = Depends(get_job_dispatcher)
):
    with get_db_session() as db:
        drive_service.load_drive(db, drive_id)
        outcome = dispatcher.submit(
            EXPORT_REGISTRATIONS_JOB, {"drive_id": drive_id}, attempts=settings.job_attempts, db=db
        )
    return outcome.as_dict()
