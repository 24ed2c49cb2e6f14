"""
Drive Routes

GET /drives - List drives (students/staff see posted+ only)
GET /drives/{id} - Drive details
POST /drives - Create drive, optional JD file and auto-calc (HEAD)
DELETE /drives/{id} - Delete drive (HEAD)
POST /drives/{id}/trigger-eligibility - Re-run eligibility (HEAD)
POST /drives/{id}/publish - Publish with a selection (COORDINATOR, HEAD)
POST /drives/{id}/stop-registrations - posted -> attending (COORDINATOR)
GET /job-domains - Job domain lookup
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from placement_portal.core.auth import get_current_user, require_roles
from placement_portal.db.postgres import get_db_session
from placement_portal.jobs.dispatcher import JobDispatcher, get_job_dispatcher
from placement_portal.models import DriveCriteria, UserRole
from placement_portal.schemas.schemas import (
    DriveResponse, DriveCreatedResponse, PublishRequest, PublishResponse,
    JobDomainResponse, MessageResponse
)
from placement_portal.services import drive_service
from placement_portal.utils.file_upload import save_job_description

router = APIRouter(tags=["Drives"])


@router.get("/drives", response_model=List[DriveResponse])
async def list_drives(user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        return drive_service.list_drives(db, user["role"])


@router.get("/drives/{drive_id}", response_model=DriveResponse)
async def get_drive(drive_id: int, user: dict = Depends(get_current_user)):
    with get_db_session() as db:
        return drive_service.load_drive(db, drive_id)


@router.post("/drives", response_model=DriveCreatedResponse, status_code=201)
async def create_drive(
    company_name: str = Form(...),
    job_title: str = Form(...),
    domain_id: Optional[int] = Form(None),
    job_description: Optional[str] = Form(None),
    interview_date: Optional[datetime] = Form(None),
    min_cgpa: float = Form(0),
    min_10th: float = Form(0),
    min_12th: float = Form(0),
    max_backlogs: int = Form(0),
    auto_calc: bool = Form(False),
    jd_file: Optional[UploadFile] = File(None, description="Job description (PDF or DOCX)"),
    user: dict = Depends(require_roles(UserRole.HEAD)),
    dispatcher: JobDispatcher = Depends(get_job_dispatcher)
):
    """
    Create a drive in `pending`.

    With auto_calc the drive is posted immediately and eligibility plus
    selection are computed by the auto-publish job.
    """
    try:
        criteria = DriveCriteria(
            min_cgpa=min_cgpa, min_10th=min_10th, min_12th=min_12th, max_backlogs=max_backlogs
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))

    pdf_path = None
    if jd_file is not None and jd_file.filename:
        pdf_path, extracted = await save_job_description(jd_file)
        job_description = job_description or extracted

    with get_db_session() as db:
        drive = drive_service.create_drive(
            db,
            {
                "company_name": company_name,
                "job_title": job_title,
                "domain_id": domain_id,
                "job_description": job_description,
                "interview_date": interview_date,
                "criteria": criteria,
                "pdf_path": pdf_path,
            },
            posted_by=user["user_id"],
        )

    if not auto_calc:
        return {"drive": drive, "dispatch": None}

    outcome = drive_service.start_auto_publish(drive["drive_id"], user["user_id"], dispatcher)
    with get_db_session() as db:
        drive = drive_service.load_drive(db, drive["drive_id"])
    return {"drive": drive, "dispatch": outcome.as_dict() if outcome else None}


@router.delete("/drives/{drive_id}", response_model=MessageResponse)
async def delete_drive(drive_id: int, user: dict = Depends(require_roles(UserRole.HEAD))):
    with get_db_session() as db:
        drive_service.delete_drive(db, drive_id)
    return MessageResponse(message="Drive deleted")


@router.post("/drives/{drive_id}/trigger-eligibility")
async def trigger_eligibility(drive_id: int, user: dict = Depends(require_roles(UserRole.HEAD))):
    with get_db_session() as db:
        student_ids = drive_service.trigger_eligibility(db, drive_id)
    return {"drive_id": drive_id, "eligible_count": len(student_ids)}


@router.post("/drives/{drive_id}/publish", response_model=PublishResponse)
async def publish_drive(
    drive_id: int,
    request: PublishRequest,
    user: dict = Depends(require_roles(UserRole.COORDINATOR, UserRole.HEAD)),
    dispatcher: JobDispatcher = Depends(get_job_dispatcher)
):
    with get_db_session() as db:
        result = drive_service.publish_drive(
            db, drive_id, user["user_id"], request.selected_students, dispatcher
        )

    return {
        "message": "Drive published",
        "drive": result["drive"],
        "dispatch": result["dispatch"].as_dict(),
    }


@router.post("/drives/{drive_id}/stop-registrations", response_model=DriveResponse)
async def stop_registrations(drive_id: int, user: dict = Depends(require_roles(UserRole.COORDINATOR))):
    with get_db_session() as db:
        return drive_service.stop_registrations(db, drive_id, user)


@router.get("/job-domains", response_model=List[JobDomainResponse])
async def list_job_domains():
    with get_db_session() as db:
        return drive_service.list_job_domains(db)
