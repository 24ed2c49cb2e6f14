"""
Attendance Routes

POST /attendance/{drive_id}/mark - Mark one student (COORDINATOR)
POST /attendance/{drive_id}/publish - Publish and archive the drive (COORDINATOR)
GET /attendance/{drive_id}/list - Attendance sheet (COORDINATOR, HEAD)
GET /attendance/{drive_id}/download-csv - Attendance sheet as CSV (COORDINATOR, HEAD)
GET /finished-drives - Archive of finished drives (HEAD, COORDINATOR)
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from placement_portal.core.auth import require_roles
from placement_portal.db.postgres import get_db_session
from placement_portal.models import UserRole
from placement_portal.schemas.schemas import AttendanceMark, FinishedDriveResponse
from placement_portal.services import attendance_service

router = APIRouter(tags=["Attendance"])


@router.post("/attendance/{drive_id}/mark")
async def mark_attendance(
    drive_id: int,
    data: AttendanceMark,
    user: dict = Depends(require_roles(UserRole.COORDINATOR))
):
    with get_db_session() as db:
        return attendance_service.mark_attendance(db, drive_id, data.student_id, data.status)


@router.post("/attendance/{drive_id}/publish", response_model=FinishedDriveResponse)
async def publish_attendance(drive_id: int, user: dict = Depends(require_roles(UserRole.COORDINATOR))):
    with get_db_session() as db:
        return attendance_service.publish_attendance(db, drive_id)


@router.get("/attendance/{drive_id}/list")
async def list_attendance(
    drive_id: int,
    user: dict = Depends(require_roles(UserRole.COORDINATOR, UserRole.HEAD))
):
    with get_db_session() as db:
        return attendance_service.list_attendance(db, drive_id)


@router.get("/attendance/{drive_id}/download-csv")
async def download_attendance_csv(
    drive_id: int,
    user: dict = Depends(require_roles(UserRole.COORDINATOR, UserRole.HEAD))
):
    with get_db_session() as db:
        content = attendance_service.attendance_csv(db, drive_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="attendance-drive-{drive_id}.csv"'},
    )


@router.get("/finished-drives", response_model=List[FinishedDriveResponse])
async def list_finished_drives(
    months: Optional[int] = Query(None, ge=1),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: Optional[int] = Query(None, ge=1, le=500),
    user: dict = Depends(require_roles(UserRole.HEAD, UserRole.COORDINATOR))
):
    with get_db_session() as db:
        return attendance_service.list_finished_drives(
            db, months=months, start_date=start_date, end_date=end_date, limit=limit
        )
