"""
Registration Gate

A student may register for a drive only when, checked in this order
(first failure wins):
1. the drive exists                                   -> NotFound
2. the drive is posted                                -> Forbidden
3. an is_eligible = TRUE result exists                -> Forbidden
4. auto_published, or a coordinator selection exists  -> Forbidden

A registration is a one-time event: a second attempt is a Conflict.
"""

import logging
from typing import List

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from placement_portal.core.exceptions import NotFound, Forbidden, Conflict
from placement_portal.db.postgres import fetch_all, fetch_one
from placement_portal.models import DriveStatus
from placement_portal.services import eligibility_service, selection_service

logger = logging.getLogger(__name__)


def register(db: Session, drive_id: int, student_id: int) -> dict:
    """
    Register a student for a drive after passing the gate.

    Returns:
        The new drive_registrations row
    """
    drive = fetch_one(
        db,
        "SELECT status, auto_published FROM placement_drives WHERE drive_id = :did",
        {"did": drive_id}
    )
    if drive is None:
        raise NotFound("Drive not found")
    if drive["status"] != DriveStatus.posted.value:
        raise Forbidden("Drive is not posted yet")
    if not eligibility_service.is_eligible(db, drive_id, student_id):
        raise Forbidden("You are not eligible for this drive")
    if not drive["auto_published"] and not selection_service.is_selected(db, drive_id, student_id):
        raise Forbidden("You are not selected for this drive")

    try:
        # Savepoint so a duplicate doesn't poison the outer transaction
        with db.begin_nested():
            result = db.execute(
                text("""
                    INSERT INTO drive_registrations (drive_id, student_id, registered_at)
                    VALUES (:did, :sid, CURRENT_TIMESTAMP)
                    RETURNING registration_id
                """),
                {"did": drive_id, "sid": student_id}
            )
            registration_id = result.scalar_one()
    except IntegrityError:
        raise Conflict("Already registered for this drive")

    logger.info("Student %s registered for drive %s", student_id, drive_id)
    return fetch_one(
        db,
        "SELECT * FROM drive_registrations WHERE registration_id = :rid",
        {"rid": registration_id}
    )


def list_registrations_by_drive(db: Session, drive_id: int) -> List[dict]:
    return fetch_all(db, """
        SELECT dr.registration_id, dr.drive_id, dr.student_id, dr.registered_at,
               u.name, u.email, s.roll_number, s.branch
        FROM drive_registrations dr
        JOIN users u ON dr.student_id = u.user_id
        LEFT JOIN students s ON s.student_id = dr.student_id
        WHERE dr.drive_id = :did
        ORDER BY dr.registered_at, dr.registration_id
    """, {"did": drive_id})


def list_student_registrations(db: Session, student_id: int) -> List[dict]:
    """A student's registrations with the drive details they need to see."""
    return fetch_all(db, """
        SELECT dr.registration_id, dr.drive_id, dr.registered_at,
               pd.company_name, pd.job_title, pd.job_description, pd.status,
               pd.min_cgpa, pd.min_10th, pd.min_12th, pd.max_backlogs,
               pd.attendance_published
        FROM drive_registrations dr
        JOIN placement_drives pd ON dr.drive_id = pd.drive_id
        WHERE dr.student_id = :sid
        ORDER BY dr.registered_at DESC, dr.registration_id DESC
    """, {"sid": student_id})


def is_registered(db: Session, drive_id: int, student_id: int) -> bool:
    result = db.execute(
        text("SELECT 1 FROM drive_registrations WHERE drive_id = :did AND student_id = :sid"),
        {"did": drive_id, "sid": student_id}
    )
    return result.fetchone() is not None
