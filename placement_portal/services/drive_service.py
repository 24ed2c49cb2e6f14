"""
Drive Lifecycle

    pending --publish / auto-calc--> posted --stop registrations--> attending
    attending --attendance published--> finished (attendance_published = TRUE)

Two ways into `posted`:
- Manual publish: a COORDINATOR/HEAD sends the selected students. Status
  change and selection clear happen in one transaction; persisting the
  selection is dispatched as an `auto-publish` job and runs inline on the
  same transaction if the queue is down.
- Auto-calc: HEAD asks for it at creation. The drive is marked posted and
  auto_published right away so students see it; eligibility + selection is
  dispatched as an `auto-publish` job without a student list.

Both paths end in publish_with_selection(), which the job handler also
calls - the queued and inline runs execute the same code.
"""

import logging
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from placement_portal.core.config import get_settings
from placement_portal.core.exceptions import NotFound, Forbidden, Conflict
from placement_portal.db.postgres import get_db_session, fetch_all, fetch_one, for_update
from placement_portal.models import DriveCriteria, DriveStatus, UserRole
from placement_portal.services import eligibility_service, selection_service

settings = get_settings()
logger = logging.getLogger(__name__)

AUTO_PUBLISH_JOB = "auto-publish"


# ============================================================
# READS
# ============================================================

def load_drive(db: Session, drive_id: int, lock: bool = False) -> dict:
    """Fetch one drive row; `lock` takes a row lock until the transaction ends."""
    sql = """
        SELECT pd.*, jd.domain_name
        FROM placement_drives pd
        LEFT JOIN job_domains jd ON pd.domain_id = jd.domain_id
        WHERE pd.drive_id = :did
    """
    if lock:
        # FOR UPDATE cannot apply to the nullable side of an outer join
        sql = "SELECT * FROM placement_drives WHERE drive_id = :did" + for_update(db)
    drive = fetch_one(db, sql, {"did": drive_id})
    if drive is None:
        raise NotFound("Drive not found")
    return drive


def list_drives(db: Session, role: Optional[str]) -> List[dict]:
    """
    All drives, newest first.

    STUDENT and STAFF only see drives that left `pending`
    (posted, attending or finished).
    """
    sql = """
        SELECT pd.*, jd.domain_name
        FROM placement_drives pd
        LEFT JOIN job_domains jd ON pd.domain_id = jd.domain_id
    """
    params = {}
    if (role or "").upper() in (UserRole.STUDENT.value, UserRole.STAFF.value):
        sql += " WHERE pd.status IN (:posted, :attending) OR pd.attendance_published = TRUE"
        params = {"posted": DriveStatus.posted.value, "attending": DriveStatus.attending.value}
    sql += " ORDER BY pd.created_at DESC, pd.drive_id DESC"
    return fetch_all(db, sql, params)


def list_job_domains(db: Session) -> List[dict]:
    return fetch_all(db, "SELECT domain_id, domain_name FROM job_domains ORDER BY domain_name")


# ============================================================
# CREATE / DELETE
# ============================================================

def create_drive(db: Session, data: dict, posted_by: int) -> dict:
    """
    Insert a drive in `pending`.

    `data` keys: company_name, job_title, domain_id, job_description,
    interview_date, criteria (DriveCriteria), pdf_path
    """
    criteria: DriveCriteria = data.get("criteria") or DriveCriteria()
    result = db.execute(
        text("""
            INSERT INTO placement_drives
                (company_name, job_title, domain_id, job_description, interview_date,
                 min_cgpa, min_10th, min_12th, max_backlogs, posted_by, pdf_path, status)
            VALUES (:company_name, :job_title, :domain_id, :job_description, :interview_date,
                    :min_cgpa, :min_10th, :min_12th, :max_backlogs, :posted_by, :pdf_path, :status)
            RETURNING drive_id
        """),
        {
            "company_name": data["company_name"],
            "job_title": data["job_title"],
            "domain_id": data.get("domain_id"),
            "job_description": data.get("job_description") or "",
            "interview_date": data.get("interview_date"),
            **criteria.as_params(),
            "posted_by": posted_by,
            "pdf_path": data.get("pdf_path"),
            "status": DriveStatus.pending.value,
        }
    )
    drive_id = result.scalar_one()
    logger.info("Drive %s created by %s (%s - %s)", drive_id, posted_by, data["company_name"], data["job_title"])
    return load_drive(db, drive_id)


def delete_drive(db: Session, drive_id: int) -> None:
    result = db.execute(
        text("DELETE FROM placement_drives WHERE drive_id = :did"),
        {"did": drive_id}
    )
    if result.rowcount == 0:
        raise NotFound("Drive not found")
    logger.info("Drive %s deleted", drive_id)


# ============================================================
# TRANSITIONS
# ============================================================

def publish_with_selection(
    db: Session,
    drive_id: int,
    published_by: Optional[int],
    selected_students: List[int]
) -> dict:
    """
    Mark the drive posted and make its selection set exactly `selected_students`.

    Idempotent; shared by the request path and the `auto-publish` job.
    """
    result = db.execute(
        text("""
            UPDATE placement_drives
            SET status = :posted, published_at = CURRENT_TIMESTAMP, published_by = :by
            WHERE drive_id = :did
        """),
        {"posted": DriveStatus.posted.value, "by": published_by, "did": drive_id}
    )
    if result.rowcount == 0:
        raise NotFound("Drive not found")

    stored = selection_service.replace_selections(db, drive_id, selected_students)
    return {"drive_id": drive_id, "selected_students": stored}


def publish_drive(
    db: Session,
    drive_id: int,
    actor_id: int,
    selected_students: Optional[List[int]],
    dispatcher
) -> dict:
    """
    Manual publish: pending/posted -> posted with an explicit student list.

    The drive row is locked, its status updated and old selections cleared
    in `db`'s transaction. Selections are then written by the auto-publish
    job - queued, or inline on this same transaction when the queue is down.

    `selected_students=None` lets the job derive the list from eligibility;
    an empty list publishes with nobody selected.
    """
    load_drive(db, drive_id, lock=True)
    if selected_students is not None:
        unknown = selection_service.unknown_students(db, selected_students)
        if unknown:
            raise NotFound("Unknown student ids: " + ", ".join(str(sid) for sid in unknown))

    publish_with_selection(db, drive_id, actor_id, [])

    payload = {"drive_id": drive_id, "published_by": actor_id}
    if selected_students is not None:
        payload["selected_students"] = [int(sid) for sid in selected_students]

    outcome = dispatcher.submit(AUTO_PUBLISH_JOB, payload, attempts=settings.job_attempts, db=db)
    return {"drive": load_drive(db, drive_id), "dispatch": outcome}


def mark_auto_published(db: Session, drive_id: int, published_by: int) -> None:
    result = db.execute(
        text("""
            UPDATE placement_drives
            SET status = :posted, published_at = CURRENT_TIMESTAMP,
                published_by = :by, auto_published = TRUE
            WHERE drive_id = :did
        """),
        {"posted": DriveStatus.posted.value, "by": published_by, "did": drive_id}
    )
    if result.rowcount == 0:
        raise NotFound("Drive not found")


def start_auto_publish(drive_id: int, published_by: int, dispatcher):
    """
    Auto-calc after creation.

    The posted/auto_published flags commit first so the drive is visible
    immediately. The eligibility + selection run is best effort: if even
    the inline fallback fails, the error is logged and the drive stays
    posted (eligibility can be re-triggered by HEAD).

    Returns:
        DispatchOutcome, or None when the inline fallback failed
    """
    with get_db_session() as db:
        mark_auto_published(db, drive_id, published_by)

    try:
        return dispatcher.submit(
            AUTO_PUBLISH_JOB,
            {"drive_id": drive_id, "published_by": published_by},
            attempts=settings.job_attempts,
        )
    except Exception:
        logger.exception("Drive %s: auto-publish fallback failed; drive stays posted without selections", drive_id)
        return None


def _published_by_other_coordinator(db: Session, drive: dict, actor: dict) -> bool:
    publisher = drive["published_by"]
    if publisher is None or publisher == actor["user_id"]:
        return False
    row = fetch_one(db, "SELECT role FROM users WHERE user_id = :uid", {"uid": publisher})
    return row is not None and (row["role"] or "").upper() == UserRole.COORDINATOR.value


def stop_registrations(db: Session, drive_id: int, actor: dict) -> dict:
    """
    posted -> attending. No registrations are accepted afterwards.

    A drive a coordinator published by hand can only be moved by that
    coordinator. Auto-published drives, and drives HEAD published, can be
    moved by any coordinator.
    """
    drive = load_drive(db, drive_id, lock=True)

    if drive["attendance_published"]:
        raise Conflict("Attendance already published for this drive")
    if drive["status"] == DriveStatus.attending.value:
        return drive
    if drive["status"] != DriveStatus.posted.value:
        raise Forbidden("Drive is not posted yet")
    if not drive["auto_published"] and _published_by_other_coordinator(db, drive, actor):
        raise Forbidden("Only the coordinator who published this drive can stop registrations")

    db.execute(
        text("UPDATE placement_drives SET status = :attending WHERE drive_id = :did"),
        {"attending": DriveStatus.attending.value, "did": drive_id}
    )
    logger.info("Drive %s moved to attendance phase by %s", drive_id, actor["user_id"])
    return load_drive(db, drive_id)


def trigger_eligibility(db: Session, drive_id: int) -> List[int]:
    """HEAD re-run of eligibility with the drive's own criteria."""
    criteria = eligibility_service.drive_criteria(db, drive_id)
    return eligibility_service.evaluate(db, drive_id, criteria, evaluated_by=None)
