"""
Attendance and finished drives.

Publishing attendance is the terminal step of a drive: it freezes the
attendance sheet (attendance_published = TRUE) and archives the counts
into finished_drives.
"""

import csv
import io
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from placement_portal.core.exceptions import NotFound, Conflict
from placement_portal.db.postgres import fetch_all, fetch_one
from placement_portal.models import AttendanceStatus

logger = logging.getLogger(__name__)


def _drive_or_404(db: Session, drive_id: int) -> dict:
    drive = fetch_one(
        db,
        """SELECT drive_id, company_name, job_title, interview_date, attendance_published
           FROM placement_drives WHERE drive_id = :did""",
        {"did": drive_id}
    )
    if drive is None:
        raise NotFound("Drive not found")
    return drive


def mark_attendance(db: Session, drive_id: int, student_id: int, status: AttendanceStatus) -> dict:
    """Insert or overwrite one student's attendance while the sheet is open."""
    drive = _drive_or_404(db, drive_id)
    if drive["attendance_published"]:
        raise Conflict("Attendance already published")

    db.execute(
        text("""
            INSERT INTO attendance (drive_id, student_id, status, marked_at)
            VALUES (:did, :sid, :status, CURRENT_TIMESTAMP)
            ON CONFLICT (drive_id, student_id) DO UPDATE SET
                status = EXCLUDED.status, marked_at = EXCLUDED.marked_at
        """),
        {"did": drive_id, "sid": student_id, "status": AttendanceStatus(status).value}
    )
    return fetch_one(
        db,
        "SELECT * FROM attendance WHERE drive_id = :did AND student_id = :sid",
        {"did": drive_id, "sid": student_id}
    )


def list_attendance(db: Session, drive_id: int) -> List[dict]:
    return fetch_all(db, """
        SELECT a.drive_id, a.student_id, a.status, a.marked_at, u.name
        FROM attendance a
        JOIN users u ON a.student_id = u.user_id
        WHERE a.drive_id = :did
        ORDER BY u.name
    """, {"did": drive_id})


def publish_attendance(db: Session, drive_id: int) -> dict:
    """
    Close the drive: flag attendance_published and archive the summary.

    Re-publishing refreshes the archived counts.
    """
    drive = _drive_or_404(db, drive_id)

    stats = fetch_one(db, """
        SELECT
            COALESCE(SUM(CASE WHEN status = 'PRESENT' THEN 1 ELSE 0 END), 0) AS present_count,
            COALESCE(SUM(CASE WHEN status = 'ABSENT' THEN 1 ELSE 0 END), 0) AS absent_count
        FROM attendance WHERE drive_id = :did
    """, {"did": drive_id})
    registered = db.execute(
        text("SELECT COUNT(*) FROM drive_registrations WHERE drive_id = :did"),
        {"did": drive_id}
    ).scalar_one()

    db.execute(
        text("UPDATE placement_drives SET attendance_published = TRUE WHERE drive_id = :did"),
        {"did": drive_id}
    )
    summary = {
        "did": drive_id,
        "registered": int(registered or 0),
        "present": int(stats["present_count"] or 0),
        "absent": int(stats["absent_count"] or 0),
        "company_name": drive["company_name"],
        "job_title": drive["job_title"],
        "interview_date": drive["interview_date"],
    }
    db.execute(
        text("""
            INSERT INTO finished_drives
                (drive_id, finished_date, total_registered, total_present, total_absent,
                 company_name, job_title, interview_date)
            VALUES (:did, CURRENT_TIMESTAMP, :registered, :present, :absent,
                    :company_name, :job_title, :interview_date)
            ON CONFLICT (drive_id) DO UPDATE SET
                finished_date = EXCLUDED.finished_date,
                total_registered = EXCLUDED.total_registered,
                total_present = EXCLUDED.total_present,
                total_absent = EXCLUDED.total_absent
        """),
        summary
    )
    logger.info(
        "Drive %s finished: %d registered, %d present, %d absent",
        drive_id, summary["registered"], summary["present"], summary["absent"]
    )
    return fetch_one(db, "SELECT * FROM finished_drives WHERE drive_id = :did", {"did": drive_id})


def attendance_csv(db: Session, drive_id: int) -> str:
    """student_id,name,status sheet for download."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["student_id", "name", "status"])
    for row in list_attendance(db, drive_id):
        writer.writerow([row["student_id"], row["name"] or "", row["status"] or ""])
    return buffer.getvalue()


def list_finished_drives(
    db: Session,
    months: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: Optional[int] = None
) -> List[dict]:
    """Archive of finished drives, newest first, optionally windowed."""
    sql = """
        SELECT fd.*, pd.pdf_path, pd.domain_id, jd.domain_name
        FROM finished_drives fd
        JOIN placement_drives pd ON fd.drive_id = pd.drive_id
        LEFT JOIN job_domains jd ON pd.domain_id = jd.domain_id
        WHERE 1=1
    """
    params = {}
    if months:
        sql += " AND fd.finished_date >= :since"
        params["since"] = datetime.utcnow() - timedelta(days=30 * months)
    elif start_date and end_date:
        sql += " AND fd.finished_date BETWEEN :start AND :end"
        params.update(start=start_date, end=end_date)

    sql += " ORDER BY fd.finished_date DESC"
    if limit:
        sql += " LIMIT :limit"
        params["limit"] = limit
    return fetch_all(db, sql, params)
