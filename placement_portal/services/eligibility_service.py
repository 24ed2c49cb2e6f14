"""
Eligibility Evaluator

Scans the student roster against a drive's HEAD criteria and records a
per-(drive, student) verdict in drive_eligibility_results.

Rules:
- cgpa >= min_cgpa, tenth >= min_10th, twelfth >= min_12th and
  active_backlogs <= max_backlogs (all bounds inclusive)
- Matching students are upserted with is_eligible = TRUE
- Non-matching students are NOT written. A student who matched an earlier,
  looser evaluation keeps the old TRUE row.
- filtered_by NULL means system / HEAD auto-calc, otherwise the coordinator

All functions take an open Session; the caller owns the transaction, so
one evaluate() call commits or rolls back as a unit.
"""

import logging
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from placement_portal.core.exceptions import NotFound
from placement_portal.db.postgres import fetch_all, fetch_one
from placement_portal.models import DriveCriteria, DriveStatus, UserRole

logger = logging.getLogger(__name__)


# The single definition of "meets the criteria"
_MATCHING_STUDENTS_SQL = """
    SELECT s.student_id
    FROM students s
    JOIN users u ON u.user_id = s.student_id
    WHERE u.role = 'STUDENT'
      AND s.cgpa >= :min_cgpa
      AND s.tenth_percent >= :min_10th
      AND s.twelfth_percent >= :min_12th
      AND s.active_backlogs <= :max_backlogs
"""

_UPSERT_ELIGIBLE_SQL = """
    INSERT INTO drive_eligibility_results (drive_id, student_id, is_eligible, filtered_by, filtered_at)
    VALUES (:did, :sid, TRUE, :filtered_by, CURRENT_TIMESTAMP)
    ON CONFLICT (drive_id, student_id) DO UPDATE SET
        is_eligible = TRUE,
        filtered_by = EXCLUDED.filtered_by,
        filtered_at = EXCLUDED.filtered_at
"""


def matching_student_ids(db: Session, criteria: DriveCriteria, student_id: Optional[int] = None) -> List[int]:
    """Ids of students meeting `criteria`, optionally restricted to one student."""
    sql = _MATCHING_STUDENTS_SQL
    params = criteria.as_params()
    if student_id is not None:
        sql += " AND s.student_id = :only_sid"
        params["only_sid"] = student_id
    sql += " ORDER BY s.student_id"
    result = db.execute(text(sql), params)
    return [row[0] for row in result.fetchall()]


def evaluate(db: Session, drive_id: int, criteria: DriveCriteria, evaluated_by: Optional[int]) -> List[int]:
    """
    Evaluate every student against `criteria` and persist the matches.

    Args:
        drive_id: Drive the verdicts belong to
        criteria: Thresholds to apply (not necessarily the drive's own -
                  a coordinator may filter with stricter values)
        evaluated_by: Coordinator user id, or None for system/HEAD runs

    Returns:
        Sorted ids of eligible students
    """
    student_ids = matching_student_ids(db, criteria)
    logger.info("Drive %s: %d students match %s", drive_id, len(student_ids), criteria.as_params())

    if student_ids:
        db.execute(
            text(_UPSERT_ELIGIBLE_SQL),
            [{"did": drive_id, "sid": sid, "filtered_by": evaluated_by} for sid in student_ids]
        )
    return student_ids


def drive_criteria(db: Session, drive_id: int) -> DriveCriteria:
    """Current HEAD criteria of a drive (re-read, never trusted from payloads)."""
    row = fetch_one(
        db,
        "SELECT min_cgpa, min_10th, min_12th, max_backlogs FROM placement_drives WHERE drive_id = :did",
        {"did": drive_id}
    )
    if row is None:
        raise NotFound("Drive not found")
    return DriveCriteria.from_row(row)


def is_eligible(db: Session, drive_id: int, student_id: int) -> bool:
    result = db.execute(
        text("""
            SELECT 1 FROM drive_eligibility_results
            WHERE drive_id = :did AND student_id = :sid AND is_eligible = TRUE
        """),
        {"did": drive_id, "sid": student_id}
    )
    return result.fetchone() is not None


def list_eligible_students(db: Session, drive_id: int) -> List[dict]:
    """Eligible students of a drive with their academic profile."""
    return fetch_all(db, """
        SELECT der.student_id, u.name, u.email, s.roll_number, s.branch, s.cgpa,
               s.tenth_percent, s.twelfth_percent, s.active_backlogs,
               der.is_eligible, der.filtered_by, der.filtered_at
        FROM drive_eligibility_results der
        JOIN users u ON der.student_id = u.user_id
        JOIN students s ON s.student_id = der.student_id
        WHERE der.drive_id = :did AND der.is_eligible = TRUE
        ORDER BY s.cgpa DESC, u.name ASC
    """, {"did": drive_id})


def ensure_eligibility(db: Session, drive_id: int, actor: dict) -> List[dict]:
    """
    List eligible students, computing them from the drive's own criteria
    when nothing has been stored yet.
    """
    rows = list_eligible_students(db, drive_id)
    if rows:
        return rows

    criteria = drive_criteria(db, drive_id)
    filtered_by = actor["user_id"] if actor.get("role") == UserRole.COORDINATOR.value else None
    evaluate(db, drive_id, criteria, filtered_by)
    return list_eligible_students(db, drive_id)


def backfill_student_eligibility(db: Session, student_id: int) -> List[int]:
    """
    Give a student verdicts on posted auto-published drives they have no
    row for yet (e.g. profile created after the drive was published).

    Returns:
        Drive ids for which a new eligible row was written
    """
    drives = fetch_all(db, """
        SELECT pd.drive_id, pd.min_cgpa, pd.min_10th, pd.min_12th, pd.max_backlogs
        FROM placement_drives pd
        WHERE pd.status = :posted AND pd.auto_published = TRUE
          AND NOT EXISTS (
              SELECT 1 FROM drive_eligibility_results der
              WHERE der.drive_id = pd.drive_id AND der.student_id = :sid
          )
    """, {"posted": DriveStatus.posted.value, "sid": student_id})

    added = []
    for drive in drives:
        if matching_student_ids(db, DriveCriteria.from_row(drive), student_id=student_id):
            db.execute(
                text("""
                    INSERT INTO drive_eligibility_results (drive_id, student_id, is_eligible, filtered_by, filtered_at)
                    VALUES (:did, :sid, TRUE, NULL, CURRENT_TIMESTAMP)
                    ON CONFLICT (drive_id, student_id) DO NOTHING
                """),
                {"did": drive["drive_id"], "sid": student_id}
            )
            added.append(drive["drive_id"])

    if added:
        logger.info("Student %s: backfilled eligibility for drives %s", student_id, added)
    return added


def list_visible_drives_for_student(db: Session, student_id: int) -> List[dict]:
    """
    Posted drives this student can register for right now: eligible, and
    either auto-published or selected by the coordinator.
    """
    backfill_student_eligibility(db, student_id)
    return fetch_all(db, """
        SELECT pd.drive_id, pd.company_name, pd.job_title, pd.interview_date,
               pd.auto_published, pd.pdf_path
        FROM drive_eligibility_results der
        JOIN placement_drives pd ON der.drive_id = pd.drive_id
        WHERE der.student_id = :sid
          AND der.is_eligible = TRUE
          AND pd.status = :posted
          AND (
              pd.auto_published = TRUE
              OR EXISTS (
                  SELECT 1 FROM drive_coordinator_selections dcs
                  WHERE dcs.drive_id = pd.drive_id AND dcs.student_id = der.student_id
              )
          )
        ORDER BY pd.drive_id
    """, {"sid": student_id, "posted": DriveStatus.posted.value})


def check_student_eligibility(db: Session, drive_id: int, student_id: int) -> dict:
    """Explain whether a student may register, in the gate's order."""
    drive = fetch_one(
        db,
        "SELECT status, auto_published FROM placement_drives WHERE drive_id = :did",
        {"did": drive_id}
    )
    if drive is None:
        raise NotFound("Drive not found")

    record = fetch_one(
        db,
        "SELECT is_eligible FROM drive_eligibility_results WHERE drive_id = :did AND student_id = :sid",
        {"did": drive_id, "sid": student_id}
    )
    if record is None:
        return {"eligible": False, "reason": "No eligibility record found"}
    if drive["status"] != DriveStatus.posted.value:
        return {"eligible": False, "reason": "Drive not posted yet"}
    if not record["is_eligible"]:
        return {"eligible": False, "reason": "Student does not meet eligibility criteria"}
    if drive["auto_published"]:
        return {"eligible": True, "reason": "Auto-published drive"}

    selected = db.execute(
        text("SELECT 1 FROM drive_coordinator_selections WHERE drive_id = :did AND student_id = :sid"),
        {"did": drive_id, "sid": student_id}
    ).fetchone()
    if selected:
        return {"eligible": True, "reason": "Selected by coordinator"}
    return {"eligible": False, "reason": "Not selected by coordinator"}


def apply_sub_filter(
    db: Session,
    drive_id: int,
    cgpa_min: Optional[float] = None,
    cgpa_max: Optional[float] = None,
    branch: Optional[str] = None,
    exclude_backlogs: Optional[int] = None
) -> dict:
    """
    Narrow the already-eligible list for a coordinator before publishing.

    exclude_backlogs=n keeps students with fewer than n active backlogs.
    """
    eligible = list_eligible_students(db, drive_id)
    filtered = eligible

    if cgpa_min is not None:
        filtered = [s for s in filtered if s["cgpa"] is not None and s["cgpa"] >= cgpa_min]
    if cgpa_max is not None:
        filtered = [s for s in filtered if s["cgpa"] is not None and s["cgpa"] <= cgpa_max]
    if branch:
        filtered = [s for s in filtered if s["branch"] == branch]
    if exclude_backlogs is not None:
        filtered = [s for s in filtered if s["active_backlogs"] < exclude_backlogs]

    branches = []
    for s in eligible:
        if s["branch"] not in branches:
            branches.append(s["branch"])

    return {
        "total": len(eligible),
        "filtered_count": len(filtered),
        "students": filtered,
        "unique_branches": branches,
    }
