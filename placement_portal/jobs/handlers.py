"""
Job handlers - the work behind every named background job.

Each handler is `handler(db, payload) -> dict` and only touches the open
session it is given, so the same function runs inside a Celery worker or
inline in a request transaction when the broker is down.

Jobs:
- eligibility-filter:          evaluate a drive against explicit criteria
- auto-publish:                persist a drive's selection (computed or given)
- export-registrations-csv:    write the registered-student list to a file
- refresh-materialized-views:  periodic analytics maintenance
"""

import logging
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from placement_portal.core.config import get_settings
from placement_portal.core.exceptions import UnknownJob
from placement_portal.db.postgres import get_db_session, fetch_one
from placement_portal.models import DriveCriteria, DriveStatus
from placement_portal.services import drive_service, eligibility_service, export_service

logger = logging.getLogger(__name__)

ELIGIBILITY_FILTER_JOB = "eligibility-filter"
AUTO_PUBLISH_JOB = drive_service.AUTO_PUBLISH_JOB
EXPORT_REGISTRATIONS_JOB = "export-registrations-csv"
REFRESH_VIEWS_JOB = "refresh-materialized-views"


def handle_eligibility_filter(db: Session, payload: dict) -> dict:
    """payload: {drive_id, min_cgpa, min_10th, min_12th, max_backlogs, filtered_by}"""
    drive_id = int(payload["drive_id"])
    if fetch_one(db, "SELECT drive_id FROM placement_drives WHERE drive_id = :did", {"did": drive_id}) is None:
        logger.warning("eligibility-filter: drive %s no longer exists", drive_id)
        return {"drive_id": drive_id, "eligible_count": 0, "student_ids": [], "skipped": "Drive not found"}

    criteria = DriveCriteria.from_row(payload)
    student_ids = eligibility_service.evaluate(db, drive_id, criteria, payload.get("filtered_by"))
    return {"drive_id": drive_id, "eligible_count": len(student_ids), "student_ids": student_ids}


def handle_auto_publish(db: Session, payload: dict) -> dict:
    """
    payload: {drive_id, published_by, selected_students?}

    Without `selected_students` the selection is every student eligible
    under the drive's current criteria. A drive that was deleted or has
    already moved past `posted` is left alone.
    """
    drive_id = int(payload["drive_id"])
    drive = fetch_one(
        db,
        "SELECT drive_id, status, attendance_published FROM placement_drives WHERE drive_id = :did",
        {"did": drive_id}
    )
    if drive is None:
        logger.warning("auto-publish: drive %s no longer exists", drive_id)
        return {"published": False, "drive_id": drive_id, "reason": "Drive not found"}
    if drive["attendance_published"] or drive["status"] == DriveStatus.attending.value:
        logger.info("auto-publish: drive %s already past registrations, skipped", drive_id)
        return {"published": False, "drive_id": drive_id, "reason": "Registrations already stopped"}

    selected = payload.get("selected_students")
    if selected is None:
        criteria = eligibility_service.drive_criteria(db, drive_id)
        selected = eligibility_service.evaluate(db, drive_id, criteria, evaluated_by=None)

    result = drive_service.publish_with_selection(db, drive_id, payload.get("published_by"), selected)
    return {
        "published": True,
        "drive_id": drive_id,
        "selected_count": len(result["selected_students"]),
    }


def handle_export_registrations_csv(db: Session, payload: dict) -> dict:
    settings = get_settings()
    return export_service.write_registrations_csv(
        db, int(payload["drive_id"]), settings.exports_dir, settings.uploads_dir
    )


def handle_refresh_materialized_views(db: Session, payload: dict) -> dict:
    return export_service.refresh_materialized_views(db, get_settings().materialized_views_sql_path)


JOB_HANDLERS: Dict[str, Callable[[Session, dict], dict]] = {
    ELIGIBILITY_FILTER_JOB: handle_eligibility_filter,
    AUTO_PUBLISH_JOB: handle_auto_publish,
    EXPORT_REGISTRATIONS_JOB: handle_export_registrations_csv,
    REFRESH_VIEWS_JOB: handle_refresh_materialized_views,
}


def run_job(name: str, payload: dict, db: Optional[Session] = None) -> dict:
    """
    Execute a job synchronously.

    With `db` the job joins the caller's transaction; otherwise it runs
    in (and commits) its own.

    Raises:
        UnknownJob: no handler registered under `name`
    """
    handler = JOB_HANDLERS.get(name)
    if handler is None:
        raise UnknownJob(f"Unknown job: {name}")

    if db is not None:
        result = handler(db, payload or {})
    else:
        with get_db_session() as session:
            result = handler(session, payload or {})

    logger.info("Job %s completed: %s", name, {k: v for k, v in result.items() if k != "student_ids"})
    return result
