"""
Registration exports and view maintenance - the two background-only jobs.
"""

import csv
import logging
import os
import time
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.orm import Session

from placement_portal.db.postgres import is_postgres
from placement_portal.services import registration_service

logger = logging.getLogger(__name__)


def _iso(value) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _public_path(filepath: str, uploads_dir: str):
    """URL of `filepath` under the /uploads mount, or None when it lives outside uploads_dir."""
    try:
        relative = Path(filepath).resolve().relative_to(Path(uploads_dir).resolve())
    except ValueError:
        logger.warning("Export %s is outside %s and is not served", filepath, uploads_dir)
        return None
    return "/uploads/" + relative.as_posix()


def write_registrations_csv(db: Session, drive_id: int, exports_dir: str, uploads_dir: str) -> dict:
    """
    Write the registered-student list of a drive to a CSV file.

    Returns:
        {"path": public path under /uploads (None if not served), "filepath": local path, "rows": count}
    """
    rows = registration_service.list_registrations_by_drive(db, drive_id)

    os.makedirs(exports_dir, exist_ok=True)
    filename = f"student-list-drive-{drive_id}-{int(time.time() * 1000)}.csv"
    filepath = os.path.join(exports_dir, filename)

    with open(filepath, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL)
        writer.writerow(["Name", "Email", "Registered At"])
        for r in rows:
            writer.writerow([r["name"] or "", r["email"] or "", _iso(r["registered_at"])])

    logger.info("Drive %s: exported %d registrations to %s", drive_id, len(rows), filepath)
    return {"path": _public_path(filepath, uploads_dir), "filepath": filepath, "rows": len(rows)}


def refresh_materialized_views(db: Session, sql_path: str) -> dict:
    """
    Execute the materialized-view refresh script.

    Only PostgreSQL has materialized views; elsewhere this is a no-op.
    """
    if not is_postgres(db):
        logger.info("Materialized views skipped: store is %s", db.get_bind().dialect.name)
        return {"refreshed": False}

    path = Path(sql_path)
    if not path.exists():
        logger.warning("No materialized views script at %s", path)
        return {"refreshed": False}

    db.execute(text(path.read_text(encoding="utf-8")))
    logger.info("Materialized views refreshed from %s", path)
    return {"refreshed": True}
