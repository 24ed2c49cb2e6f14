"""
Coordinator Selection Store

A selection row says "this student may register for this drive". It only
matters for drives that were NOT auto-published; for auto-published drives
eligibility alone admits a student.

There is no partial edit: every publish replaces the whole set for the
drive, so after a publish the stored set equals the latest explicit list.
"""

import logging
from typing import Iterable, List

from sqlalchemy import bindparam, text
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def replace_selections(db: Session, drive_id: int, student_ids: Iterable[int]) -> List[int]:
    """
    Replace all selections of a drive with `student_ids`.

    Runs inside the caller's transaction. Duplicate ids (in the input or
    from a concurrent writer) are absorbed by the unique (drive, student)
    pair.

    Returns:
        Sorted list of distinct ids written
    """
    ids = sorted({int(sid) for sid in student_ids})

    db.execute(
        text("DELETE FROM drive_coordinator_selections WHERE drive_id = :did"),
        {"did": drive_id}
    )
    for sid in ids:
        db.execute(
            text("""
                INSERT INTO drive_coordinator_selections (drive_id, student_id)
                VALUES (:did, :sid)
                ON CONFLICT (drive_id, student_id) DO NOTHING
            """),
            {"did": drive_id, "sid": sid}
        )

    logger.info("Drive %s: selections replaced (%d students)", drive_id, len(ids))
    return ids


def list_selections(db: Session, drive_id: int) -> List[int]:
    result = db.execute(
        text("SELECT student_id FROM drive_coordinator_selections WHERE drive_id = :did ORDER BY student_id"),
        {"did": drive_id}
    )
    return [row[0] for row in result.fetchall()]


def is_selected(db: Session, drive_id: int, student_id: int) -> bool:
    result = db.execute(
        text("SELECT 1 FROM drive_coordinator_selections WHERE drive_id = :did AND student_id = :sid"),
        {"did": drive_id, "sid": student_id}
    )
    return result.fetchone() is not None


def unknown_students(db: Session, student_ids: Iterable[int]) -> List[int]:
    """Sorted ids from `student_ids` that have no students row."""
    ids = sorted({int(sid) for sid in student_ids})
    if not ids:
        return []
    result = db.execute(
        text("SELECT student_id FROM students WHERE student_id IN :ids").bindparams(
            bindparam("ids", expanding=True)
        ),
        {"ids": ids}
    )
    known = {row[0] for row in result.fetchall()}
    return [sid for sid in ids if sid not in known]
