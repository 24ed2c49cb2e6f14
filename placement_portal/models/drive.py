"""
Drive-level value types.

DriveCriteria is the HEAD's academic threshold set. It travels inside job
payloads, so it must stay JSON-friendly.
"""

from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    HEAD = "HEAD"
    COORDINATOR = "COORDINATOR"
    STAFF = "STAFF"
    STUDENT = "STUDENT"


class DriveStatus(str, Enum):
    """Stored lifecycle states. 'Finished' is attendance_published=TRUE, not a status."""
    pending = "pending"
    posted = "posted"
    attending = "attending"


class AttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"


class DriveCriteria(BaseModel):
    """Inclusive thresholds: cgpa/10th/12th are minimums, backlogs a maximum."""

    min_cgpa: float = Field(0, ge=0, le=10)
    min_10th: float = Field(0, ge=0, le=100)
    min_12th: float = Field(0, ge=0, le=100)
    max_backlogs: int = Field(0, ge=0)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DriveCriteria":
        """Build from a placement_drives row or a job payload; NULLs become 0."""
        return cls(
            min_cgpa=float(row.get("min_cgpa") or 0),
            min_10th=float(row.get("min_10th") or 0),
            min_12th=float(row.get("min_12th") or 0),
            max_backlogs=int(row.get("max_backlogs") or 0),
        )

    def as_params(self) -> dict:
        return self.model_dump()
