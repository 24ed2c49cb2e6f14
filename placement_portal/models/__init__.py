"""
Models module - internal data structures shared by services and jobs.

Difference from schemas:
- Models: what services and job handlers pass around
- Schemas: API contract (what client sends/receives)
"""

from placement_portal.models.drive import (
    DriveCriteria, DriveStatus, UserRole, AttendanceStatus
)

__all__ = ["DriveCriteria", "DriveStatus", "UserRole", "AttendanceStatus"]
