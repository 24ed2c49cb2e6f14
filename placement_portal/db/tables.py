"""
Relational schema for the placement workflow.

Queries are written as raw SQL with sqlalchemy.text(); these Table objects
exist so the schema can be created (and torn down in tests) from one place.

Ownership:
- placement_drives: drive lifecycle (status, auto_published, published_*)
- drive_eligibility_results: eligibility evaluator (upsert-only)
- drive_coordinator_selections: selection store (whole-drive replace)
- drive_registrations: registration gate (insert-only)
- attendance / finished_drives: attendance publication
"""

from sqlalchemy import (
    MetaData, Table, Column, Integer, String, Text, Float, Boolean,
    DateTime, ForeignKey, UniqueConstraint, Index, CheckConstraint
)
from sqlalchemy.sql import func, true, false

metadata = MetaData()


users = Table(
    "users", metadata,
    Column("user_id", Integer, primary_key=True),
    Column("name", String(120), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("role", String(20), nullable=False, index=True),
    Column("department", String(120)),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("created_at", DateTime, server_default=func.now()),
    CheckConstraint("role IN ('HEAD', 'COORDINATOR', 'STAFF', 'STUDENT')", name="ck_users_role"),
)

students = Table(
    "students", metadata,
    Column("student_id", Integer, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True),
    Column("roll_number", String(40), unique=True),
    Column("branch", String(60), index=True),
    Column("cgpa", Float),
    Column("tenth_percent", Float),
    Column("twelfth_percent", Float),
    Column("active_backlogs", Integer, nullable=False, server_default="0"),
)

job_domains = Table(
    "job_domains", metadata,
    Column("domain_id", Integer, primary_key=True),
    Column("domain_name", String(120), nullable=False, unique=True),
)

placement_drives = Table(
    "placement_drives", metadata,
    Column("drive_id", Integer, primary_key=True),
    Column("company_name", String(255), nullable=False, index=True),
    Column("job_title", String(255), nullable=False),
    Column("domain_id", Integer, ForeignKey("job_domains.domain_id", ondelete="SET NULL")),
    Column("job_description", Text),
    Column("interview_date", DateTime),
    # HEAD criteria
    Column("min_cgpa", Float, nullable=False, server_default="0"),
    Column("min_10th", Float, nullable=False, server_default="0"),
    Column("min_12th", Float, nullable=False, server_default="0"),
    Column("max_backlogs", Integer, nullable=False, server_default="0"),
    # Lifecycle
    Column("status", String(20), nullable=False, server_default="pending", index=True),
    Column("auto_published", Boolean, nullable=False, server_default=false()),
    Column("attendance_published", Boolean, nullable=False, server_default=false()),
    Column("posted_by", Integer, ForeignKey("users.user_id", ondelete="SET NULL")),
    Column("published_by", Integer, ForeignKey("users.user_id", ondelete="SET NULL")),
    Column("published_at", DateTime),
    Column("pdf_path", String(512)),
    Column("created_at", DateTime, server_default=func.now(), index=True),
    CheckConstraint("status IN ('pending', 'posted', 'attending')", name="ck_drives_status"),
)

drive_eligibility_results = Table(
    "drive_eligibility_results", metadata,
    Column("id", Integer, primary_key=True),
    Column("drive_id", Integer, ForeignKey("placement_drives.drive_id", ondelete="CASCADE"), nullable=False),
    Column("student_id", Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False),
    Column("is_eligible", Boolean, nullable=False, server_default=true()),
    # NULL = system / HEAD auto-calc, non-NULL = coordinator who ran the filter
    Column("filtered_by", Integer, ForeignKey("users.user_id", ondelete="SET NULL")),
    Column("filtered_at", DateTime, server_default=func.now()),
    UniqueConstraint("drive_id", "student_id", name="uq_eligibility_drive_student"),
)

drive_coordinator_selections = Table(
    "drive_coordinator_selections", metadata,
    Column("id", Integer, primary_key=True),
    Column("drive_id", Integer, ForeignKey("placement_drives.drive_id", ondelete="CASCADE"), nullable=False),
    Column("student_id", Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False),
    Column("selected_at", DateTime, server_default=func.now()),
    UniqueConstraint("drive_id", "student_id", name="uq_selection_drive_student"),
)

drive_registrations = Table(
    "drive_registrations", metadata,
    Column("registration_id", Integer, primary_key=True),
    Column("drive_id", Integer, ForeignKey("placement_drives.drive_id", ondelete="CASCADE"), nullable=False),
    Column("student_id", Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False),
    Column("registered_at", DateTime, server_default=func.now()),
    UniqueConstraint("drive_id", "student_id", name="uq_registration_drive_student"),
    Index("ix_registrations_student", "student_id"),
)

attendance = Table(
    "attendance", metadata,
    Column("id", Integer, primary_key=True),
    Column("drive_id", Integer, ForeignKey("placement_drives.drive_id", ondelete="CASCADE"), nullable=False),
    Column("student_id", Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False),
    Column("status", String(10), nullable=False),
    Column("marked_at", DateTime, server_default=func.now()),
    UniqueConstraint("drive_id", "student_id", name="uq_attendance_drive_student"),
    CheckConstraint("status IN ('PRESENT', 'ABSENT')", name="ck_attendance_status"),
)

finished_drives = Table(
    "finished_drives", metadata,
    Column("drive_id", Integer, ForeignKey("placement_drives.drive_id", ondelete="CASCADE"), primary_key=True),
    Column("finished_date", DateTime, server_default=func.now()),
    Column("total_registered", Integer, nullable=False, server_default="0"),
    Column("total_present", Integer, nullable=False, server_default="0"),
    Column("total_absent", Integer, nullable=False, server_default="0"),
    Column("company_name", String(255)),
    Column("job_title", String(255)),
    Column("interview_date", DateTime),
)


def create_schema(bind) -> None:
    """Create all tables that don't exist yet."""
    metadata.create_all(bind=bind)
