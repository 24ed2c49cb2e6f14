"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Any
from datetime import datetime

from placement_portal.models import AttendanceStatus


# ============================================================
# AUTH SCHEMAS
# ============================================================

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: str
    name: str

class UserResponse(BaseModel):
    user_id: int
    name: str
    email: str
    role: str
    department: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None


# ============================================================
# DRIVE SCHEMAS
# ============================================================

class DriveResponse(BaseModel):
    drive_id: int
    company_name: str
    job_title: str
    domain_id: Optional[int] = None
    domain_name: Optional[str] = None
    job_description: Optional[str] = None
    interview_date: Optional[datetime] = None
    min_cgpa: float = 0
    min_10th: float = 0
    min_12th: float = 0
    max_backlogs: int = 0
    status: str
    auto_published: bool = False
    attendance_published: bool = False
    posted_by: Optional[int] = None
    published_by: Optional[int] = None
    published_at: Optional[datetime] = None
    pdf_path: Optional[str] = None
    created_at: Optional[datetime] = None

class PublishRequest(BaseModel):
    """None = derive the selection from eligibility; [] = publish with nobody selected."""
    selected_students: Optional[List[int]] = None

    @field_validator("selected_students")
    @classmethod
    def distinct_ids(cls, v):
        if v is None:
            return v
        return sorted(set(v))

class DispatchResponse(BaseModel):
    job_name: str
    queued: bool
    task_id: Optional[str] = None
    result: Optional[dict] = None

class PublishResponse(BaseModel):
    message: str
    drive: DriveResponse
    dispatch: DispatchResponse

class DriveCreatedResponse(BaseModel):
    drive: DriveResponse
    dispatch: Optional[DispatchResponse] = None

class JobDomainResponse(BaseModel):
    domain_id: int
    domain_name: str


# ============================================================
# ELIGIBILITY SCHEMAS
# ============================================================

class FilterRequest(BaseModel):
    min_cgpa: float = Field(0, ge=0, le=10)
    min_10th: float = Field(0, ge=0, le=100)
    min_12th: float = Field(0, ge=0, le=100)
    max_backlogs: int = Field(0, ge=0)

class EligibleStudent(BaseModel):
    student_id: int
    name: Optional[str] = None
    email: Optional[str] = None
    roll_number: Optional[str] = None
    branch: Optional[str] = None
    cgpa: Optional[float] = None
    tenth_percent: Optional[float] = None
    twelfth_percent: Optional[float] = None
    active_backlogs: int = 0

class EligibilityCheckResponse(BaseModel):
    eligible: bool
    reason: str

class SubFilterResponse(BaseModel):
    total: int
    filtered_count: int
    students: List[EligibleStudent]
    unique_branches: List[Optional[str]]


# ============================================================
# REGISTRATION SCHEMAS
# ============================================================

class RegistrationResponse(BaseModel):
    registration_id: int
    drive_id: int
    student_id: int
    registered_at: Optional[datetime] = None

class RegistrationCheckResponse(BaseModel):
    registered: bool


# ============================================================
# ATTENDANCE SCHEMAS
# ============================================================

class AttendanceMark(BaseModel):
    student_id: int
    status: AttendanceStatus

class FinishedDriveResponse(BaseModel):
    drive_id: int
    finished_date: Optional[datetime] = None
    total_registered: int = 0
    total_present: int = 0
    total_absent: int = 0
    company_name: Optional[str] = None
    job_title: Optional[str] = None
    interview_date: Optional[datetime] = None
    pdf_path: Optional[str] = None
    domain_id: Optional[int] = None
    domain_name: Optional[str] = None


# ============================================================
# JOB SCHEMAS
# ============================================================

class DeadLetterResponse(BaseModel):
    id: str = Field(..., alias="_id")
    task_id: str
    job_name: str
    payload: dict = {}
    attempts: int
    error: str
    traceback: Optional[str] = None
    status: str
    failed_at: datetime
    retried_at: Optional[datetime] = None
    retry_task_id: Optional[str] = None

    model_config = {"populate_by_name": True}

class RetryResponse(BaseModel):
    dead_letter_id: str
    dispatch: DispatchResponse

class JobStatusResponse(BaseModel):
    task_id: str
    state: str
    result: Optional[Any] = None


# ============================================================
# ANALYTICS SCHEMAS
# ============================================================

class SummaryResponse(BaseModel):
    total_drives: int
    posted: int
    ongoing: int
    finished: int
    registrations: int
    attendance_rate_percent: int

class DayCount(BaseModel):
    day: str
    count: int

class DayPercent(BaseModel):
    day: str
    percent: int

class DriveRegistrations(BaseModel):
    drive_id: int
    company_name: str
    job_title: str
    registrations: int


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True
