"""
Admission Applications Schemas

Pydantic schemas for request validation and response serialization.
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

# Re-use enums from models (they work with Pydantic too!)
from admissions.modules.applications.models import ApplicationStatus

# Profile fields the applicant must fill in, in form order.
REQUIRED_FIELDS: tuple[str, ...] = (
    "session",
    "admission_class",
    "location",
    "student_name",
    "dob",
    "gender",
    "religion",
    "email",
    "father_name",
    "father_occupation",
    "whatsapp_no",
    "mother_name",
    "mother_occupation",
    "mobile_no",
    "village",
    "post_office",
    "pin_code",
    "district",
    "exam_district",
    "exam_centre",
    "info_source",
)

DEFAULT_STATE = "Assam"


class ApplicationCreate(BaseModel):
    """Validated profile data for POST /applications.

    The form is multipart, so the router collects the fields and the service
    builds this model after its own required-field pass.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    # Programme
    session: str = Field(..., min_length=1, max_length=20)
    admission_class: str = Field(..., min_length=1, max_length=50)
    location: str = Field(..., min_length=1, max_length=100)

    # Candidate
    student_name: str = Field(..., min_length=1, max_length=200)
    dob: date
    gender: str = Field(..., min_length=1, max_length=20)
    religion: str = Field(..., min_length=1, max_length=50)
    email: EmailStr

    # Parents
    father_name: str = Field(..., min_length=1, max_length=200)
    father_occupation: str = Field(..., min_length=1, max_length=100)
    mother_name: str = Field(..., min_length=1, max_length=200)
    mother_occupation: str = Field(..., min_length=1, max_length=100)

    # Contact
    whatsapp_no: str = Field(..., min_length=1, max_length=20)
    mobile_no: str = Field(..., min_length=1, max_length=20)

    # Address
    village: str = Field(..., min_length=1, max_length=200)
    post_office: str = Field(..., min_length=1, max_length=200)
    pin_code: str = Field(..., min_length=1, max_length=10)
    state: str = Field(DEFAULT_STATE, min_length=1, max_length=100)
    district: str = Field(..., min_length=1, max_length=100)

    # Exam preference
    exam_state: str = Field(DEFAULT_STATE, min_length=1, max_length=100)
    exam_district: str = Field(..., min_length=1, max_length=100)
    exam_centre: str = Field(..., min_length=1, max_length=200)
    info_source: str = Field(..., min_length=1, max_length=100)


class ApplicationSubmittedResponse(BaseModel):
    """Response after submitting an application."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_number: str
    status: ApplicationStatus
    submitted_at: datetime
    message: str = "Application submitted successfully. A confirmation email is on its way."


class LookupRequest(BaseModel):
    """Application number and date of birth pair used for public lookups."""

    application_number: str = Field(..., min_length=1, max_length=20)
    dob: date


class ApplicationStatusResponse(BaseModel):
    """Response for POST /applications/lookup."""

    model_config = ConfigDict(from_attributes=True)

    application_number: str
    student_name: str
    status: ApplicationStatus
    status_label: str
    status_description: str
    submitted_at: datetime
    roll_number: str | None = None
    exam_date: date | None = None
    exam_time: str | None = None
    exam_centre_assigned: str | None = None


class AdmitCardResponse(BaseModel):
    """Structured admit card for an approved application.

    Rendering (PDF or print view) is left to the client.
    """

    application_number: str
    roll_number: str
    student_name: str
    father_name: str
    dob: date
    gender: str
    admission_class: str
    session: str
    exam_date: date
    exam_time: str
    exam_centre: str
    photo_url: str
    signature_url: str
    instructions: list[str]


class FormOptionsResponse(BaseModel):
    """Allowed values for the application form's select inputs."""

    sessions: list[str]
    classes: list[str]
    locations: list[str]
    districts: list[str]
    exam_centres: list[str]
    info_sources: list[str]
    default_state: str = DEFAULT_STATE


# ============================================
# Staff Dashboard Schemas
# ============================================


class ApplicationListItem(BaseModel):
    """Application summary for the dashboard table."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Application UUID")
    application_number: str = Field(..., description="Public application number")
    student_name: str = Field(..., description="Candidate's full name")
    email: str = Field(..., description="Candidate's email address")
    admission_class: str = Field(..., description="Class applied for")
    exam_centre: str = Field(..., description="Preferred exam centre")
    status: ApplicationStatus = Field(..., description="Current application status")
    submitted_at: datetime = Field(..., description="When application was submitted")
    roll_number: str | None = Field(None, description="Roll number (approved only)")


class ApplicationListResponse(BaseModel):
    """Paginated list of applications for the staff dashboard."""

    applications: list[ApplicationListItem] = Field(
        ..., description="List of application summaries"
    )
    total: int = Field(..., ge=0, description="Total number of applications matching filters")
    skip: int = Field(..., ge=0, description="Number of records skipped")
    limit: int = Field(..., ge=1, le=100, description="Maximum records per page")


class DashboardStats(BaseModel):
    """Application counts shown on the dashboard header."""

    total: int = Field(..., ge=0, description="All applications")
    pending: int = Field(..., ge=0, description="Applications awaiting a decision")
    approved: int = Field(..., ge=0, description="Approved applications")
    rejected: int = Field(..., ge=0, description="Rejected applications")


class ApplicationDetailResponse(ApplicationCreate):
    """Complete application record for staff review."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Application UUID")
    application_number: str = Field(..., description="Public application number")
    email: str = Field(..., description="Candidate's email address")
    photo_url: str = Field("", description="Photo URL, empty when none was uploaded")
    signature_url: str = Field("", description="Signature URL, empty when none was uploaded")
    status: ApplicationStatus = Field(..., description="Current application status")
    submitted_at: datetime = Field(..., description="When application was submitted")
    decided_at: datetime | None = Field(None, description="When the decision was recorded")
    decided_by: UUID | None = Field(None, description="Staff user who decided")
    roll_number: str | None = Field(None, description="Roll number (approved only)")
    exam_date: date | None = Field(None, description="Exam date (approved only)")
    exam_time: str | None = Field(None, description="Exam time window (approved only)")
    exam_centre_assigned: str | None = Field(None, description="Assigned centre (approved only)")


class TransitionRequest(BaseModel):
    """Body for approve/reject. Staff must confirm the action explicitly."""

    confirm: bool = Field(False, description="Must be true to apply the decision")


class TransitionResponse(BaseModel):
    """Response after a staff decision."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_number: str
    status: ApplicationStatus
    roll_number: str | None = None
    exam_date: date | None = None
    exam_time: str | None = None
    exam_centre_assigned: str | None = None
    message: str


class FeedSnapshot(BaseModel):
    """One message on the live dashboard feed."""

    applications: list[ApplicationListItem]
    total: int
    generated_at: datetime
