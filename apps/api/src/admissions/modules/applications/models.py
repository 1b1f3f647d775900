"""
Admission Applications Models

Database model for student admission applications.
Records are created by public submission and only mutated by staff decisions.
"""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    Index,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from admissions.core.database import Base


class ApplicationStatus(str, enum.Enum):
    """Status of an admission application."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class Application(Base):
    """
    Student admission application.

    Profile fields are written once at submission. The roll number and
    exam-day fields are populated only when staff approve the application.
    """

    __tablename__ = "applications"

    # Primary key
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Public identifier, AS40-<year>-<6 digits>
    application_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)

    # Programme
    session: Mapped[str] = mapped_column(String(20), nullable=False)
    admission_class: Mapped[str] = mapped_column(String(50), nullable=False)
    location: Mapped[str] = mapped_column(String(100), nullable=False)

    # Candidate
    student_name: Mapped[str] = mapped_column(String(200), nullable=False)
    dob: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[str] = mapped_column(String(20), nullable=False)
    religion: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    # Parents
    father_name: Mapped[str] = mapped_column(String(200), nullable=False)
    father_occupation: Mapped[str] = mapped_column(String(100), nullable=False)
    mother_name: Mapped[str] = mapped_column(String(200), nullable=False)
    mother_occupation: Mapped[str] = mapped_column(String(100), nullable=False)

    # Contact
    whatsapp_no: Mapped[str] = mapped_column(String(20), nullable=False)
    mobile_no: Mapped[str] = mapped_column(String(20), nullable=False)

    # Address
    village: Mapped[str] = mapped_column(String(200), nullable=False)
    post_office: Mapped[str] = mapped_column(String(200), nullable=False)
    pin_code: Mapped[str] = mapped_column(String(10), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    district: Mapped[str] = mapped_column(String(100), nullable=False)

    # Exam preference
    exam_state: Mapped[str] = mapped_column(String(100), nullable=False)
    exam_district: Mapped[str] = mapped_column(String(100), nullable=False)
    exam_centre: Mapped[str] = mapped_column(String(200), nullable=False)
    info_source: Mapped[str] = mapped_column(String(100), nullable=False)

    # Attachments ("" when not supplied)
    photo_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    signature_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="")

    # Status tracking
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(
            ApplicationStatus,
            name="application_status",
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decided_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    # Set on approval only
    roll_number: Mapped[str | None] = mapped_column(String(20), unique=True, nullable=True)
    exam_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    exam_time: Mapped[str | None] = mapped_column(String(50), nullable=True)
    exam_centre_assigned: Mapped[str | None] = mapped_column(String(200), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(status = 'Approved') = ("
            "roll_number IS NOT NULL AND exam_date IS NOT NULL "
            "AND exam_time IS NOT NULL AND exam_centre_assigned IS NOT NULL)",
            name="ck_applications_approval_fields",
        ),
        CheckConstraint(
            "status = 'Approved' OR (roll_number IS NULL AND exam_date IS NULL "
            "AND exam_time IS NULL AND exam_centre_assigned IS NULL)",
            name="ck_applications_unapproved_no_exam_fields",
        ),
        Index("ix_applications_status", "status"),
        Index("ix_applications_submitted_at", "submitted_at"),
        Index("ix_applications_number_dob", "application_number", "dob"),
    )
