"""
Admission Applications Service Layer

Business logic for student admission applications.
Orchestrates validation, blob uploads, repository operations, the live
dashboard feed, and email notifications.

This module implements:
1. Submission Flow:
   - Validate required fields and attachment sizes before any side effect
   - Allocate a unique application number
   - Upload the optional photo and signature
   - Create the Pending record
   - Email a confirmation in a detached task

2. Decision Flow (staff):
   - Pending -> Approved assigns a roll number and the exam-day fields
   - Pending -> Rejected sets the status only
   - A record is decided exactly once; later attempts are refused

3. Status Verification (public):
   - Lookup by application number + date of birth
   - Admit card for approved applications

Security considerations:
- The application number is always generated server-side
- Lookup failures return one generic message whichever field mismatched
- Lookups are rate limited at the router
- Notification failures never reach the caller and are only logged
"""

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.config import settings
from admissions.core.email import (
    NotificationError,
    send_application_approved,
    send_application_received,
    send_application_rejected,
)
from admissions.core.storage import StorageError, upload_blob
from admissions.modules.applications import repository
from admissions.modules.applications.feed import notify_change
from admissions.modules.applications.helpers import (
    blob_path,
    generate_application_number,
    generate_roll_number,
)
from admissions.modules.applications.models import Application, ApplicationStatus
from admissions.modules.applications.schemas import (
    REQUIRED_FIELDS,
    AdmitCardResponse,
    ApplicationCreate,
    ApplicationStatusResponse,
)

logger = logging.getLogger(__name__)

# Constants
MAX_IDENTIFIER_ATTEMPTS = 5

LOOKUP_NOT_FOUND_MESSAGE = (
    "Application not found. Please check your Application Number and Date of Birth."
)

ADMIT_CARD_INSTRUCTIONS: list[str] = [
    "Bring this admit card along with a valid photo ID to the examination centre.",
    "This admit card is valid only for the exam date and centre printed on it.",
    "Reach the centre on time. Gates close at 09:45 AM and no late entry is allowed.",
    "Mobile phones, calculators and other electronic devices are not allowed in the hall.",
    "Rough sheets will be provided at the centre.",
    "Submit this admit card to the invigilator after the exam.",
]


@dataclass
class Attachment:
    """An uploaded file, already read into memory."""

    filename: str | None
    content_type: str | None
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class ApplicationServiceError(Exception):
    """Base exception for application service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class SubmissionValidationError(ApplicationServiceError):
    """Raised when a submission is missing a field or carries a bad value."""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(
            message=message or f"{_field_label(field)} is required.",
            error_code="VALIDATION_ERROR",
            status_code=400,
        )


class UploadError(ApplicationServiceError):
    """Raised when an attachment cannot be stored."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(
            message=f"Failed to upload {kind}. Please try again.",
            error_code="UPLOAD_FAILED",
            status_code=502,
        )


class PersistenceError(ApplicationServiceError):
    """Raised when the record store cannot complete a read or write."""

    def __init__(self, message: str = "The application could not be saved. Please try again."):
        super().__init__(
            message=message,
            error_code="PERSISTENCE_FAILED",
            status_code=503,
        )


class ApplicationNotFoundError(ApplicationServiceError):
    """Raised when an application is not found."""

    def __init__(self, application_id: UUID | None = None, message: str | None = None):
        if message is None:
            message = (
                f"Application {application_id} not found"
                if application_id
                else "Application not found"
            )
        super().__init__(
            message=message,
            error_code="APPLICATION_NOT_FOUND",
            status_code=404,
        )


class InvalidTransitionError(ApplicationServiceError):
    """Raised when a decision is not allowed from the record's current status."""

    def __init__(self, current_status: ApplicationStatus | None, target_status: Any):
        self.current_status = current_status
        self.target_status = target_status
        target = getattr(target_status, "value", target_status)
        if current_status is None:
            message = f"Cannot move application to {target}."
        elif current_status == ApplicationStatus.PENDING:
            message = f"Cannot move a Pending application to {target}."
        else:
            message = f"Application has already been {current_status.value.lower()}."
        super().__init__(
            message=message,
            error_code="INVALID_TRANSITION",
            status_code=409,
        )


class AdmitCardUnavailableError(ApplicationServiceError):
    """Raised when an admit card is requested for an application that is not approved."""

    def __init__(self, current_status: ApplicationStatus):
        self.current_status = current_status
        super().__init__(
            message=(
                "Admit card is available only for approved applications. "
                f"Current status: {current_status.value}."
            ),
            error_code="ADMIT_CARD_UNAVAILABLE",
            status_code=409,
        )


def _field_label(field: str) -> str:
    return field.replace("_", " ").capitalize()


# ============================================
# Detached notifications
# ============================================

_notification_tasks: set[asyncio.Task] = set()


async def _run_notification(coro: Coroutine[Any, Any, None], description: str) -> None:
    try:
        await coro
    except NotificationError as e:
        logger.error(f"Notification failed ({description}): {e}")
    except Exception:
        logger.exception(f"Unexpected error sending notification ({description})")


def dispatch_notification(coro: Coroutine[Any, Any, None], description: str) -> asyncio.Task:
    """
    Send a notification in a detached task.

    The caller never sees the outcome; failures are only logged.
    """
    task = asyncio.create_task(_run_notification(coro, description))
    _notification_tasks.add(task)
    task.add_done_callback(_notification_tasks.discard)
    return task


async def drain_notifications(timeout: float | None = None) -> None:
    """Wait for in-flight notification tasks, e.g. on shutdown."""
    pending = set(_notification_tasks)
    if not pending:
        return
    logger.info(f"Waiting for {len(pending)} notification task(s)")
    _, still_running = await asyncio.wait(pending, timeout=timeout)
    if still_running:
        logger.warning(f"{len(still_running)} notification task(s) still running after drain")


# ============================================
# Submission
# ============================================


def validate_submission(
    fields: dict[str, str | None],
    photo: Attachment | None = None,
    signature: Attachment | None = None,
) -> ApplicationCreate:
    """
    Check a raw submission and build the validated create schema.

    Runs before any upload or write.

    Args:
        fields: Form fields as submitted (strings, possibly empty)
        photo: Optional photo attachment
        signature: Optional signature attachment

    Returns:
        ApplicationCreate with trimmed, typed values

    Raises:
        SubmissionValidationError: Naming the first offending field
    """
    for field in REQUIRED_FIELDS:
        value = fields.get(field)
        if value is None or not str(value).strip():
            raise SubmissionValidationError(field)

    max_kib = settings.max_upload_bytes // 1024
    for kind, attachment in (("photo", photo), ("signature", signature)):
        if attachment is None:
            continue
        if attachment.size > settings.max_upload_bytes:
            raise SubmissionValidationError(
                kind, f"{kind.capitalize()} must be {max_kib} KB or smaller."
            )
        if attachment.content_type and not attachment.content_type.startswith("image/"):
            raise SubmissionValidationError(kind, f"{kind.capitalize()} must be an image file.")

    # Blank optional fields fall back to their defaults
    payload = {
        key: value for key, value in fields.items() if value is not None and str(value).strip()
    }

    try:
        return ApplicationCreate.model_validate(payload)
    except ValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0]) if error.get("loc") else "form"
        raise SubmissionValidationError(
            field, f"{_field_label(field)}: {error['msg']}"
        ) from e


async def _allocate_application_number(db: AsyncSession) -> str:
    """Generate an application number that is not yet in the store."""
    for _ in range(MAX_IDENTIFIER_ATTEMPTS):
        candidate = generate_application_number()
        if not await repository.application_number_exists(db, candidate):
            return candidate
        logger.warning(f"Application number collision on {candidate}, regenerating")
    raise PersistenceError("Could not allocate an application number. Please try again.")


async def _store_attachment(
    application_number: str, kind: str, attachment: Attachment | None
) -> str:
    """Upload one attachment; returns "" when none was supplied."""
    if attachment is None:
        return ""
    path = blob_path(application_number, kind, attachment.filename)
    try:
        return await upload_blob(
            path, attachment.content, attachment.content_type or "application/octet-stream"
        )
    except StorageError as e:
        logger.error(f"Upload failed for {path}: {e}")
        raise UploadError(kind) from e


async def submit_application(
    db: AsyncSession,
    fields: dict[str, str | None],
    photo: Attachment | None = None,
    signature: Attachment | None = None,
) -> Application:
    """
    Submit a new admission application.

    This is the main entry point for the public form. It:
    1. Validates every required field and attachment
    2. Allocates a unique application number
    3. Uploads the attachments
    4. Creates the record with Pending status
    5. Emails a confirmation in a detached task

    Args:
        db: Database session
        fields: Form fields as submitted
        photo: Optional photo attachment
        signature: Optional signature attachment

    Returns:
        The created Application

    Raises:
        SubmissionValidationError: If validation fails (nothing uploaded or written)
        UploadError: If an attachment cannot be stored
        PersistenceError: If the record cannot be written
    """
    data = validate_submission(fields, photo, signature)

    try:
        application_number = await _allocate_application_number(db)
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Store unavailable while allocating application number: {e}")
        raise PersistenceError() from e

    logger.info(f"Processing submission {application_number}")

    photo_url = await _store_attachment(application_number, "photo", photo)
    signature_url = await _store_attachment(application_number, "signature", signature)

    application = None
    for _ in range(MAX_IDENTIFIER_ATTEMPTS):
        try:
            application = await repository.create(
                db,
                data,
                application_number,
                photo_url=photo_url,
                signature_url=signature_url,
            )
            break
        except IntegrityError:
            # Uploaded blobs keep their original key; the record just points at them
            logger.warning(f"Application number {application_number} taken on insert, retrying")
            try:
                application_number = await _allocate_application_number(db)
            except (SQLAlchemyError, OSError) as e:
                raise PersistenceError() from e
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to persist application {application_number}: {e}")
            raise PersistenceError() from e

    if application is None:
        raise PersistenceError("Could not allocate an application number. Please try again.")

    logger.info(f"Created application {application.id} ({application.application_number})")

    dispatch_notification(
        send_application_received(
            to_email=application.email,
            student_name=application.student_name,
            application_number=application.application_number,
        ),
        f"confirmation for {application.application_number}",
    )
    notify_change()

    return application


# ============================================
# Decisions
# ============================================

DECISION_STATUSES = {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}


async def transition_application(
    db: AsyncSession,
    application_id: UUID,
    target_status: ApplicationStatus,
    staff_id: UUID | None = None,
) -> Application:
    """
    Record a staff decision on a Pending application.

    Approval assigns a fresh roll number and the exam-day fields (centre
    copied from the applicant's choice, date and time from settings) in the
    same conditional UPDATE that sets the status. Rejection sets the status
    only.

    Args:
        db: Database session
        application_id: UUID of the application
        target_status: APPROVED or REJECTED
        staff_id: Staff user making the decision

    Returns:
        The updated Application

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        InvalidTransitionError: If the target is not a decision or the
            application is no longer Pending
        PersistenceError: If the store fails
    """
    if target_status not in DECISION_STATUSES:
        raise InvalidTransitionError(None, target_status)

    logger.info(f"Staff {staff_id} moving application {application_id} to {target_status.value}")

    try:
        application = await repository.get_by_id(db, application_id)
    except (SQLAlchemyError, OSError) as e:
        raise PersistenceError() from e

    if not application:
        logger.warning(f"Application not found: {application_id}")
        raise ApplicationNotFoundError(application_id)

    try:
        repository.validate_transition(application.status, target_status)
    except repository.InvalidStatusTransitionError as e:
        logger.warning(f"Refused transition for {application_id}: {e}")
        raise InvalidTransitionError(application.status, target_status) from e

    updated = None
    try:
        if target_status == ApplicationStatus.APPROVED:
            updated = await _approve(db, application, staff_id)
        else:
            updated = await repository.decide_application(
                db, application_id, ApplicationStatus.REJECTED, decided_by=staff_id
            )
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Failed to record decision for {application_id}: {e}")
        raise PersistenceError("The decision could not be saved. Please try again.") from e

    if updated is None:
        # Another staff member decided it between our read and the UPDATE
        try:
            await db.refresh(application)
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError() from e
        logger.warning(f"Concurrent decision on {application_id}: now {application.status.value}")
        raise InvalidTransitionError(application.status, target_status)

    logger.info(
        f"Application {updated.application_number} {updated.status.value}"
        + (f" with roll number {updated.roll_number}" if updated.roll_number else "")
    )

    _notify_decision(updated)
    notify_change()

    return updated


async def _approve(db: AsyncSession, application: Application, staff_id: UUID | None):
    # A unique conflict rolls the session back and expires ``application``,
    # so everything the retries need is read up front.
    application_id = application.id
    exam_centre = application.exam_centre

    for _ in range(MAX_IDENTIFIER_ATTEMPTS):
        roll_number = generate_roll_number()
        if await repository.roll_number_exists(db, roll_number):
            logger.warning(f"Roll number collision on {roll_number}, regenerating")
            continue
        try:
            return await repository.decide_application(
                db,
                application_id,
                ApplicationStatus.APPROVED,
                decided_by=staff_id,
                roll_number=roll_number,
                exam_date=settings.exam_date,
                exam_time=settings.exam_time,
                exam_centre_assigned=exam_centre,
            )
        except IntegrityError:
            logger.warning(f"Roll number {roll_number} taken on update, retrying")
    raise PersistenceError("Could not allocate a roll number. Please try again.")


def _notify_decision(application: Application) -> None:
    if application.status == ApplicationStatus.APPROVED:
        coro = send_application_approved(
            to_email=application.email,
            student_name=application.student_name,
            application_number=application.application_number,
            roll_number=application.roll_number or "",
            exam_date=application.exam_date.isoformat() if application.exam_date else "",
            exam_time=application.exam_time or "",
            exam_centre=application.exam_centre_assigned or "",
        )
    else:
        coro = send_application_rejected(
            to_email=application.email,
            student_name=application.student_name,
            application_number=application.application_number,
        )
    dispatch_notification(
        coro, f"{application.status.value.lower()} for {application.application_number}"
    )


# ============================================
# Status Verification
# ============================================

# Status label and description mappings
STATUS_LABELS: dict[ApplicationStatus, str] = {
    ApplicationStatus.PENDING: "Under Review",
    ApplicationStatus.APPROVED: "Approved",
    ApplicationStatus.REJECTED: "Not Approved",
}

STATUS_DESCRIPTIONS: dict[ApplicationStatus, str] = {
    ApplicationStatus.PENDING: (
        "Your application has been received and is waiting for review by the admissions office."
    ),
    ApplicationStatus.APPROVED: (
        "Congratulations! Your application has been approved. You can now download your admit card."
    ),
    ApplicationStatus.REJECTED: (
        "Unfortunately, your application was not approved. Please contact the admissions office."
    ),
}


async def lookup_application(
    db: AsyncSession,
    application_number: str,
    dob: date,
) -> Application:
    """
    Find an application by its number and the applicant's date of birth.

    Both values must match exactly. The error is the same whichever value
    is wrong, so callers cannot fish for valid application numbers.

    Raises:
        ApplicationNotFoundError: If no record matches both values
        PersistenceError: If the store fails
    """
    try:
        matches = await repository.find_by_lookup_key(db, application_number, dob)
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Lookup failed: {e}")
        raise PersistenceError("Status lookup is temporarily unavailable.") from e

    if not matches:
        logger.info("Status lookup found no matching application")
        raise ApplicationNotFoundError(message=LOOKUP_NOT_FOUND_MESSAGE)

    if len(matches) > 1:
        logger.warning(
            f"{len(matches)} applications share number {application_number} and dob; "
            "returning the earliest"
        )

    return matches[0]


def build_status_response(application: Application) -> ApplicationStatusResponse:
    """Public view of an application's status."""
    return ApplicationStatusResponse(
        application_number=application.application_number,
        student_name=application.student_name,
        status=application.status,
        status_label=STATUS_LABELS.get(application.status, str(application.status.value)),
        status_description=STATUS_DESCRIPTIONS.get(application.status, ""),
        submitted_at=application.submitted_at,
        roll_number=application.roll_number,
        exam_date=application.exam_date,
        exam_time=application.exam_time,
        exam_centre_assigned=application.exam_centre_assigned,
    )


async def get_application_status(
    db: AsyncSession,
    application_number: str,
    dob: date,
) -> ApplicationStatusResponse:
    """Lookup plus the public status view."""
    application = await lookup_application(db, application_number, dob)
    return build_status_response(application)


async def get_admit_card(
    db: AsyncSession,
    application_number: str,
    dob: date,
) -> AdmitCardResponse:
    """
    Build the admit card for an approved application.

    Raises:
        ApplicationNotFoundError: If no record matches both values
        AdmitCardUnavailableError: If the application is not Approved
    """
    application = await lookup_application(db, application_number, dob)

    if application.status != ApplicationStatus.APPROVED:
        raise AdmitCardUnavailableError(application.status)

    return AdmitCardResponse(
        application_number=application.application_number,
        roll_number=application.roll_number,
        student_name=application.student_name,
        father_name=application.father_name,
        dob=application.dob,
        gender=application.gender,
        admission_class=application.admission_class,
        session=application.session,
        exam_date=application.exam_date,
        exam_time=application.exam_time,
        exam_centre=application.exam_centre_assigned,
        photo_url=application.photo_url,
        signature_url=application.signature_url,
        instructions=list(ADMIT_CARD_INSTRUCTIONS),
    )


# ============================================
# Staff Dashboard
# ============================================


async def admin_get_applications_list(
    db: AsyncSession,
    *,
    status: ApplicationStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> dict:
    """
    Get paginated list of applications for the staff dashboard.

    Returns:
        Dict with applications list, total count, skip, and limit
    """
    logger.info(
        f"Listing applications: status={status}, search={search}, skip={skip}, limit={limit}"
    )

    # Validate and cap limit
    limit = min(max(1, limit), 100)
    skip = max(0, skip)

    applications, total = await repository.get_applications_for_admin(
        db,
        status=status,
        search=search,
        skip=skip,
        limit=limit,
    )

    logger.info(f"Found {total} applications, returning {len(applications)}")

    return {
        "applications": applications,
        "total": total,
        "skip": skip,
        "limit": limit,
    }


async def admin_get_dashboard_stats(db: AsyncSession) -> dict:
    """Counts per status plus the total."""
    stats = await repository.get_dashboard_stats(db)
    logger.info(f"Dashboard stats: {stats}")
    return stats


async def admin_get_application_detail(
    db: AsyncSession,
    application_id: UUID,
) -> Application:
    """
    Get the complete application record for staff review.

    Raises:
        ApplicationNotFoundError: If application doesn't exist
    """
    application = await repository.get_by_id(db, application_id)

    if not application:
        logger.warning(f"Application not found: {application_id}")
        raise ApplicationNotFoundError(application_id)

    return application
