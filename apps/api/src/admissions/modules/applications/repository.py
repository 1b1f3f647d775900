"""
Admission Applications Repository

Database operations for admission applications. All operations are async and
follow the repository pattern for clean separation of concerns between data
access and business logic.

Design Principles:
- All queries are parameterized (no SQL injection)
- Single responsibility - only database operations, no business logic
- Decisions are written with a conditional UPDATE so a record leaves
  Pending exactly once, even under concurrent staff actions
"""

from datetime import UTC, date, datetime
from uuid import UUID

from sqlalchemy import case, exists, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Application, ApplicationStatus
from .schemas import ApplicationCreate


async def create(
    db: AsyncSession,
    data: ApplicationCreate,
    application_number: str,
    photo_url: str = "",
    signature_url: str = "",
) -> Application:
    """
    Insert a new Pending application.

    Raises:
        IntegrityError: If the application number is already taken. The
            session is rolled back before re-raising.
    """
    new_application = Application(
        application_number=application_number,
        photo_url=photo_url,
        signature_url=signature_url,
        status=ApplicationStatus.PENDING,
        **data.model_dump(),
    )

    db.add(new_application)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise
    await db.refresh(new_application)

    return new_application


async def get_by_id(db: AsyncSession, id: UUID) -> Application | None:
    """Get application by ID."""
    return await db.get(Application, id)


async def application_number_exists(db: AsyncSession, application_number: str) -> bool:
    """Check whether an application number is already in use."""
    result = await db.execute(
        select(exists().where(Application.application_number == application_number))
    )
    return bool(result.scalar())


async def roll_number_exists(db: AsyncSession, roll_number: str) -> bool:
    """Check whether a roll number is already assigned."""
    result = await db.execute(select(exists().where(Application.roll_number == roll_number)))
    return bool(result.scalar())


async def find_by_lookup_key(
    db: AsyncSession, application_number: str, dob: date
) -> list[Application]:
    """
    Find applications matching both the application number and date of birth.

    Exact, case-sensitive comparison on both fields. Results are ordered by
    (submitted_at, id) so callers can take the earliest.
    """
    result = await db.execute(
        select(Application)
        .where(
            Application.application_number == application_number,
            Application.dob == dob,
        )
        .order_by(Application.submitted_at.asc(), Application.id.asc())
    )
    return list(result.scalars().all())


# Valid status transitions - prevents invalid state changes
# Approved and Rejected are terminal
VALID_STATUS_TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    ApplicationStatus.PENDING: {
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
    },
    ApplicationStatus.APPROVED: set(),
    ApplicationStatus.REJECTED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(
        self,
        current_status: ApplicationStatus,
        new_status: ApplicationStatus,
    ):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid_transitions)}"
        )


def validate_transition(current_status: ApplicationStatus, new_status: ApplicationStatus) -> None:
    """
    Check a transition against the state machine.

    Raises:
        InvalidStatusTransitionError: If the move is not allowed
    """
    if new_status not in VALID_STATUS_TRANSITIONS.get(current_status, set()):
        raise InvalidStatusTransitionError(current_status, new_status)


async def decide_application(
    db: AsyncSession,
    application_id: UUID,
    status: ApplicationStatus,
    decided_by: UUID | None = None,
    **fields,
) -> Application | None:
    """
    Move a Pending application to a decided status in one conditional UPDATE.

    Args:
        db: Database session
        application_id: UUID of the application
        status: APPROVED or REJECTED
        decided_by: Staff user recording the decision
        **fields: Derived fields written with the decision (roll number and
            exam-day fields on approval)

    Returns:
        The updated application, or None if it was no longer Pending (or
        does not exist) when the UPDATE ran

    Raises:
        InvalidStatusTransitionError: If ``status`` is not reachable from Pending
        IntegrityError: If a unique field (roll number) collides. The session
            is rolled back before re-raising.
    """
    validate_transition(ApplicationStatus.PENDING, status)

    stmt = (
        update(Application)
        .where(
            Application.id == application_id,
            Application.status == ApplicationStatus.PENDING,
        )
        .values(
            status=status,
            decided_at=datetime.now(UTC),
            decided_by=decided_by,
            **fields,
        )
        .returning(Application)
        .execution_options(populate_existing=True)
    )

    try:
        result = await db.execute(stmt)
        application = result.scalar_one_or_none()
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise

    return application


# ============================================
# Dashboard Repository Methods
# ============================================


def _apply_filters(query, status: ApplicationStatus | None, search: str | None):
    if status:
        query = query.where(Application.status == status)

    # Case-insensitive search across name, number and email
    if search and search.strip():
        search_pattern = f"%{search.strip()}%"
        query = query.where(
            or_(
                Application.student_name.ilike(search_pattern),
                Application.application_number.ilike(search_pattern),
                Application.email.ilike(search_pattern),
            )
        )
    return query


async def get_applications_for_admin(
    db: AsyncSession,
    *,
    status: ApplicationStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Application], int]:
    """
    Get applications with filters and pagination for the staff dashboard.

    Newest submissions come first.

    Args:
        db: Database session
        status: Filter by application status (optional)
        search: Case-insensitive substring of student name, application
                number or email (optional)
        skip: Number of records to skip for pagination. Default: 0
        limit: Maximum records to return (1-100). Default: 20

    Returns:
        Tuple of (list of applications, total count matching filters)
    """
    query = _apply_filters(select(Application), status, search)

    # Get total count before pagination
    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = (
        query.order_by(Application.submitted_at.desc(), Application.id.desc())
        .offset(skip)
        .limit(limit)
    )

    result = await db.execute(query)
    applications = list(result.scalars().all())

    return applications, total


async def list_applications(
    db: AsyncSession,
    *,
    status: ApplicationStatus | None = None,
) -> list[Application]:
    """All applications, optionally of one status, newest first."""
    query = _apply_filters(select(Application), status, None)
    result = await db.execute(query.order_by(Application.submitted_at.desc()))
    return list(result.scalars().all())


async def get_dashboard_stats(db: AsyncSession) -> dict:
    """
    Count applications per status in a single aggregate query.

    Returns:
        Dict with total, pending, approved and rejected counts
    """
    query = select(
        func.count(Application.id).label("total"),
        func.count(case((Application.status == ApplicationStatus.PENDING, 1))).label("pending"),
        func.count(case((Application.status == ApplicationStatus.APPROVED, 1))).label("approved"),
        func.count(case((Application.status == ApplicationStatus.REJECTED, 1))).label("rejected"),
    )

    result = await db.execute(query)
    row = result.one()

    return {
        "total": row.total,
        "pending": row.pending,
        "approved": row.approved,
        "rejected": row.rejected,
    }
