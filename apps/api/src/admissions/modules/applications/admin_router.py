"""
Admission Applications Admin Router

API endpoints for admissions staff to review applications.
All endpoints require an authenticated staff user.

Endpoints:
- GET /admin/applications - List applications with filters and pagination
- GET /admin/applications/stats - Counts per status
- GET /admin/applications/{id} - Get application details
- POST /admin/applications/{id}/approve - Approve (assigns roll number and exam details)
- POST /admin/applications/{id}/reject - Reject
- WS /admin/applications/feed - Live snapshots of the filtered list

Security:
- All endpoints require a valid staff JWT (WebSocket: ``token`` query parameter)
- Decisions require an explicit ``{"confirm": true}`` body
- Rate limiting on decision endpoints
- Audit logging for all staff actions
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.auth import StaffUser, authenticate_token, get_current_staff_user
from admissions.core.database import async_session_maker, get_db
from admissions.core.rate_limit import RateLimitExceeded, check_rate_limit
from admissions.modules.applications import service
from admissions.modules.applications.feed import ApplicationSubscription
from admissions.modules.applications.models import ApplicationStatus
from admissions.modules.applications.schemas import (
    ApplicationDetailResponse,
    ApplicationListItem,
    ApplicationListResponse,
    DashboardStats,
    FeedSnapshot,
    TransitionRequest,
    TransitionResponse,
)
from admissions.modules.applications.service import (
    ApplicationNotFoundError,
    ApplicationServiceError,
    InvalidTransitionError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limiting Configuration
# ============================================

# Rate limits for staff decision endpoints
RATE_LIMIT_APPROVE = (10, 60)  # 10 approvals per minute
RATE_LIMIT_REJECT = (10, 60)  # 10 rejections per minute


async def _check_staff_rate_limit(
    staff: StaffUser,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Check rate limit for a staff action.

    Raises:
        RateLimitExceeded: If rate limit is exceeded
    """
    key = f"staff:{action}:{staff.id}"
    allowed = await check_rate_limit(key, limit, window_seconds)

    if not allowed:
        logger.warning(
            f"Rate limit exceeded for staff {staff.id} on action '{action}': "
            f"{limit}/{window_seconds}s"
        )
        raise RateLimitExceeded(limit, window_seconds)


# ============================================
# Helper Functions
# ============================================


def _handle_service_error(e: ApplicationServiceError) -> None:
    """Convert service errors to HTTPExceptions."""
    raise HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    ) from e


def _require_confirmation(body: TransitionRequest | None, action: str) -> None:
    if body is None or not body.confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "CONFIRMATION_REQUIRED",
                "message": f'Send {{"confirm": true}} to {action} this application.',
            },
        )


def get_session_factory() -> Callable[[], AsyncSession]:
    """Session factory for long-lived connections that open a session per query."""
    return async_session_maker


# ============================================
# List & Stats Endpoints
# ============================================


@router.get(
    "",
    response_model=ApplicationListResponse,
    summary="List Applications",
    description="""
Get paginated list of applications, newest first.

**Filters:**
- `status`: Pending, Approved or Rejected
- `search`: Case-insensitive match on student name, application number or email

**Pagination:**
- `skip`: Number of records to skip. Default: 0
- `limit`: Maximum records to return (1-100). Default: 20

**Access:** Staff only
""",
    responses={
        200: {
            "description": "List of applications with pagination",
            "model": ApplicationListResponse,
        },
        401: {
            "description": "Unauthorized - invalid or missing token",
        },
    },
)
async def list_applications(
    status: ApplicationStatus | None = Query(
        None,
        description="Filter by application status",
    ),
    search: str | None = Query(
        None,
        max_length=100,
        description="Search term for name/number/email",
    ),
    skip: int = Query(
        0,
        ge=0,
        description="Records to skip",
    ),
    limit: int = Query(
        20,
        ge=1,
        le=100,
        description="Maximum records to return",
    ),
    db: AsyncSession = Depends(get_db),
    staff: StaffUser = Depends(get_current_staff_user),
) -> ApplicationListResponse:
    """List applications with filters and pagination."""
    try:
        result = await service.admin_get_applications_list(
            db,
            status=status,
            search=search,
            skip=skip,
            limit=limit,
        )

        logger.info(
            f"Staff {staff.id} listed applications: "
            f"total={result['total']}, returned={len(result['applications'])}"
        )

        return ApplicationListResponse(
            applications=[
                ApplicationListItem.model_validate(app) for app in result["applications"]
            ],
            total=result["total"],
            skip=result["skip"],
            limit=result["limit"],
        )

    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error listing applications: {e}")
        raise HTTPException(
            status_code=500,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred.",
            },
        ) from e


@router.get(
    "/stats",
    response_model=DashboardStats,
    summary="Get Dashboard Statistics",
    description="Counts of all, Pending, Approved and Rejected applications.\n\n"
    "**Access:** Staff only",
    responses={
        200: {"description": "Dashboard statistics", "model": DashboardStats},
        401: {"description": "Unauthorized - invalid or missing token"},
    },
)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    staff: StaffUser = Depends(get_current_staff_user),
) -> DashboardStats:
    """Get counts per status."""
    try:
        stats = await service.admin_get_dashboard_stats(db)
        return DashboardStats(**stats)
    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error getting dashboard stats: {e}")
        raise HTTPException(
            status_code=500,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred.",
            },
        ) from e


# ============================================
# Live Feed
# ============================================


@router.websocket("/feed")
async def application_feed(
    websocket: WebSocket,
    token: str = Query(..., description="Staff access token"),
    status: ApplicationStatus | None = Query(None),
    search: str | None = Query(None, max_length=100),
    session_factory: Callable[[], AsyncSession] = Depends(get_session_factory),
):
    """
    Live dashboard feed.

    Sends the full filtered list, newest first, on connect and after every
    change. Example:
        ws://localhost:8000/api/v1/admin/applications/feed?token=...&status=Pending
    """
    try:
        staff = await authenticate_token(token)
    except HTTPException:
        await websocket.close(code=1008)
        return

    await websocket.accept()
    logger.info(f"Staff {staff.id} opened the application feed (status={status}, search={search})")

    subscription = ApplicationSubscription(session_factory, status=status, search=search)

    async def watch_disconnect() -> None:
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            subscription.cancel()

    watcher = asyncio.create_task(watch_disconnect())

    try:
        async for snapshot in subscription:
            message = FeedSnapshot(
                applications=[ApplicationListItem.model_validate(app) for app in snapshot],
                total=len(snapshot),
                generated_at=datetime.now(UTC),
            )
            await websocket.send_json(message.model_dump(mode="json"))
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"Application feed error for staff {staff.id}: {e}")
    finally:
        subscription.cancel()
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher
        logger.info(f"Staff {staff.id} closed the application feed")


@router.get(
    "/{application_id}",
    response_model=ApplicationDetailResponse,
    summary="Get Application Details",
    description="Complete application record, including attachments and decision fields.\n\n"
    "**Access:** Staff only",
    responses={
        200: {"description": "Application details", "model": ApplicationDetailResponse},
        401: {"description": "Unauthorized - invalid or missing token"},
        404: {"description": "Application not found"},
    },
)
async def get_application_detail(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    staff: StaffUser = Depends(get_current_staff_user),
) -> ApplicationDetailResponse:
    """Get complete application details."""
    try:
        application = await service.admin_get_application_detail(db, application_id)
        logger.info(f"Staff {staff.id} viewed application {application_id}")
        return ApplicationDetailResponse.model_validate(application)

    except ApplicationNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": e.error_code,
                "message": e.message,
            },
        ) from e
    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error getting application detail: {e}")
        raise HTTPException(
            status_code=500,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred.",
            },
        ) from e


# ============================================
# Decision Endpoints
# ============================================


async def _decide(
    application_id: UUID,
    target: ApplicationStatus,
    db: AsyncSession,
    staff: StaffUser,
) -> TransitionResponse:
    action = "approve" if target == ApplicationStatus.APPROVED else "reject"
    try:
        application = await service.transition_application(db, application_id, target, staff.id)

        logger.info(
            f"Staff {staff.id} {application.status.value.lower()} application "
            f"{application.application_number}"
        )

        return TransitionResponse(
            id=application.id,
            application_number=application.application_number,
            status=application.status,
            roll_number=application.roll_number,
            exam_date=application.exam_date,
            exam_time=application.exam_time,
            exam_centre_assigned=application.exam_centre_assigned,
            message=f"Application {application.status.value.lower()}.",
        )

    except ApplicationNotFoundError as e:
        logger.warning(f"Application not found: {application_id}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": e.error_code,
                "message": e.message,
            },
        ) from e
    except InvalidTransitionError as e:
        logger.warning(f"Cannot {action} application {application_id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": e.error_code,
                "message": e.message,
            },
        ) from e
    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error trying to {action} application: {e}")
        raise HTTPException(
            status_code=500,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred.",
            },
        ) from e


@router.post(
    "/{application_id}/approve",
    response_model=TransitionResponse,
    summary="Approve Application",
    description="""
Approve a Pending application.

**Effects:**
- Status set to `Approved`
- A unique roll number is assigned
- Exam date and time are set from configuration; the exam centre is copied
  from the applicant's choice
- An approval email is sent to the applicant

**Requirements:**
- Body must be `{"confirm": true}`
- Application must be `Pending`; decided applications return 409

**Access:** Staff only
""",
    responses={
        200: {"description": "Application approved", "model": TransitionResponse},
        400: {"description": "Confirmation missing"},
        401: {"description": "Unauthorized - invalid or missing token"},
        404: {"description": "Application not found"},
        409: {"description": "Application has already been decided"},
        429: {"description": "Too many decisions"},
        503: {"description": "The decision could not be saved"},
    },
)
async def approve_application(
    application_id: UUID,
    body: TransitionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    staff: StaffUser = Depends(get_current_staff_user),
) -> TransitionResponse:
    """Approve an application."""
    _require_confirmation(body, "approve")
    await _check_staff_rate_limit(staff, "approve", *RATE_LIMIT_APPROVE)
    return await _decide(application_id, ApplicationStatus.APPROVED, db, staff)


@router.post(
    "/{application_id}/reject",
    response_model=TransitionResponse,
    summary="Reject Application",
    description="""
Reject a Pending application. No roll number or exam details are assigned.
A notification email is sent to the applicant.

**Requirements:**
- Body must be `{"confirm": true}`
- Application must be `Pending`; decided applications return 409

**Access:** Staff only
""",
    responses={
        200: {"description": "Application rejected", "model": TransitionResponse},
        400: {"description": "Confirmation missing"},
        401: {"description": "Unauthorized - invalid or missing token"},
        404: {"description": "Application not found"},
        409: {"description": "Application has already been decided"},
        429: {"description": "Too many decisions"},
        503: {"description": "The decision could not be saved"},
    },
)
async def reject_application(
    application_id: UUID,
    body: TransitionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    staff: StaffUser = Depends(get_current_staff_user),
) -> TransitionResponse:
    """Reject an application."""
    _require_confirmation(body, "reject")
    await _check_staff_rate_limit(staff, "reject", *RATE_LIMIT_REJECT)
    return await _decide(application_id, ApplicationStatus.REJECTED, db, staff)
