"""
Admission Applications Router

Public API endpoints for applicants. No authentication is required.

Endpoints:
- POST /applications - Submit a new application (multipart form)
- POST /applications/lookup - Check status by application number + date of birth
- POST /applications/admit-card - Admit card for an approved application
- GET /applications/options - Allowed values for the form's select inputs

Security:
- Application numbers are generated server-side, never accepted from the client
- Lookup and admit card requests are rate limited per client IP
- Lookup failures return one generic message
- XSS prevention in email templates
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from admissions.core.config import settings
from admissions.core.database import get_db
from admissions.core.rate_limit import get_client_ip, rate_limit
from admissions.modules.applications import service
from admissions.modules.applications.helpers import FORM_OPTIONS
from admissions.modules.applications.schemas import (
    REQUIRED_FIELDS,
    AdmitCardResponse,
    ApplicationStatusResponse,
    ApplicationSubmittedResponse,
    FormOptionsResponse,
    LookupRequest,
)
from admissions.modules.applications.service import (
    ApplicationServiceError,
    Attachment,
    SubmissionValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Every text field the form may send; state and exam_state default to Assam
FORM_FIELDS: tuple[str, ...] = (*REQUIRED_FIELDS, "state", "exam_state")

ERROR_EXAMPLE_NOT_FOUND = {
    "description": "No application matches both values",
    "content": {
        "application/json": {
            "example": {
                "detail": {
                    "error": "APPLICATION_NOT_FOUND",
                    "message": service.LOOKUP_NOT_FOUND_MESSAGE,
                }
            }
        }
    },
}

ERROR_EXAMPLE_RATE_LIMITED = {
    "description": "Too many lookups from this client",
    "content": {
        "application/json": {
            "example": {
                "detail": {
                    "error": "RATE_LIMIT_EXCEEDED",
                    "message": "Rate limit exceeded. Maximum 10 requests per 60 seconds.",
                    "retry_after_seconds": 60,
                }
            }
        }
    },
}


def _lookup_rate_limit_key(request: Request) -> str:
    return f"rate_limit:lookup:{get_client_ip(request)}"


def _service_error_to_http(e: ApplicationServiceError) -> HTTPException:
    detail = {"error": e.error_code, "message": e.message}
    if isinstance(e, SubmissionValidationError):
        detail["field"] = e.field
    return HTTPException(status_code=e.status_code, detail=detail)


def _internal_error(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


async def _read_attachment(value) -> Attachment | None:
    """
    Read an uploaded file part into memory.

    At most one byte past the size limit is read, which is enough for the
    service to reject it. An empty part counts as no file.
    """
    if not isinstance(value, UploadFile):
        return None
    content = await value.read(settings.max_upload_bytes + 1)
    if not content:
        return None
    return Attachment(filename=value.filename, content_type=value.content_type, content=content)


@router.post(
    "",
    response_model=ApplicationSubmittedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Admission Application",
    description="""
Submit a new admission application as `multipart/form-data`.

**Fields:** session, admission_class, location, student_name, dob (YYYY-MM-DD),
gender, religion, email, father_name, father_occupation, whatsapp_no,
mother_name, mother_occupation, mobile_no, village, post_office, pin_code,
district, exam_district, exam_centre, info_source. Optional: state and
exam_state (default Assam).

**Files (optional):** `photo` and `signature`, images of at most 500 KB each.

After submission the application is Pending and a confirmation email with
the application number is sent to the applicant.
""",
    responses={
        201: {
            "description": "Application created successfully",
            "model": ApplicationSubmittedResponse,
        },
        400: {
            "description": "A required field is missing or invalid",
            "content": {
                "application/json": {
                    "example": {
                        "detail": {
                            "error": "VALIDATION_ERROR",
                            "message": "Father name is required.",
                            "field": "father_name",
                        }
                    }
                }
            },
        },
        502: {"description": "Photo or signature upload failed"},
        503: {"description": "The application could not be saved"},
    },
)
async def submit_application(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> ApplicationSubmittedResponse:
    """
    Submit a new admission application.

    Args:
        request: Incoming request carrying the multipart form
        db: Database session (injected)

    Returns:
        Application ID, number, status and submission time

    Raises:
        HTTPException 400: If validation fails
        HTTPException 502: If an upload fails
        HTTPException 503: If the record cannot be saved
    """
    form = await request.form()
    try:
        fields = {
            name: value if isinstance(value, str) else None
            for name in FORM_FIELDS
            for value in [form.get(name)]
        }
        photo = await _read_attachment(form.get("photo"))
        signature = await _read_attachment(form.get("signature"))

        application = await service.submit_application(db, fields, photo, signature)

        logger.info(
            f"Application submitted successfully: id={application.id}, "
            f"number={application.application_number}"
        )

        return ApplicationSubmittedResponse.model_validate(application)

    except SubmissionValidationError as e:
        logger.info(f"Submission rejected: field={e.field}")
        raise _service_error_to_http(e) from e
    except ApplicationServiceError as e:
        logger.error(f"Application service error: {e.message}")
        raise _service_error_to_http(e) from e
    except HTTPException:
        # Re-raise HTTPExceptions without wrapping
        raise
    except Exception as e:
        logger.exception(f"Unexpected error submitting application: {e}")
        raise _internal_error(e) from e
    finally:
        await form.close()


@router.get(
    "/options",
    response_model=FormOptionsResponse,
    summary="List Form Options",
    description="Allowed values for the session, class, location, district, "
    "exam centre and information source selects.",
)
async def list_form_options() -> FormOptionsResponse:
    """Return the select options used by the application form."""
    return FormOptionsResponse(**FORM_OPTIONS)


@router.post(
    "/lookup",
    response_model=ApplicationStatusResponse,
    summary="Check Application Status",
    description="""
Look up an application by its application number and the applicant's date of
birth. Both must match exactly.

Approved applications include the roll number and exam details.

**Rate limit:** 10 requests per minute per client.
""",
    responses={
        200: {
            "description": "Application status retrieved successfully",
            "model": ApplicationStatusResponse,
        },
        404: ERROR_EXAMPLE_NOT_FOUND,
        429: ERROR_EXAMPLE_RATE_LIMITED,
    },
)
@rate_limit(
    limit=lambda: settings.lookup_rate_limit,
    window_seconds=lambda: settings.lookup_rate_window_seconds,
    key_func=_lookup_rate_limit_key,
)
async def lookup_application(
    request: Request,
    data: LookupRequest,
    db: AsyncSession = Depends(get_db),
) -> ApplicationStatusResponse:
    """
    Get the current status of an application.

    Args:
        request: Incoming request (used for rate limiting)
        data: Application number and date of birth
        db: Database session (injected)

    Returns:
        Status, label, description and any exam details
    """
    try:
        return await service.get_application_status(db, data.application_number, data.dob)

    except ApplicationServiceError as e:
        if e.status_code >= 500:
            logger.error(f"Application service error: {e.message}")
        raise _service_error_to_http(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error looking up application: {e}")
        raise _internal_error(e) from e


@router.post(
    "/admit-card",
    response_model=AdmitCardResponse,
    summary="Get Admit Card",
    description="""
Get the admit card for an approved application, identified by application
number and date of birth. Rendering it (PDF, print) is left to the client.

**Rate limit:** shared with the status lookup.
""",
    responses={
        200: {"description": "Admit card data", "model": AdmitCardResponse},
        404: ERROR_EXAMPLE_NOT_FOUND,
        409: {
            "description": "Application is not approved",
            "content": {
                "application/json": {
                    "example": {
                        "detail": {
                            "error": "ADMIT_CARD_UNAVAILABLE",
                            "message": "Admit card is available only for approved applications. "
                            "Current status: Pending.",
                        }
                    }
                }
            },
        },
        429: ERROR_EXAMPLE_RATE_LIMITED,
    },
)
@rate_limit(
    limit=lambda: settings.lookup_rate_limit,
    window_seconds=lambda: settings.lookup_rate_window_seconds,
    key_func=_lookup_rate_limit_key,
)
async def get_admit_card(
    request: Request,
    data: LookupRequest,
    db: AsyncSession = Depends(get_db),
) -> AdmitCardResponse:
    """Return structured admit card data for an approved application."""
    try:
        card = await service.get_admit_card(db, data.application_number, data.dob)
        logger.info(f"Admit card issued for {card.application_number}")
        return card

    except ApplicationServiceError as e:
        raise _service_error_to_http(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error building admit card: {e}")
        raise _internal_error(e) from e
