"""
Unit tests for admission applications service layer.

These tests cover:
- Submission validation (required fields, attachment limits)
- Application submission, uploads and confirmation email
- Staff decisions (approve / reject) and the single-decision rule
- Public lookup and admit card
- Detached notification failures
"""

import re
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, MissingGreenlet, SQLAlchemyError

from admissions.core.config import settings
from admissions.core.email import NotificationError
from admissions.core.storage import StorageError
from admissions.modules.applications import repository as real_repository
from admissions.modules.applications.models import ApplicationStatus
from admissions.modules.applications.service import (
    ADMIT_CARD_INSTRUCTIONS,
    LOOKUP_NOT_FOUND_MESSAGE,
    AdmitCardUnavailableError,
    ApplicationNotFoundError,
    Attachment,
    InvalidTransitionError,
    PersistenceError,
    SubmissionValidationError,
    UploadError,
    admin_get_applications_list,
    drain_notifications,
    get_admit_card,
    get_application_status,
    lookup_application,
    submit_application,
    transition_application,
    validate_submission,
)

SERVICE = "admissions.modules.applications.service"
APPLICATION_NUMBER = re.compile(r"^AS40-\d{4}-\d{6}$")
ROLL_NUMBER = re.compile(r"^AS40R-\d{4}-\d{6}$")


def _use_real_state_machine(mock_repo):
    mock_repo.validate_transition = real_repository.validate_transition
    mock_repo.InvalidStatusTransitionError = real_repository.InvalidStatusTransitionError


class _ExpiringRecord:
    """Stands in for a loaded row that a session rollback expires.

    Once ``expired`` is set, reading any column fails the way an async
    session does when an expired attribute would need a lazy load.
    """

    def __init__(self, source):
        self._source = source
        self.expired = False

    def __getattr__(self, name):
        if self.expired:
            raise MissingGreenlet("greenlet_spawn has not been called")
        return getattr(self._source, name)


class TestValidateSubmission:
    """Tests for validate_submission."""

    def test_valid_fields_build_schema(self, valid_form_fields):
        """A complete form produces a typed create schema with default states."""
        data = validate_submission(valid_form_fields)

        assert data.dob == date(2010, 5, 14)
        assert data.state == "Assam"
        assert data.exam_state == "Assam"
        assert data.student_name == "Rahul Das"

    def test_values_are_trimmed(self, valid_form_fields):
        """Leading and trailing whitespace is stripped."""
        valid_form_fields["student_name"] = "  Rahul Das  "
        data = validate_submission(valid_form_fields)
        assert data.student_name == "Rahul Das"

    @pytest.mark.parametrize("field", ["student_name", "dob", "exam_centre", "info_source"])
    def test_missing_required_field(self, valid_form_fields, field):
        """A missing required field is named in the error."""
        del valid_form_fields[field]

        with pytest.raises(SubmissionValidationError) as exc_info:
            validate_submission(valid_form_fields)

        assert exc_info.value.field == field
        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "VALIDATION_ERROR"

    def test_whitespace_only_field_is_missing(self, valid_form_fields):
        """A field holding only spaces counts as empty."""
        valid_form_fields["father_name"] = "   "

        with pytest.raises(SubmissionValidationError) as exc_info:
            validate_submission(valid_form_fields)

        assert exc_info.value.field == "father_name"
        assert "required" in exc_info.value.message

    def test_first_missing_field_in_form_order(self, valid_form_fields):
        """When several fields are empty, the first in form order is reported."""
        valid_form_fields["mobile_no"] = ""
        valid_form_fields["session"] = ""

        with pytest.raises(SubmissionValidationError) as exc_info:
            validate_submission(valid_form_fields)

        assert exc_info.value.field == "session"

    def test_invalid_email(self, valid_form_fields):
        """A malformed email is reported against the email field."""
        valid_form_fields["email"] = "not-an-email"

        with pytest.raises(SubmissionValidationError) as exc_info:
            validate_submission(valid_form_fields)

        assert exc_info.value.field == "email"

    def test_invalid_dob(self, valid_form_fields):
        """A date of birth that is not a date is reported against dob."""
        valid_form_fields["dob"] = "14th May"

        with pytest.raises(SubmissionValidationError) as exc_info:
            validate_submission(valid_form_fields)

        assert exc_info.value.field == "dob"

    def test_photo_at_limit_is_accepted(self, valid_form_fields):
        """A photo of exactly the maximum size is allowed."""
        photo = Attachment("p.jpg", "image/jpeg", b"x" * settings.max_upload_bytes)
        validate_submission(valid_form_fields, photo=photo)

    def test_photo_over_limit_is_rejected(self, valid_form_fields):
        """One byte over the maximum size is refused."""
        photo = Attachment("p.jpg", "image/jpeg", b"x" * (settings.max_upload_bytes + 1))

        with pytest.raises(SubmissionValidationError) as exc_info:
            validate_submission(valid_form_fields, photo=photo)

        assert exc_info.value.field == "photo"
        assert exc_info.value.message == "Photo must be 500 KB or smaller."

    def test_signature_over_limit_is_rejected(self, valid_form_fields):
        """The size limit applies to the signature as well."""
        signature = Attachment("s.png", "image/png", b"x" * (settings.max_upload_bytes + 1))

        with pytest.raises(SubmissionValidationError) as exc_info:
            validate_submission(valid_form_fields, signature=signature)

        assert exc_info.value.field == "signature"

    def test_non_image_attachment_is_rejected(self, valid_form_fields):
        """Attachments must be images."""
        photo = Attachment("cv.pdf", "application/pdf", b"%PDF")

        with pytest.raises(SubmissionValidationError) as exc_info:
            validate_submission(valid_form_fields, photo=photo)

        assert exc_info.value.field == "photo"


class TestSubmitApplication:
    """Tests for submit_application function."""

    @pytest.mark.asyncio
    async def test_submit_creates_pending_application(
        self,
        mock_db,
        valid_form_fields,
        photo_attachment,
        signature_attachment,
        sample_application,
    ):
        """Successful submission uploads both files, stores the record and emails."""
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.upload_blob", new_callable=AsyncMock) as mock_upload,
            patch(f"{SERVICE}.send_application_received", new_callable=AsyncMock) as mock_email,
            patch(f"{SERVICE}.notify_change") as mock_notify,
        ):
            mock_repo.application_number_exists = AsyncMock(return_value=False)
            mock_repo.create = AsyncMock(return_value=sample_application)
            mock_upload.side_effect = lambda path, content, content_type: f"https://cdn/{path}"

            result = await submit_application(
                mock_db, valid_form_fields, photo_attachment, signature_attachment
            )
            await drain_notifications()

            assert result is sample_application

            # Application number is server-generated
            create_args = mock_repo.create.call_args
            application_number = create_args.args[2]
            assert APPLICATION_NUMBER.match(application_number)
            assert create_args.args[1].student_name == "Rahul Das"

            # Blob keys are derived from the number and a sanitized filename
            assert create_args.kwargs["photo_url"] == (
                f"https://cdn/uploads/{application_number}-photo-photo.jpg"
            )
            assert create_args.kwargs["signature_url"] == (
                f"https://cdn/uploads/{application_number}-signature-my_signature.png"
            )
            assert mock_upload.await_count == 2

            mock_email.assert_called_once_with(
                to_email="rahul.das@example.com",
                student_name="Rahul Das",
                application_number="AS40-2026-123456",
            )
            mock_notify.assert_called_once()

    @pytest.mark.asyncio
    async def test_submit_without_attachments_stores_empty_urls(
        self, mock_db, valid_form_fields, sample_application
    ):
        """Attachments are optional; missing ones are stored as empty strings."""
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.upload_blob", new_callable=AsyncMock) as mock_upload,
            patch(f"{SERVICE}.send_application_received", new_callable=AsyncMock),
            patch(f"{SERVICE}.notify_change"),
        ):
            mock_repo.application_number_exists = AsyncMock(return_value=False)
            mock_repo.create = AsyncMock(return_value=sample_application)

            await submit_application(mock_db, valid_form_fields)
            await drain_notifications()

            mock_upload.assert_not_called()
            assert mock_repo.create.call_args.kwargs["photo_url"] == ""
            assert mock_repo.create.call_args.kwargs["signature_url"] == ""

    @pytest.mark.asyncio
    async def test_validation_failure_has_no_side_effects(
        self, mock_db, valid_form_fields, photo_attachment
    ):
        """Nothing is uploaded or written when validation fails."""
        valid_form_fields["pin_code"] = ""

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.upload_blob", new_callable=AsyncMock) as mock_upload,
            patch(f"{SERVICE}.send_application_received", new_callable=AsyncMock) as mock_email,
        ):
            with pytest.raises(SubmissionValidationError):
                await submit_application(mock_db, valid_form_fields, photo_attachment)

            mock_upload.assert_not_called()
            mock_repo.create.assert_not_called()
            mock_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_upload_failure_raises_upload_error(
        self, mock_db, valid_form_fields, photo_attachment
    ):
        """A storage failure aborts the submission before the record is written."""
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.upload_blob", new_callable=AsyncMock) as mock_upload,
            patch(f"{SERVICE}.send_application_received", new_callable=AsyncMock) as mock_email,
        ):
            mock_repo.application_number_exists = AsyncMock(return_value=False)
            mock_repo.create = AsyncMock()
            mock_upload.side_effect = StorageError("bucket unavailable")

            with pytest.raises(UploadError) as exc_info:
                await submit_application(mock_db, valid_form_fields, photo_attachment)

            assert exc_info.value.kind == "photo"
            assert exc_info.value.status_code == 502
            mock_repo.create.assert_not_called()
            mock_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_failure_raises_persistence_error(self, mock_db, valid_form_fields):
        """A database failure on insert surfaces as PersistenceError."""
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.send_application_received", new_callable=AsyncMock) as mock_email,
        ):
            mock_repo.application_number_exists = AsyncMock(return_value=False)
            mock_repo.create = AsyncMock(side_effect=SQLAlchemyError("connection lost"))

            with pytest.raises(PersistenceError) as exc_info:
                await submit_application(mock_db, valid_form_fields)

            assert exc_info.value.status_code == 503
            mock_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_number_collision_on_insert_retries(
        self, mock_db, valid_form_fields, sample_application
    ):
        """A unique violation on insert allocates a new number and retries."""
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.send_application_received", new_callable=AsyncMock),
            patch(f"{SERVICE}.notify_change"),
        ):
            mock_repo.application_number_exists = AsyncMock(return_value=False)
            mock_repo.create = AsyncMock(
                side_effect=[IntegrityError("INSERT", {}, Exception("dup")), sample_application]
            )

            result = await submit_application(mock_db, valid_form_fields)
            await drain_notifications()

            assert result is sample_application
            assert mock_repo.create.await_count == 2
            assert mock_repo.application_number_exists.await_count == 2

    @pytest.mark.asyncio
    async def test_existing_number_is_regenerated(
        self, mock_db, valid_form_fields, sample_application
    ):
        """A generated number already in the store is discarded."""
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.send_application_received", new_callable=AsyncMock),
            patch(f"{SERVICE}.notify_change"),
        ):
            mock_repo.application_number_exists = AsyncMock(side_effect=[True, False])
            mock_repo.create = AsyncMock(return_value=sample_application)

            await submit_application(mock_db, valid_form_fields)
            await drain_notifications()

            assert mock_repo.application_number_exists.await_count == 2
            mock_repo.create.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_email_failure_still_succeeds(
        self, mock_db, valid_form_fields, sample_application
    ):
        """Submission succeeds even if the confirmation email fails."""
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.send_application_received", new_callable=AsyncMock) as mock_email,
            patch(f"{SERVICE}.notify_change"),
        ):
            mock_repo.application_number_exists = AsyncMock(return_value=False)
            mock_repo.create = AsyncMock(return_value=sample_application)
            mock_email.side_effect = NotificationError("provider down")

            result = await submit_application(mock_db, valid_form_fields)
            # Should not raise
            await drain_notifications()

            assert result is sample_application
            mock_email.assert_awaited_once()


class TestTransitionApplication:
    """Tests for staff decisions."""

    @pytest.mark.asyncio
    async def test_approve_assigns_roll_number_and_exam_fields(
        self, mock_db, sample_application, approved_application
    ):
        """Approval writes a roll number, exam date/time and the chosen centre."""
        staff_id = uuid4()
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.send_application_approved", new_callable=AsyncMock) as mock_email,
            patch(f"{SERVICE}.notify_change") as mock_notify,
        ):
            _use_real_state_machine(mock_repo)
            mock_repo.get_by_id = AsyncMock(return_value=sample_application)
            mock_repo.roll_number_exists = AsyncMock(return_value=False)
            mock_repo.decide_application = AsyncMock(return_value=approved_application)

            result = await transition_application(
                mock_db, sample_application.id, ApplicationStatus.APPROVED, staff_id
            )
            await drain_notifications()

            assert result is approved_application
            call = mock_repo.decide_application.call_args
            assert call.args[1] == sample_application.id
            assert call.args[2] == ApplicationStatus.APPROVED
            assert call.kwargs["decided_by"] == staff_id
            assert ROLL_NUMBER.match(call.kwargs["roll_number"])
            assert call.kwargs["exam_date"] == settings.exam_date
            assert call.kwargs["exam_time"] == settings.exam_time
            assert call.kwargs["exam_centre_assigned"] == "Centre B (Hojai)"

            mock_email.assert_called_once()
            assert mock_email.call_args.kwargs["roll_number"] == "AS40R-2026-654321"
            assert mock_email.call_args.kwargs["exam_date"] == "2026-12-15"
            mock_notify.assert_called_once()

    @pytest.mark.asyncio
    async def test_approve_retries_on_roll_number_collision(
        self, mock_db, sample_application, approved_application
    ):
        """A roll number collision on update is retried with a new number."""
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.send_application_approved", new_callable=AsyncMock),
            patch(f"{SERVICE}.notify_change"),
        ):
            _use_real_state_machine(mock_repo)
            mock_repo.get_by_id = AsyncMock(return_value=sample_application)
            mock_repo.roll_number_exists = AsyncMock(return_value=False)
            mock_repo.decide_application = AsyncMock(
                side_effect=[IntegrityError("UPDATE", {}, Exception("dup")), approved_application]
            )

            result = await transition_application(
                mock_db, sample_application.id, ApplicationStatus.APPROVED
            )
            await drain_notifications()

            assert result is approved_application
            assert mock_repo.decide_application.await_count == 2

    @pytest.mark.asyncio
    async def test_approve_retry_survives_rollback_expiry(
        self, mock_db, sample_application, approved_application
    ):
        """A conflict that rolls back the session does not break the retry."""
        record = _ExpiringRecord(sample_application)

        async def expire_on_rollback():
            record.expired = True

        conflict = IntegrityError("UPDATE", {}, Exception("duplicate roll_number"))
        result = MagicMock()
        result.scalar_one_or_none.return_value = approved_application
        mock_db.rollback = AsyncMock(side_effect=expire_on_rollback)
        mock_db.execute = AsyncMock(side_effect=[conflict, result])

        with (
            patch.object(real_repository, "get_by_id", AsyncMock(return_value=record)),
            patch.object(real_repository, "roll_number_exists", AsyncMock(return_value=False)),
            patch(f"{SERVICE}.send_application_approved", new_callable=AsyncMock),
            patch(f"{SERVICE}.notify_change"),
        ):
            updated = await transition_application(
                mock_db, sample_application.id, ApplicationStatus.APPROVED
            )
            await drain_notifications()

        assert updated is approved_application
        assert record.expired
        mock_db.rollback.assert_awaited_once()
        assert mock_db.execute.await_count == 2

        retry = mock_db.execute.await_args_list[1].args[0]
        params = retry.compile(dialect=postgresql.dialect()).params
        assert params["id_1"] == sample_application.id
        assert params["exam_centre_assigned"] == "Centre B (Hojai)"
        assert ROLL_NUMBER.match(params["roll_number"])

    @pytest.mark.asyncio
    async def test_reject_sets_status_only(
        self, mock_db, sample_application, application_factory
    ):
        """Rejection writes no roll number or exam fields."""
        rejected = application_factory(status=ApplicationStatus.REJECTED)
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.send_application_rejected", new_callable=AsyncMock) as mock_email,
            patch(f"{SERVICE}.notify_change"),
        ):
            _use_real_state_machine(mock_repo)
            mock_repo.get_by_id = AsyncMock(return_value=sample_application)
            mock_repo.decide_application = AsyncMock(return_value=rejected)

            result = await transition_application(
                mock_db, sample_application.id, ApplicationStatus.REJECTED
            )
            await drain_notifications()

            assert result.status == ApplicationStatus.REJECTED
            call = mock_repo.decide_application.call_args
            assert call.args[2] == ApplicationStatus.REJECTED
            assert "roll_number" not in call.kwargs
            mock_email.assert_called_once_with(
                to_email="rahul.das@example.com",
                student_name="Rahul Das",
                application_number="AS40-2026-123456",
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "current,target",
        [
            (ApplicationStatus.APPROVED, ApplicationStatus.APPROVED),
            (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED),
            (ApplicationStatus.REJECTED, ApplicationStatus.APPROVED),
            (ApplicationStatus.REJECTED, ApplicationStatus.REJECTED),
        ],
    )
    async def test_decided_application_is_refused(
        self, mock_db, application_factory, current, target
    ):
        """A decided application cannot be decided again."""
        application = application_factory(status=current)
        with patch(f"{SERVICE}.repository") as mock_repo:
            _use_real_state_machine(mock_repo)
            mock_repo.get_by_id = AsyncMock(return_value=application)
            mock_repo.decide_application = AsyncMock()

            with pytest.raises(InvalidTransitionError) as exc_info:
                await transition_application(mock_db, application.id, target)

            assert exc_info.value.status_code == 409
            assert exc_info.value.error_code == "INVALID_TRANSITION"
            mock_repo.decide_application.assert_not_called()

    @pytest.mark.asyncio
    async def test_transition_to_pending_is_refused(self, mock_db):
        """Pending is not a decision."""
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock()

            with pytest.raises(InvalidTransitionError):
                await transition_application(mock_db, uuid4(), ApplicationStatus.PENDING)

            mock_repo.get_by_id.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_decision_is_refused(self, mock_db, sample_application):
        """If another decision lands first, the conditional update matches nothing."""

        async def refresh(obj):
            obj.status = ApplicationStatus.REJECTED

        mock_db.refresh = AsyncMock(side_effect=refresh)

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.send_application_approved", new_callable=AsyncMock) as mock_email,
        ):
            _use_real_state_machine(mock_repo)
            mock_repo.get_by_id = AsyncMock(return_value=sample_application)
            mock_repo.roll_number_exists = AsyncMock(return_value=False)
            mock_repo.decide_application = AsyncMock(return_value=None)

            with pytest.raises(InvalidTransitionError) as exc_info:
                await transition_application(
                    mock_db, sample_application.id, ApplicationStatus.APPROVED
                )

            assert "already been rejected" in exc_info.value.message
            mock_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_application(self, mock_db):
        """Raises ApplicationNotFoundError for an unknown id."""
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=None)

            with pytest.raises(ApplicationNotFoundError):
                await transition_application(mock_db, uuid4(), ApplicationStatus.APPROVED)


class TestLookup:
    """Tests for public lookup and admit card."""

    @pytest.mark.asyncio
    async def test_lookup_not_found_uses_generic_message(self, mock_db):
        """A mismatch on either value gives the same message."""
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.find_by_lookup_key = AsyncMock(return_value=[])

            with pytest.raises(ApplicationNotFoundError) as exc_info:
                await lookup_application(mock_db, "AS40-2026-000000", date(2010, 5, 14))

            assert exc_info.value.message == LOOKUP_NOT_FOUND_MESSAGE
            assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_lookup_returns_earliest_of_duplicates(self, mock_db, application_factory):
        """When several records share the key, the earliest one is returned."""
        first = application_factory()
        second = application_factory()
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.find_by_lookup_key = AsyncMock(return_value=[first, second])

            result = await lookup_application(mock_db, "AS40-2026-123456", date(2010, 5, 14))

            assert result is first

    @pytest.mark.asyncio
    async def test_lookup_store_failure(self, mock_db):
        """Store errors surface as PersistenceError."""
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.find_by_lookup_key = AsyncMock(side_effect=SQLAlchemyError("down"))

            with pytest.raises(PersistenceError):
                await lookup_application(mock_db, "AS40-2026-123456", date(2010, 5, 14))

    @pytest.mark.asyncio
    async def test_status_for_pending_application(self, mock_db, sample_application):
        """A pending application shows the review label and no exam fields."""
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.find_by_lookup_key = AsyncMock(return_value=[sample_application])

            result = await get_application_status(
                mock_db, "AS40-2026-123456", date(2010, 5, 14)
            )

            assert result.status == ApplicationStatus.PENDING
            assert result.status_label == "Under Review"
            assert result.roll_number is None

    @pytest.mark.asyncio
    async def test_status_for_approved_application(self, mock_db, approved_application):
        """An approved application exposes its roll number and exam day."""
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.find_by_lookup_key = AsyncMock(return_value=[approved_application])

            result = await get_application_status(
                mock_db, "AS40-2026-123456", date(2010, 5, 14)
            )

            assert result.status_label == "Approved"
            assert result.roll_number == "AS40R-2026-654321"
            assert result.exam_date == date(2026, 12, 15)

    @pytest.mark.asyncio
    async def test_admit_card_for_approved_application(self, mock_db, approved_application):
        """The admit card carries the exam-day fields and instructions."""
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.find_by_lookup_key = AsyncMock(return_value=[approved_application])

            card = await get_admit_card(mock_db, "AS40-2026-123456", date(2010, 5, 14))

            assert card.roll_number == "AS40R-2026-654321"
            assert card.exam_centre == "Centre B (Hojai)"
            assert card.exam_time == "10:00 AM - 12:00 PM"
            assert card.father_name == "Ramesh Das"
            assert card.instructions == ADMIT_CARD_INSTRUCTIONS

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [ApplicationStatus.PENDING, ApplicationStatus.REJECTED])
    async def test_admit_card_unavailable_before_approval(
        self, mock_db, application_factory, status
    ):
        """Pending and rejected applications have no admit card."""
        application = application_factory(status=status)
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.find_by_lookup_key = AsyncMock(return_value=[application])

            with pytest.raises(AdmitCardUnavailableError) as exc_info:
                await get_admit_card(mock_db, "AS40-2026-123456", date(2010, 5, 14))

            assert exc_info.value.status_code == 409


class TestAdminList:
    """Tests for the dashboard list wrapper."""

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, mock_db):
        """Limit is capped at 100 and skip never goes negative."""
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_applications_for_admin = AsyncMock(return_value=([], 0))

            result = await admin_get_applications_list(mock_db, skip=-5, limit=500)

            assert result["limit"] == 100
            assert result["skip"] == 0
            call = mock_repo.get_applications_for_admin.call_args
            assert call.kwargs["limit"] == 100
            assert call.kwargs["skip"] == 0
