"""
Fixtures for admission applications tests.
"""

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from admissions.core import rate_limit
from admissions.modules.applications.models import Application, ApplicationStatus
from admissions.modules.applications.service import Attachment


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Each test starts with empty in-memory rate limit windows."""
    rate_limit.reset_memory_store()
    yield
    rate_limit.reset_memory_store()


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def valid_form_fields():
    """Every required field filled in, as the multipart form sends them."""
    return {
        "session": "2026-2027",
        "admission_class": "11th Science",
        "location": "Hojai",
        "student_name": "Rahul Das",
        "dob": "2010-05-14",
        "gender": "Male",
        "religion": "Hindu",
        "email": "rahul.das@example.com",
        "father_name": "Ramesh Das",
        "father_occupation": "Farmer",
        "whatsapp_no": "9876543210",
        "mother_name": "Mina Das",
        "mother_occupation": "Teacher",
        "mobile_no": "9876543211",
        "village": "Lanka",
        "post_office": "Lanka",
        "pin_code": "782446",
        "district": "Hojai",
        "exam_district": "Hojai",
        "exam_centre": "Centre B (Hojai)",
        "info_source": "Newspaper",
    }


@pytest.fixture
def photo_attachment():
    """A small JPEG photo."""
    return Attachment(filename="photo.jpg", content_type="image/jpeg", content=b"\xff\xd8" * 100)


@pytest.fixture
def signature_attachment():
    """A small PNG signature."""
    return Attachment(
        filename="my signature.png", content_type="image/png", content=b"\x89PNG" * 50
    )


def make_application(**overrides):
    """Build an Application mock with sensible defaults."""
    app = MagicMock(spec=Application)
    app.id = uuid4()
    app.application_number = "AS40-2026-123456"
    app.session = "2026-2027"
    app.admission_class = "11th Science"
    app.location = "Hojai"
    app.student_name = "Rahul Das"
    app.dob = date(2010, 5, 14)
    app.gender = "Male"
    app.religion = "Hindu"
    app.email = "rahul.das@example.com"
    app.father_name = "Ramesh Das"
    app.father_occupation = "Farmer"
    app.mother_name = "Mina Das"
    app.mother_occupation = "Teacher"
    app.whatsapp_no = "9876543210"
    app.mobile_no = "9876543211"
    app.village = "Lanka"
    app.post_office = "Lanka"
    app.pin_code = "782446"
    app.state = "Assam"
    app.district = "Hojai"
    app.exam_state = "Assam"
    app.exam_district = "Hojai"
    app.exam_centre = "Centre B (Hojai)"
    app.info_source = "Newspaper"
    app.photo_url = ""
    app.signature_url = ""
    app.status = ApplicationStatus.PENDING
    app.submitted_at = datetime.now(UTC)
    app.decided_at = None
    app.decided_by = None
    app.roll_number = None
    app.exam_date = None
    app.exam_time = None
    app.exam_centre_assigned = None
    for key, value in overrides.items():
        setattr(app, key, value)
    return app


@pytest.fixture
def sample_application():
    """A freshly submitted Pending application."""
    return make_application()


@pytest.fixture
def approved_application():
    """An approved application with its exam-day fields."""
    return make_application(
        status=ApplicationStatus.APPROVED,
        decided_at=datetime.now(UTC),
        roll_number="AS40R-2026-654321",
        exam_date=date(2026, 12, 15),
        exam_time="10:00 AM - 12:00 PM",
        exam_centre_assigned="Centre B (Hojai)",
        photo_url="https://cdn.example.com/uploads/AS40-2026-123456-photo-photo.jpg",
        signature_url="https://cdn.example.com/uploads/AS40-2026-123456-signature-sig.png",
    )


@pytest.fixture
def application_factory():
    """Factory for Application mocks with field overrides."""
    return make_application
