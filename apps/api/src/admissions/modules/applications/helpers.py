"""
Admission Applications Shared Helpers

Identifier generation, blob naming, form options and the pure dashboard
filter used by the admin list, the live feed, and the tests.
"""

import os
import re
import secrets
from collections.abc import Iterable
from datetime import UTC, datetime

from admissions.modules.applications.models import Application, ApplicationStatus

APPLICATION_NUMBER_PREFIX = "AS40"
ROLL_NUMBER_PREFIX = "AS40R"

APPLICATION_NUMBER_PATTERN = re.compile(r"^AS40-\d{4}-\d{6}$")
ROLL_NUMBER_PATTERN = re.compile(r"^AS40R-\d{4}-\d{6}$")

FORM_OPTIONS: dict[str, list[str]] = {
    "sessions": ["2026-2027", "2025-2026"],
    "classes": ["11th Science", "12th Science", "Repeater"],
    "locations": ["Guwahati", "Hojai", "Dhubri"],
    "districts": ["Barpeta", "Dhubri", "Goalpara", "Guwahati", "Hojai", "Nagaon"],
    "exam_centres": ["Centre A (Guwahati)", "Centre B (Hojai)", "Centre C (Dhubri)"],
    "info_sources": ["Newspaper", "Social Media", "Friends/Family", "School/Teacher", "Other"],
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _six_digits() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def generate_application_number(now: datetime | None = None) -> str:
    """
    Build a candidate application number, AS40-<year>-<6 digits>.

    Uniqueness is checked by the caller against the store.
    """
    year = (now or datetime.now(UTC)).year
    return f"{APPLICATION_NUMBER_PREFIX}-{year}-{_six_digits()}"


def generate_roll_number(now: datetime | None = None) -> str:
    """Build a candidate roll number, AS40R-<year>-<6 digits>."""
    year = (now or datetime.now(UTC)).year
    return f"{ROLL_NUMBER_PREFIX}-{year}-{_six_digits()}"


def sanitize_filename(filename: str | None) -> str:
    """
    Reduce a client-supplied filename to a safe object-key component.

    Directory parts are dropped and anything outside [A-Za-z0-9._-] is
    replaced with an underscore.
    """
    base = os.path.basename((filename or "").replace("\\", "/"))
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", base).strip("._")
    return cleaned or "upload"


def blob_path(application_number: str, kind: str, filename: str | None) -> str:
    """Object key for an attachment: uploads/<number>-<kind>-<filename>."""
    return f"uploads/{application_number}-{kind}-{sanitize_filename(filename)}"


def matches_search(application: Application, search: str | None) -> bool:
    """
    Case-insensitive substring match on student name, application number or email.

    An empty search matches everything.
    """
    if not search:
        return True
    needle = search.strip().lower()
    if not needle:
        return True
    haystacks = (
        application.student_name or "",
        application.application_number or "",
        application.email or "",
    )
    return any(needle in value.lower() for value in haystacks)


def filter_applications(
    applications: Iterable[Application],
    status: ApplicationStatus | None = None,
    search: str | None = None,
) -> list[Application]:
    """
    Apply the dashboard's status filter and search, newest first.

    Pure function: the live feed and tests run it over in-memory records.
    """
    selected = [
        app
        for app in applications
        if (status is None or app.status == status) and matches_search(app, search)
    ]
    return sort_for_dashboard(selected)


def sort_for_dashboard(applications: Iterable[Application]) -> list[Application]:
    """Order by submission time, most recent first."""
    return sorted(applications, key=lambda app: app.submitted_at, reverse=True)
