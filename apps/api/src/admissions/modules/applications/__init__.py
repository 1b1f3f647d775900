"""
Admission Applications Module

Handles the student admission workflow:
1. Public submission with optional photo and signature uploads
2. Staff decisions: Pending -> Approved (roll number, exam details) or Rejected
3. Public status lookup and admit card by application number + date of birth
4. Live dashboard feed for staff

API Endpoints:
- POST /applications - Submit new application
- POST /applications/lookup - Check status
- POST /applications/admit-card - Admit card for approved applications
- GET /applications/options - Form select options
- /admin/applications/... - Staff dashboard (see admin_router)

Security Features:
- Server-generated identifiers backed by unique constraints
- Conditional UPDATE so a record is decided exactly once
- Rate limiting on public lookups and staff decisions
- No sensitive data in logs
"""

from .router import router
from .service import drain_notifications

__all__ = ["router", "drain_notifications"]
