"""
Authentication and Authorization Module

Provides staff authentication dependencies for FastAPI endpoints.
This module handles JWT token validation and the sign-out denylist
using the security utilities defined in security.py.

Public applicant endpoints are anonymous; every dashboard endpoint
depends on get_current_staff_user.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from admissions.core.redis import get_redis, is_token_revoked
from admissions.core.security import decode_token

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for staff authentication",
)


@dataclass
class StaffUser:
    """
    Represents an authenticated staff member.

    Populated from JWT claims after token validation.

    Attributes:
        id: Staff user's unique identifier (UUID)
        email: Staff user's email address
        name: Display name (optional)
        token_id: The token's ``jti`` claim, used for sign-out
        expires_at: When the presented token expires
    """

    id: UUID
    email: str
    name: str | None = None
    token_id: str | None = None
    expires_at: datetime | None = None

    def __str__(self) -> str:
        return f"StaffUser(id={self.id}, email={self.email})"

    @property
    def seconds_until_expiry(self) -> int:
        if self.expires_at is None:
            return 0
        return max(0, int((self.expires_at - datetime.now(UTC)).total_seconds()))


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def authenticate_token(token: str) -> StaffUser:
    """
    Validate a JWT access token and extract the staff identity.

    Shared by the HTTP bearer dependency and the dashboard WebSocket,
    which passes its token as a query parameter.

    Args:
        token: Raw JWT string

    Returns:
        StaffUser built from the token claims

    Raises:
        HTTPException 401: If the token is invalid, expired, of the wrong
            type, or has been revoked by sign-out
    """
    payload = decode_token(token)

    if payload is None:
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    if payload.get("type", "access") != "access":
        logger.warning(f"Invalid token type: {payload.get('type')}")
        raise _unauthorized("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    try:
        user_id_str = payload.get("sub")
        if not user_id_str:
            raise ValueError("Missing 'sub' claim in token")
        user_id = UUID(user_id_str)
    except ValueError as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e

    jti = payload.get("jti")
    if jti and await is_token_revoked(await get_redis(), jti):
        logger.info(f"Rejected revoked token for staff user {user_id}")
        raise _unauthorized("TOKEN_REVOKED", "This session has been signed out.")

    exp = payload.get("exp")
    return StaffUser(
        id=user_id,
        email=payload.get("email", ""),
        name=payload.get("name"),
        token_id=jti,
        expires_at=datetime.fromtimestamp(exp, UTC) if exp else None,
    )


async def get_current_staff_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> StaffUser:
    """
    FastAPI dependency that validates the bearer token and returns the staff user.

    Usage:
        @router.get("/admin/endpoint")
        async def admin_endpoint(
            staff: StaffUser = Depends(get_current_staff_user)
        ):
            # staff.id, staff.email are available

    Raises:
        HTTPException 401: If token is missing, invalid, expired, or revoked
    """
    user = await authenticate_token(credentials.credentials)
    logger.debug(f"Authenticated staff user: {user.id} ({user.email})")
    return user


__all__ = [
    "StaffUser",
    "authenticate_token",
    "get_current_staff_user",
]
