"""
Staff Authentication Service

Sign-in issues a JWT access token; sign-out puts the token's id on the
Redis denylist until the token would have expired anyway.
"""

import logging

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.auth import StaffUser as StaffIdentity
from admissions.core.redis import revoke_token
from admissions.core.security import create_access_token, verify_password
from admissions.modules.staff.models import StaffUser
from admissions.modules.staff.repository import StaffRepository

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Raised when sign-in or sign-out cannot be completed."""

    def __init__(self, message: str, error_code: str, status_code: int = 401):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    def __init__(self):
        super().__init__("Invalid email or password.", "INVALID_CREDENTIALS", 401)


class AccountInactiveError(AuthError):
    def __init__(self):
        super().__init__("Your account has been deactivated.", "ACCOUNT_INACTIVE", 403)


async def authenticate_staff(db: AsyncSession, email: str, password: str) -> StaffUser:
    """
    Check staff credentials.

    Raises:
        InvalidCredentialsError: Unknown email or wrong password
        AccountInactiveError: Account disabled
    """
    staff = await StaffRepository.get_by_email(db, email)

    if not staff or not verify_password(password, staff.password_hash):
        logger.warning("Failed staff sign-in attempt")
        raise InvalidCredentialsError()

    if not staff.is_active:
        logger.warning(f"Sign-in attempt for inactive staff account {staff.id}")
        raise AccountInactiveError()

    return staff


def issue_access_token(staff: StaffUser) -> str:
    """Create an access token carrying the staff identity claims."""
    return create_access_token(
        subject=str(staff.id),
        additional_claims={"email": staff.email, "name": staff.full_name},
    )


async def sign_in(db: AsyncSession, email: str, password: str) -> tuple[StaffUser, str]:
    """Authenticate and return the staff user with a fresh access token."""
    staff = await authenticate_staff(db, email, password)
    token = issue_access_token(staff)
    logger.info(f"Staff signed in: {staff.id}")
    return staff, token


async def sign_out(redis: Redis | None, identity: StaffIdentity) -> bool:
    """
    Revoke the presented token.

    Returns:
        True if the revocation was stored
    """
    if not identity.token_id:
        return False
    revoked = await revoke_token(redis, identity.token_id, identity.seconds_until_expiry)
    logger.info(f"Staff signed out: {identity.id} (revocation stored={revoked})")
    return revoked
