"""
Security Utilities

Password hashing (bcrypt via passlib) and JWT creation/decoding (PyJWT).
"""

import hashlib
import logging
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from passlib.context import CryptContext

from admissions.core.config import settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _pre_hash_password(password: str) -> str:
    """
    Keep passwords inside bcrypt's 72-byte input limit.

    Longer passwords are reduced to their SHA-256 hex digest first so every
    byte of the original still counts.
    """
    if len(password.encode("utf-8")) <= 72:
        return password
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def hash_password(password: str) -> str:
    """Hash a plain-text password."""
    return pwd_context.hash(_pre_hash_password(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plain-text password against a stored hash."""
    try:
        return pwd_context.verify(_pre_hash_password(plain_password), hashed_password)
    except ValueError:
        return False


def _create_token(
    subject: str,
    token_type: str,
    expires_delta: timedelta,
    additional_claims: dict[str, Any] | None = None,
) -> str:
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": subject,
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + expires_delta,
    }
    if additional_claims:
        payload.update(additional_claims)
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def create_access_token(subject: str, additional_claims: dict[str, Any] | None = None) -> str:
    """Create a short-lived access token for a staff user."""
    return _create_token(
        subject,
        "access",
        timedelta(minutes=settings.access_token_expire_minutes),
        additional_claims,
    )


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and verify a JWT.

    Returns:
        The token payload, or None if the token is invalid or expired.
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected invalid token: {e}")
        return None
