"""Authentication router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.auth import StaffUser as StaffIdentity
from admissions.core.auth import get_current_staff_user
from admissions.core.config import settings
from admissions.core.database import get_db
from admissions.core.rate_limit import get_client_ip, rate_limit
from admissions.core.redis import get_redis
from admissions.modules.auth import service
from admissions.modules.auth.schemas import (
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    StaffResponse,
)
from admissions.modules.auth.service import AuthError
from admissions.modules.staff.repository import StaffRepository

logger = logging.getLogger(__name__)

router = APIRouter()


def _login_rate_limit_key(request: Request) -> str:
    return f"rate_limit:login:{get_client_ip(request)}"


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Staff Sign-In",
    responses={
        401: {"description": "Invalid email or password"},
        403: {"description": "Account deactivated"},
        429: {"description": "Too many sign-in attempts"},
    },
)
@rate_limit(limit=5, window_seconds=60, key_func=_login_rate_limit_key)
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Authenticate a staff user and return an access token.

    Raises:
        HTTPException 401: Invalid credentials
        HTTPException 403: Account inactive
    """
    try:
        staff, token = await service.sign_in(db, credentials.email, credentials.password)
    except AuthError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={
                "error": e.error_code,
                "message": e.message,
            },
        ) from e

    return LoginResponse(
        access_token=token,
        token_type="bearer",
        expires_in=settings.access_token_expire_minutes * 60,
        staff=StaffResponse.model_validate(staff),
    )


@router.post(
    "/logout",
    response_model=LogoutResponse,
    summary="Staff Sign-Out",
    description="Revokes the presented access token until it expires.",
)
async def logout(
    identity: StaffIdentity = Depends(get_current_staff_user),
    redis: Redis | None = Depends(get_redis),
) -> LogoutResponse:
    """Sign out by revoking the current token."""
    revoked = await service.sign_out(redis, identity)
    return LogoutResponse(revoked=revoked)


@router.get(
    "/me",
    response_model=StaffResponse,
    summary="Current Staff User",
    responses={401: {"description": "Invalid, expired or revoked token"}},
)
async def me(
    identity: StaffIdentity = Depends(get_current_staff_user),
    db: AsyncSession = Depends(get_db),
) -> StaffResponse:
    """Return the signed-in staff account."""
    staff = await StaffRepository.get_by_id(db, identity.id)
    if not staff or not staff.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "INVALID_TOKEN",
                "message": "Staff account no longer exists or is inactive.",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )
    return StaffResponse.model_validate(staff)
