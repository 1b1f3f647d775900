"""
Staff Repository

Database operations for staff accounts.
"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.modules.staff.models import StaffUser

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class StaffRepository:
    """Repository for staff account database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str,
        full_name: str,
        is_active: bool = True,
    ) -> StaffUser:
        """
        Create a new staff account.

        Args:
            db: Database session
            email: Staff email address (unique, stored lower-case)
            password_hash: Hashed password
            full_name: Display name
            is_active: Whether the account can sign in

        Returns:
            Created StaffUser instance
        """
        staff = StaffUser(
            email=normalize_email(email),
            password_hash=password_hash,
            full_name=full_name,
            is_active=is_active,
        )

        db.add(staff)
        await db.flush()
        await db.refresh(staff)

        logger.info(f"Created staff user: {staff.id} - {staff.email}")
        return staff

    @staticmethod
    async def get_by_id(db: AsyncSession, staff_id: UUID) -> StaffUser | None:
        """Get a staff user by ID."""
        return await db.get(StaffUser, staff_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> StaffUser | None:
        """Get a staff user by email address (case-insensitive)."""
        result = await db.execute(
            select(StaffUser).where(func.lower(StaffUser.email) == normalize_email(email))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def update_password(db: AsyncSession, staff: StaffUser, password_hash: str) -> StaffUser:
        """Replace a staff user's password hash."""
        staff.password_hash = password_hash
        await db.flush()
        await db.refresh(staff)
        logger.info(f"Updated password for staff user {staff.id}")
        return staff
