"""
Seed Staff User

Creates (or resets the password of) an admissions office staff account.

Usage:
    cd apps/api
    STAFF_EMAIL=office@example.com STAFF_PASSWORD=... STAFF_NAME="Admissions Office" \
        python scripts/seed_staff_user.py
"""

import asyncio
import os
import sys
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from admissions.core.database import async_session_maker, close_db
from admissions.core.security import hash_password
from admissions.modules.staff.repository import StaffRepository


async def seed_staff_user() -> None:
    """Create the staff user if it doesn't exist, otherwise reset its password."""

    email = os.getenv("STAFF_EMAIL")
    password = os.getenv("STAFF_PASSWORD")
    full_name = os.getenv("STAFF_NAME", "Admissions Office")

    if not email or not password:
        print("STAFF_EMAIL and STAFF_PASSWORD must be set.")
        sys.exit(1)

    async with async_session_maker() as db:
        existing = await StaffRepository.get_by_email(db, email)

        if existing:
            await StaffRepository.update_password(db, existing, hash_password(password))
            await db.commit()
            print(f"Staff user already exists, password reset: {existing.email}")
            print(f"  ID: {existing.id}")
        else:
            staff = await StaffRepository.create(
                db,
                email=email,
                password_hash=hash_password(password),
                full_name=full_name,
            )
            await db.commit()

            print("Staff user created successfully!")
            print(f"  Email: {staff.email}")
            print(f"  Name: {staff.full_name}")
            print(f"  ID: {staff.id}")

    await close_db()


if __name__ == "__main__":
    asyncio.run(seed_staff_user())
