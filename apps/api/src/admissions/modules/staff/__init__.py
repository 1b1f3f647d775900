"""
Staff module - Admissions office accounts.
"""

from admissions.modules.staff.models import StaffUser
from admissions.modules.staff.repository import StaffRepository

__all__ = ["StaffUser", "StaffRepository"]
