"""Staff authentication module."""

from admissions.modules.auth.router import router
from admissions.modules.auth.schemas import LoginRequest, LoginResponse

__all__ = ["router", "LoginRequest", "LoginResponse"]
