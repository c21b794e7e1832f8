"""Pydantic request/response schemas."""

from uplus.schemas.auth import (
    AuthCheckResponse,
    ChangePasswordRequest,
    HeadAdminLoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    SchoolLoginRequest,
    SetPasswordRequest,
    TokenClaims,
    ToggleStatusRequest,
    UserOut,
    UsersListResponse,
    UserStatusResponse,
    VerifyResponse,
)
from uplus.schemas.health import HealthResponse

__all__ = [
    "AuthCheckResponse",
    "ChangePasswordRequest",
    "HeadAdminLoginRequest",
    "HealthResponse",
    "LoginResponse",
    "MessageResponse",
    "PasswordResetConfirmRequest",
    "PasswordResetRequest",
    "SchoolLoginRequest",
    "SetPasswordRequest",
    "TokenClaims",
    "ToggleStatusRequest",
    "UserOut",
    "UsersListResponse",
    "UserStatusResponse",
    "VerifyResponse",
]
