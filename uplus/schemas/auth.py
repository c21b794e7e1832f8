"""Request/response schemas for auth, session and account endpoints."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool


class TokenClaims(BaseModel):
    """Identity claims carried inside a signed session token (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(..., alias="userId")
    role: str
    school_id: int | None = Field(default=None, alias="schoolId")
    school_slug: str | None = Field(default=None, alias="schoolSlug")
    email: str | None = None
    username: str | None = None
    issued_at: int | None = Field(default=None, alias="iat")
    expires_at: int | None = Field(default=None, alias="exp")


class HeadAdminLoginRequest(BaseModel):
    """Credentials for the head admin login form."""

    email: str = Field(..., min_length=3, max_length=255, description="Email address")
    password: str = Field(..., min_length=1, max_length=128, description="Password")


class SchoolLoginRequest(BaseModel):
    """Credentials for a student, teacher or school admin signing in to one school."""

    identifier: str = Field(..., min_length=1, max_length=255, description="Email or username")
    password: str = Field(..., min_length=1, max_length=128, description="Password")
    role: Literal["student", "teacher", "admin"]
    school_slug: str = Field(..., min_length=1, max_length=255)


class SchoolOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str


class UserOut(BaseModel):
    """User as returned to clients (no password material)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str | None = None
    first_name: str = ""
    last_name: str = ""
    role: str
    school_id: int | None = None
    is_active: bool


class LoginResponse(BaseModel):
    """Successful login or refresh. The token is also set as an HTTP-only cookie."""

    success: bool = True
    message: str
    user: UserOut
    school: SchoolOut | None = None
    redirect_to: str | None = None
    access_token: str = Field(..., description="Signed session token")
    token_type: str = Field(default="bearer", description="Token type")


class VerifyResponse(BaseModel):
    authenticated: bool = True
    user: UserOut
    school: SchoolOut | None = None
    redirect_to: str | None = None


class AuthCheckUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: str
    first_name: str = ""
    last_name: str = ""


class AuthCheckResponse(BaseModel):
    success: bool = True
    user: AuthCheckUser


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., max_length=128)
    new_password: str = Field(..., max_length=128)


class SetPasswordRequest(BaseModel):
    """Admin-initiated password overwrite for another user."""

    new_password: str = Field(..., max_length=128)


class ToggleStatusRequest(BaseModel):
    is_active: StrictBool


class PasswordResetRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    type: Literal["headadmin", "school"] = "school"
    school_slug: str | None = Field(default=None, max_length=255)


class PasswordResetConfirmRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=255)
    new_password: str = Field(..., max_length=128)
    confirm_password: str = Field(..., max_length=128)


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UserStatusResponse(MessageResponse):
    user: UserOut


class UserListItem(BaseModel):
    """User entry for admin list (no password)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str | None = None
    first_name: str = ""
    last_name: str = ""
    role: str
    school_id: int | None = None
    is_active: bool


class UsersListResponse(BaseModel):
    """Response for GET /protected/admin/users."""

    users: list[UserListItem]
