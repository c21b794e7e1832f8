"""Session endpoints (login, logout, refresh, verify, password reset) and auth dependencies."""

import logging
from collections.abc import Callable
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from uplus.core.config import get_settings
from uplus.core.database import get_db
from uplus.core.roles import Role, landing_path
from uplus.core.security import TOKEN_TTL_SECONDS
from uplus.models import User
from uplus.schemas.auth import (
    HeadAdminLoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    SchoolLoginRequest,
    SchoolOut,
    UserOut,
    VerifyResponse,
)
from uplus.services import lifecycle
from uplus.services.auth_gate import AuthContext, AuthGate, extract_token
from uplus.services.errors import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter()

RESET_REQUEST_ACK = "If an account with this email exists, a password reset link has been sent."


def set_auth_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=TOKEN_TTL_SECONDS,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def clear_auth_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def get_auth_context(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
) -> AuthContext:
    """Dependency: resolve the request's session (cookie or Bearer). Raises 401 if unusable."""
    return AuthGate(db).resolve(extract_token(request))


def get_current_user(
    ctx: Annotated[AuthContext, Depends(get_auth_context)],
) -> User:
    """Dependency: the authenticated, active user, any role."""
    return ctx.user


def require_roles(*roles: Role) -> Callable[..., User]:
    """
    Dependency factory for a route's allowed-role list.

    Membership is flat: listing Role.ADMIN does not admit Role.HEADADMIN.
    Raises 401 without a usable session and 403 for any other role.
    """
    allowed = frozenset(roles)

    def dependency(
        request: Request,
        db: Annotated[Session, Depends(get_db)],
    ) -> User:
        return AuthGate(db).authenticate(extract_token(request), allowed)

    dependency.__name__ = "require_" + "_or_".join(sorted(r.value for r in allowed))
    return dependency


CurrentUserDep = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_roles(Role.ADMIN))]
AdminOrHeadAdminUser = Annotated[User, Depends(require_roles(Role.ADMIN, Role.HEADADMIN))]


def _login_response(result: lifecycle.LoginResult, message: str) -> LoginResponse:
    return LoginResponse(
        message=message,
        user=UserOut.model_validate(result.user),
        school=SchoolOut.model_validate(result.school) if result.school is not None else None,
        redirect_to=result.redirect_to,
        access_token=result.token,
    )


@router.post("/headadmin/login", response_model=LoginResponse)
def login_headadmin(
    body: HeadAdminLoginRequest,
    request: Request,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
) -> LoginResponse:
    """
    Authenticate the head admin with email and password.

    Sets the auth_token cookie; the same token is returned for clients that
    send it as Authorization: Bearer <access_token>.
    """
    result = lifecycle.login_headadmin(
        db,
        body.email,
        body.password,
        user_agent=request.headers.get("user-agent"),
        ip_address=_client_ip(request),
    )
    set_auth_cookie(response, result.token)
    return _login_response(result, "Head admin login successful")


@router.post("/school/login", response_model=LoginResponse)
def login_school(
    body: SchoolLoginRequest,
    request: Request,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
) -> LoginResponse:
    """Authenticate a student, teacher or school admin (email or username) within a school."""
    result = lifecycle.login_school_user(
        db,
        body.identifier,
        body.password,
        body.role,
        body.school_slug,
        user_agent=request.headers.get("user-agent"),
        ip_address=_client_ip(request),
    )
    set_auth_cookie(response, result.token)
    return _login_response(result, "Login successful")


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Revoke the current session if it can be identified; always clears the cookie."""
    lifecycle.logout(db, extract_token(request))
    clear_auth_cookie(response)
    return MessageResponse(message="Logged out successfully")


@router.get("/refresh", response_class=RedirectResponse)
def refresh(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
) -> RedirectResponse:
    """Rotate the session token and redirect to the role's landing page, or to login on failure."""
    settings = get_settings()
    try:
        result = lifecycle.refresh(db, extract_token(request))
    except (ServiceError, SQLAlchemyError) as e:
        db.rollback()
        logger.info("Token refresh failed: %s", type(e).__name__)
        return RedirectResponse(settings.LOGIN_PATH, status_code=status.HTTP_302_FOUND)
    except Exception:
        # Refresh never surfaces an error page; the client just signs in again.
        db.rollback()
        logger.exception("Token refresh failed unexpectedly")
        return RedirectResponse(settings.LOGIN_PATH, status_code=status.HTTP_302_FOUND)

    redirect = RedirectResponse(
        result.redirect_to or settings.LOGIN_PATH,
        status_code=status.HTTP_302_FOUND,
    )
    set_auth_cookie(redirect, result.token)
    return redirect


@router.get("/verify", response_model=VerifyResponse)
def verify(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
) -> VerifyResponse:
    """Report who the current session belongs to and where their dashboard is."""
    ctx = lifecycle.verify_session(db, extract_token(request))
    school = ctx.user.school
    return VerifyResponse(
        user=UserOut.model_validate(ctx.user),
        school=SchoolOut.model_validate(school) if school is not None else None,
        redirect_to=landing_path(ctx.user.role),
    )


def _deliver_reset_link(user: User, raw_token: str, reset_type: str) -> None:
    """Hand the reset link to delivery. Email transport is configured outside this service."""
    settings = get_settings()
    query = urlencode({"token": raw_token, "type": reset_type})
    link = f"{settings.APP_URL}/auth/reset-password/confirm?{query}"
    if settings.is_production:
        logger.info("Password reset link generated: user_id=%s", user.id)
    else:
        logger.info("Password reset link (dev only): user_id=%s link=%s", user.id, link)


@router.post("/reset-password", response_model=MessageResponse)
def request_password_reset(
    body: PasswordResetRequest,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Start a password reset. The answer does not reveal whether the account exists."""
    issued = lifecycle.request_password_reset(
        db,
        body.email,
        reset_type=body.type,
        school_slug=body.school_slug,
        ip_address=_client_ip(request),
    )
    if issued is not None:
        user, raw_token = issued
        _deliver_reset_link(user, raw_token, body.type)
    return MessageResponse(message=RESET_REQUEST_ACK)


@router.post("/reset-password/confirm", response_model=MessageResponse)
def confirm_password_reset(
    body: PasswordResetConfirmRequest,
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Set a new password with a reset token; every existing session is revoked."""
    lifecycle.confirm_password_reset(
        db, body.token, body.new_password, body.confirm_password
    )
    return MessageResponse(
        message="Password reset successful. Please log in with your new password."
    )
