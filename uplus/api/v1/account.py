"""Endpoints every signed-in role can use: session check and self-service password change."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from uplus.api.v1.auth import CurrentUserDep, clear_auth_cookie
from uplus.core.database import get_db
from uplus.schemas.auth import (
    AuthCheckResponse,
    AuthCheckUser,
    ChangePasswordRequest,
    MessageResponse,
)
from uplus.services import lifecycle

router = APIRouter()


@router.get("/auth/check", response_model=AuthCheckResponse)
def auth_check(user: CurrentUserDep) -> AuthCheckResponse:
    """Cheap probe used by the UI to decide whether to show the login page."""
    return AuthCheckResponse(user=AuthCheckUser.model_validate(user))


@router.post("/user/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    response: Response,
    user: CurrentUserDep,
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """
    Change the caller's own password.

    All of the caller's sessions are revoked, this one included, so the cookie
    is cleared and the client must log in again.
    """
    lifecycle.change_password(db, user, body.current_password, body.new_password)
    clear_auth_cookie(response)
    return MessageResponse(message="Password changed successfully. Please log in again.")
