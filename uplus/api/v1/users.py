"""School user administration: list, activate/deactivate, reset password, delete."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from uplus.api.v1.auth import AdminOrHeadAdminUser, AdminUser
from uplus.core.database import get_db
from uplus.core.roles import Role
from uplus.models import User
from uplus.schemas.auth import (
    MessageResponse,
    SetPasswordRequest,
    ToggleStatusRequest,
    UserListItem,
    UsersListResponse,
    UserOut,
    UserStatusResponse,
)
from uplus.services import lifecycle

router = APIRouter()


@router.get("", response_model=UsersListResponse)
def list_users(
    actor: AdminOrHeadAdminUser,
    db: Annotated[Session, Depends(get_db)],
    role: Annotated[Role | None, Query()] = None,
    school_id: Annotated[int | None, Query(description="Headadmin only")] = None,
) -> UsersListResponse:
    """List users; school admins only ever see their own school."""
    query = db.query(User)
    if actor.role == Role.HEADADMIN:
        if school_id is not None:
            query = query.filter(User.school_id == school_id)
    else:
        query = query.filter(User.school_id == actor.school_id)
    if role is not None:
        query = query.filter(User.role == role.value)
    users = query.order_by(User.id).all()
    return UsersListResponse(users=[UserListItem.model_validate(u) for u in users])


@router.patch("/{user_id}/toggle-status", response_model=UserStatusResponse)
def toggle_status(
    user_id: int,
    body: ToggleStatusRequest,
    actor: AdminUser,
    db: Annotated[Session, Depends(get_db)],
) -> UserStatusResponse:
    """Activate or deactivate a user in the admin's school. Deactivation ends all their sessions."""
    user = lifecycle.set_user_active(db, actor, user_id, body.is_active)
    return UserStatusResponse(
        message=f"User {'activated' if body.is_active else 'deactivated'} successfully",
        user=UserOut.model_validate(user),
    )


@router.put("/{user_id}/password", response_model=MessageResponse)
def set_password(
    user_id: int,
    body: SetPasswordRequest,
    actor: AdminOrHeadAdminUser,
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Overwrite a user's password and sign them out everywhere."""
    lifecycle.admin_set_password(db, actor, user_id, body.new_password)
    return MessageResponse(message="Password updated successfully")


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    actor: AdminOrHeadAdminUser,
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Delete a user. Self-deletion and removing a school's last admin are refused."""
    lifecycle.delete_user(db, actor, user_id)
    return MessageResponse(message="User deleted successfully")
