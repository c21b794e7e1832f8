"""
Login-adjacent session lifecycle: login, logout, refresh, verify, password
change/reset, account activation and guarded user deletion.

Each operation owns its transaction and commits before returning. Session
state changes go through SessionRegistry; a REVOKED session is never
reactivated.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, or_, true
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from uplus.core.roles import SCHOOL_LOGIN_ROLES, Role, landing_path
from uplus.core.security import (
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    TOKEN_TTL,
    InvalidTokenError,
    generate_secure_token,
    hash_password,
    hash_token,
    issue_token,
    utcnow,
    validate_password_strength,
    verify_password,
    verify_token,
)
from uplus.models import PasswordResetToken, School, User, UserSession
from uplus.schemas.auth import TokenClaims
from uplus.services.auth_gate import AuthContext, AuthGate
from uplus.services.errors import (
    AccountLockedError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from uplus.services.sessions import SessionRegistry

logger = logging.getLogger(__name__)

# Lock the account for LOCKOUT_DURATION on the MAX_LOGIN_ATTEMPTS-th consecutive failure.
MAX_LOGIN_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(hours=2)

RESET_TOKEN_TTL = timedelta(hours=1)

INVALID_CREDENTIALS = "Invalid credentials"


@dataclass
class LoginResult:
    """A freshly issued (or rotated) session token and who it belongs to."""

    user: User
    token: str
    session: UserSession
    school: School | None
    redirect_to: str | None


def _claims_for(user: User, school: School | None) -> TokenClaims:
    return TokenClaims(
        user_id=user.id,
        role=user.role,
        school_id=user.school_id,
        school_slug=school.slug if school is not None else None,
        email=user.email,
        username=user.username,
    )


def _check_password(db: Session, user: User, password: str, now: datetime) -> None:
    """Enforce lockout and verify the password, updating the failure counters."""
    if user.lock_until is not None and user.lock_until > now:
        minutes = math.ceil((user.lock_until - now).total_seconds() / 60)
        logger.info("Login refused, account locked: user_id=%s", user.id)
        raise AccountLockedError(f"Account is locked. Try again in {minutes} minutes.")

    if not verify_password(password, user.password_hash):
        user.login_attempts = (user.login_attempts or 0) + 1
        if user.login_attempts >= MAX_LOGIN_ATTEMPTS:
            user.lock_until = now + LOCKOUT_DURATION
            logger.warning(
                "Account locked after failed logins: user_id=%s attempts=%s",
                user.id,
                user.login_attempts,
            )
        db.commit()
        raise AuthenticationError(INVALID_CREDENTIALS)

    user.login_attempts = 0
    user.lock_until = None
    user.last_login = now


def _start_session(
    db: Session,
    user: User,
    school: School | None,
    now: datetime,
    user_agent: str | None,
    ip_address: str | None,
) -> LoginResult:
    token = issue_token(_claims_for(user, school), now=now)
    session = SessionRegistry(db).record_session(
        user.id,
        token,
        now + TOKEN_TTL,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    db.commit()
    logger.info("Login succeeded: user_id=%s role=%s", user.id, user.role)
    return LoginResult(
        user=user,
        token=token,
        session=session,
        school=school,
        redirect_to=landing_path(user.role),
    )


def login_headadmin(
    db: Session,
    email: str,
    password: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
    now: datetime | None = None,
) -> LoginResult:
    """Authenticate the platform head admin by email and password."""
    now = now or utcnow()
    user = (
        db.query(User)
        .filter(
            User.email == email.strip().lower(),
            User.role == Role.HEADADMIN.value,
            User.is_active == true(),
        )
        .first()
    )
    if user is None:
        raise AuthenticationError(INVALID_CREDENTIALS)
    _check_password(db, user, password, now)
    return _start_session(db, user, None, now, user_agent, ip_address)


def login_school_user(
    db: Session,
    identifier: str,
    password: str,
    role: str,
    school_slug: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
    now: datetime | None = None,
) -> LoginResult:
    """Authenticate a student, teacher or school admin within one active school."""
    now = now or utcnow()
    if role not in SCHOOL_LOGIN_ROLES:
        raise ValidationError("Invalid role specified")

    school = (
        db.query(School)
        .filter(School.slug == school_slug.strip(), School.is_active == true())
        .first()
    )
    if school is None:
        raise NotFoundError("School not found or inactive")

    ident = identifier.strip().lower()
    user = (
        db.query(User)
        .filter(
            User.school_id == school.id,
            User.role == str(role),
            User.is_active == true(),
            or_(User.email == ident, func.lower(User.username) == ident),
        )
        .first()
    )
    if user is None:
        raise AuthenticationError(INVALID_CREDENTIALS)
    _check_password(db, user, password, now)
    return _start_session(db, user, school, now, user_agent, ip_address)


def logout(db: Session, raw_token: str | None, now: datetime | None = None) -> bool:
    """
    Revoke the session behind raw_token, if it can still be identified.

    Never raises: an unverifiable token or a store failure only means there is
    nothing to revoke server-side. Returns True when a session was revoked.
    """
    if not raw_token:
        return False
    try:
        claims = verify_token(raw_token, now=now)
    except InvalidTokenError as e:
        logger.info("Token verification failed during logout: %s", type(e).__name__)
        return False
    try:
        revoked = SessionRegistry(db).revoke(
            user_id=claims.user_id, token_hash=hash_token(raw_token)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Session revoke failed during logout: user_id=%s", claims.user_id)
        return False
    return revoked > 0


def refresh(db: Session, raw_token: str | None, now: datetime | None = None) -> LoginResult:
    """
    Rotate the presenting session: new token, same claims, fresh 24h expiry.

    The existing row keeps its id; its token_hash is swapped only if it still
    carries the presented token's digest, so the old token stops working and
    no second active row appears.
    """
    now = now or utcnow()
    gate = AuthGate(db, clock=lambda: now)
    ctx = gate.resolve(raw_token)
    claims = ctx.claims.model_copy(update={"issued_at": None, "expires_at": None})
    new_token = issue_token(claims, now=now)
    session = gate.sessions.rotate(
        ctx.session.id,
        new_token,
        now + TOKEN_TTL,
        expected_token_hash=ctx.token_hash,
    )
    db.commit()
    return LoginResult(
        user=ctx.user,
        token=new_token,
        session=session,
        school=ctx.user.school,
        redirect_to=landing_path(claims.role),
    )


def verify_session(db: Session, raw_token: str | None, now: datetime | None = None) -> AuthContext:
    """Authenticate and additionally require the user's school to be active (except headadmin)."""
    now = now or utcnow()
    ctx = AuthGate(db, clock=lambda: now).resolve(raw_token)
    if ctx.user.role != Role.HEADADMIN:
        school = ctx.user.school
        if school is None or not school.is_active:
            SessionRegistry(db).revoke(session_id=ctx.session.id)
            db.commit()
            raise AuthenticationError("School is inactive")
    return ctx


def _check_new_password_length(new_password: str) -> None:
    if len(new_password) < PASSWORD_MIN_LEN:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LEN} characters long")
    if len(new_password) > PASSWORD_MAX_LEN:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_LEN} characters long")


def change_password(db: Session, user: User, current_password: str, new_password: str) -> int:
    """Replace the user's own password and revoke every session they hold. Returns revoked count."""
    if not current_password or not new_password:
        raise ValidationError("Current password and new password are required")
    _check_new_password_length(new_password)
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    revoked = SessionRegistry(db).revoke(user_id=user.id)
    db.commit()
    logger.info("Password changed: user_id=%s sessions_revoked=%s", user.id, revoked)
    return revoked


def find_user_in_scope(db: Session, actor: User, user_id: int) -> User:
    """Load a user the actor may manage: any user for headadmin, same school otherwise."""
    query = db.query(User).filter(User.id == user_id)
    if actor.role != Role.HEADADMIN:
        query = query.filter(User.school_id == actor.school_id)
    user = query.first()
    if user is None:
        raise NotFoundError("User not found")
    return user


def admin_set_password(db: Session, actor: User, user_id: int, new_password: str) -> int:
    """Overwrite another user's password and revoke all of their sessions."""
    if not new_password:
        raise ValidationError("New password is required")
    _check_new_password_length(new_password)
    target = find_user_in_scope(db, actor, user_id)
    target.password_hash = hash_password(new_password)
    revoked = SessionRegistry(db).revoke(user_id=target.id)
    db.commit()
    logger.info(
        "Password set by admin: actor_id=%s user_id=%s sessions_revoked=%s",
        actor.id,
        target.id,
        revoked,
    )
    return revoked


def set_user_active(db: Session, actor: User, user_id: int, is_active: bool) -> User:
    """Activate or deactivate a user; deactivation revokes all of the user's sessions."""
    target = find_user_in_scope(db, actor, user_id)
    if target.id == actor.id and not is_active:
        raise ConflictError("You cannot deactivate your own account")

    target.is_active = is_active
    if not is_active:
        SessionRegistry(db).revoke(user_id=target.id)
    db.commit()
    db.refresh(target)
    logger.info(
        "User %s: actor_id=%s user_id=%s",
        "activated" if is_active else "deactivated",
        actor.id,
        target.id,
    )
    return target


def delete_user(db: Session, actor: User, user_id: int) -> None:
    """
    Permanently delete a user the actor may manage.

    Refuses self-deletion, and refuses removing a school's last active admin
    unless the actor is the headadmin. Sessions and reset tokens cascade.
    """
    target = find_user_in_scope(db, actor, user_id)
    if target.id == actor.id:
        raise ConflictError("Cannot delete your own account")

    if target.role == Role.ADMIN and target.is_active and actor.role != Role.HEADADMIN:
        active_admins = (
            db.query(User)
            .filter(
                User.school_id == target.school_id,
                User.role == Role.ADMIN.value,
                User.is_active == true(),
            )
            .count()
        )
        if active_admins <= 1:
            raise ConflictError("Cannot delete the last admin in the school")

    try:
        db.delete(target)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("User delete blocked by dependent rows: user_id=%s", user_id)
        raise ConflictError(
            "Cannot delete user due to existing dependencies. Please contact support."
        ) from e
    logger.info("User deleted: actor_id=%s user_id=%s", actor.id, user_id)


def request_password_reset(
    db: Session,
    email: str,
    reset_type: str = "school",
    school_slug: str | None = None,
    ip_address: str | None = None,
    now: datetime | None = None,
) -> tuple[User, str] | None:
    """
    Create a single-use reset token for the matching active user.

    Returns (user, raw_token) for delivery, or None when no account matches;
    callers must answer both cases identically.
    """
    now = now or utcnow()
    email = email.strip().lower()
    query = db.query(User).filter(User.email == email, User.is_active == true())
    if reset_type == "headadmin":
        query = query.filter(User.role == Role.HEADADMIN.value)
    else:
        if not school_slug:
            raise ValidationError("School information is required")
        school = (
            db.query(School)
            .filter(School.slug == school_slug.strip(), School.is_active == true())
            .first()
        )
        if school is None:
            raise NotFoundError("School not found")
        query = query.filter(User.school_id == school.id)

    user = query.first()
    if user is None:
        logger.info("Password reset requested for unknown account")
        return None

    raw_token = generate_secure_token()
    db.add(
        PasswordResetToken(
            user_id=user.id,
            token_hash=hash_token(raw_token),
            expires_at=now + RESET_TOKEN_TTL,
            ip_address=ip_address[:64] if ip_address else None,
        )
    )
    db.commit()
    logger.info("Password reset token issued: user_id=%s", user.id)
    return user, raw_token


def confirm_password_reset(
    db: Session,
    raw_token: str,
    new_password: str,
    confirm_password: str,
    now: datetime | None = None,
) -> User:
    """Consume a reset token: set the new password, clear lockout, revoke all sessions."""
    now = now or utcnow()
    if not raw_token or not new_password or not confirm_password:
        raise ValidationError("All fields are required")
    problems = validate_password_strength(new_password)
    if problems:
        raise ValidationError("; ".join(problems))
    if new_password != confirm_password:
        raise ValidationError("Passwords do not match")

    record = (
        db.query(PasswordResetToken)
        .filter(
            PasswordResetToken.token_hash == hash_token(raw_token),
            PasswordResetToken.expires_at > now,
            PasswordResetToken.used_at.is_(None),
        )
        .first()
    )
    if record is None:
        raise ValidationError("Invalid or expired reset token")

    user = record.user
    user.password_hash = hash_password(new_password)
    user.login_attempts = 0
    user.lock_until = None
    record.used_at = now
    revoked = SessionRegistry(db).revoke(user_id=user.id)
    db.commit()
    logger.info("Password reset completed: user_id=%s sessions_revoked=%s", user.id, revoked)
    return user
