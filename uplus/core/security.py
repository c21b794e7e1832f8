"""Password hashing, session token signing/verification, and token digests."""

import hashlib
import re
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt
from pydantic import ValidationError

from uplus.core.config import settings
from uplus.schemas.auth import TokenClaims

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# Session tokens live for a fixed 24 hours; cookie Max-Age matches.
TOKEN_TTL = timedelta(hours=24)
TOKEN_TTL_SECONDS = int(TOKEN_TTL.total_seconds())

PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

PASSWORD_SPECIAL_CHARS = "@$!%*?&"

_REQUIRED_CLAIMS = ["userId", "role", "iat", "exp"]


class InvalidTokenError(Exception):
    """Raised when a session token cannot be trusted (bad signature, malformed, missing claims)."""

    def __init__(self, message: str = "Invalid token") -> None:
        self.message = message
        super().__init__(message)


class ExpiredTokenError(InvalidTokenError):
    """Raised when a correctly signed session token is past its embedded expiry."""

    def __init__(self, message: str = "Token has expired") -> None:
        super().__init__(message)


def utcnow() -> datetime:
    return datetime.now(UTC)


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def validate_password_strength(password: str) -> list[str]:
    """Return human-readable reasons the password is too weak; empty list when it passes."""
    errors: list[str] = []
    if len(password) < PASSWORD_MIN_LEN:
        errors.append(f"Password must be at least {PASSWORD_MIN_LEN} characters long")
    if len(password) > PASSWORD_MAX_LEN:
        errors.append(f"Password must be at most {PASSWORD_MAX_LEN} characters long")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not any(c in PASSWORD_SPECIAL_CHARS for c in password):
        errors.append(
            f"Password must contain at least one special character ({PASSWORD_SPECIAL_CHARS})"
        )
    return errors


def generate_secure_token(nbytes: int = 32) -> str:
    """Random hex string for single-use secrets such as password reset tokens."""
    return secrets.token_hex(nbytes)


def hash_token(raw_token: str) -> str:
    """One-way sha256 hex digest of a raw token; the only form persisted server-side."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def issue_token(
    claims: TokenClaims,
    ttl: timedelta = TOKEN_TTL,
    now: datetime | None = None,
) -> str:
    """Create a signed session token embedding the identity claims, iat and exp = now + ttl."""
    now = now or utcnow()
    payload: dict[str, Any] = claims.model_dump(
        by_alias=True, exclude={"issued_at", "expires_at"}
    )
    payload["iat"] = int(now.timestamp())
    payload["exp"] = int((now + ttl).timestamp())
    # Unique per issue so two tokens minted in the same second never share a digest.
    payload["jti"] = secrets.token_hex(16)
    return jwt.encode(
        payload,
        settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


def verify_token(token: str, now: datetime | None = None) -> TokenClaims:
    """
    Validate signature and embedded expiry; return the claims.

    Fails closed: anything that goes wrong while decoding raises InvalidTokenError
    (ExpiredTokenError when only the expiry check failed).
    """
    if not token or not isinstance(token, str):
        raise InvalidTokenError()
    try:
        # Expiry is checked below against `now` so callers can evaluate at a given instant.
        payload = jwt.decode(
            token,
            settings.JWT_SECRET.get_secret_value(),
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": False, "verify_iat": False, "require": _REQUIRED_CLAIMS},
        )
    except Exception as e:  # PyJWTError, or anything else a malformed token triggers
        raise InvalidTokenError() from e

    exp = payload.get("exp")
    if not isinstance(exp, int | float) or isinstance(exp, bool):
        raise InvalidTokenError()
    now = now or utcnow()
    if now.timestamp() >= exp:
        raise ExpiredTokenError()

    try:
        return TokenClaims.model_validate(payload)
    except ValidationError as e:
        raise InvalidTokenError() from e
