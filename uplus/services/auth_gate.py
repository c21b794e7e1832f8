"""
Per-request authentication and role authorization.

A token is honored only when all of these hold:
  1. its signature verifies and its embedded expiry has not passed;
  2. its sha256 digest matches an active, unexpired UserSession row;
  3. the user it names still exists and is active;
  4. the user's current role is in the route's allowed set (when one is given).

Step 2 is what makes logout, password change and deactivation take effect
before the token's own expiry. Do not drop it in favour of signature checks.
"""

import logging
from collections.abc import Callable, Collection
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session
from starlette.requests import HTTPConnection

from uplus.core.config import settings
from uplus.core.security import InvalidTokenError, hash_token, utcnow, verify_token
from uplus.models import User, UserSession
from uplus.schemas.auth import TokenClaims
from uplus.services.errors import AuthenticationError, ForbiddenError
from uplus.services.sessions import SessionRegistry

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass
class AuthContext:
    """Everything resolved while authenticating one request."""

    user: User
    session: UserSession
    claims: TokenClaims
    token_hash: str


def extract_token(request: HTTPConnection, cookie_name: str | None = None) -> str | None:
    """Raw token from the auth cookie, falling back to an Authorization: Bearer header."""
    cookie_name = cookie_name or settings.AUTH_COOKIE_NAME
    token = request.cookies.get(cookie_name)
    if token:
        return token
    header = request.headers.get("authorization", "")
    if header.startswith(BEARER_PREFIX):
        token = header[len(BEARER_PREFIX):].strip()
        return token or None
    return None


class AuthGate:
    """Authenticates raw tokens against the token codec, session registry and user table."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.clock = clock
        self.sessions = SessionRegistry(db, clock)

    def resolve(self, raw_token: str | None) -> AuthContext:
        """Run the checks up to (not including) role gating. Read-only."""
        if not raw_token:
            raise AuthenticationError("Authentication required")
        try:
            claims = verify_token(raw_token, now=self.clock())
        except InvalidTokenError as e:
            logger.info("Token rejected: %s", type(e).__name__)
            raise AuthenticationError("Invalid or expired token") from e

        token_hash = hash_token(raw_token)
        session = self.sessions.find_active_by_hash(token_hash)
        if session is None:
            logger.info("No active session for token: user_id=%s", claims.user_id)
            raise AuthenticationError("Invalid or expired session")
        if session.user_id != claims.user_id:
            logger.warning(
                "Session owner mismatch: session_id=%s claims_user_id=%s",
                session.id,
                claims.user_id,
            )
            raise AuthenticationError("Invalid or expired session")

        user = self.db.get(User, claims.user_id)
        if user is None or not user.is_active:
            logger.info("User missing or inactive: user_id=%s", claims.user_id)
            raise AuthenticationError("User not found or inactive")

        return AuthContext(user=user, session=session, claims=claims, token_hash=token_hash)

    def authorize(self, ctx: AuthContext, allowed_roles: Collection[str] | None = None) -> AuthContext:
        """Flat set-membership role check; an empty or missing set allows any role."""
        if allowed_roles and ctx.user.role not in {str(r) for r in allowed_roles}:
            logger.info(
                "Role denied: user_id=%s role=%s allowed=%s",
                ctx.user.id,
                ctx.user.role,
                sorted(str(r) for r in allowed_roles),
            )
            raise ForbiddenError("Access denied")
        return ctx

    def authenticate(
        self,
        raw_token: str | None,
        allowed_roles: Collection[str] | None = None,
    ) -> User:
        """Return the up-to-date User for a token, or raise AuthenticationError / ForbiddenError."""
        return self.authorize(self.resolve(raw_token), allowed_roles).user
