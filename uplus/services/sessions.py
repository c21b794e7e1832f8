"""Session registry: server-side records of issued session tokens, keyed by token digest."""

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import true
from sqlalchemy.orm import Session

from uplus.core.security import hash_token, utcnow
from uplus.models import UserSession
from uplus.services.errors import SessionNotFoundError

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Create, look up, revoke and rotate UserSession rows.

    Methods flush but never commit; the calling lifecycle operation owns the
    transaction. A lookup miss is a normal None, not an error.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.clock = clock

    def record_session(
        self,
        user_id: int,
        raw_token: str,
        expires_at: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> UserSession:
        """Store the digest of a freshly issued token as an active session."""
        row = UserSession(
            user_id=user_id,
            token_hash=hash_token(raw_token),
            is_active=True,
            expires_at=expires_at,
            user_agent=user_agent[:512] if user_agent else None,
            ip_address=ip_address[:64] if ip_address else None,
        )
        self.db.add(row)
        self.db.flush()
        logger.info("Session recorded: session_id=%s user_id=%s", row.id, user_id)
        return row

    def find_active_by_hash(self, token_hash: str) -> UserSession | None:
        """Return the session with this digest only if it is active and unexpired."""
        return (
            self.db.query(UserSession)
            .filter(
                UserSession.token_hash == token_hash,
                UserSession.is_active == true(),
                UserSession.expires_at > self.clock(),
            )
            .first()
        )

    def revoke(
        self,
        session_id: int | None = None,
        user_id: int | None = None,
        token_hash: str | None = None,
    ) -> int:
        """
        Deactivate every active session matching all given criteria.

        Returns the number of sessions newly revoked; revoking again is a no-op.
        """
        if session_id is None and user_id is None and token_hash is None:
            raise ValueError("revoke() needs at least one of session_id, user_id, token_hash")
        query = self.db.query(UserSession).filter(UserSession.is_active == true())
        if session_id is not None:
            query = query.filter(UserSession.id == session_id)
        if user_id is not None:
            query = query.filter(UserSession.user_id == user_id)
        if token_hash is not None:
            query = query.filter(UserSession.token_hash == token_hash)
        revoked = query.update({UserSession.is_active: False}, synchronize_session="fetch")
        self.db.flush()
        if revoked:
            logger.info(
                "Sessions revoked: count=%s session_id=%s user_id=%s by_hash=%s",
                revoked,
                session_id,
                user_id,
                token_hash is not None,
            )
        return revoked

    def rotate(
        self,
        session_id: int,
        new_raw_token: str,
        new_expires_at: datetime,
        expected_token_hash: str | None = None,
    ) -> UserSession:
        """
        Replace token_hash and expires_at on an existing active session, keeping its id.

        With expected_token_hash the update only applies while the row still
        carries that digest, so two refreshes racing on the same token cannot
        both succeed. Raises SessionNotFoundError when nothing was updated.
        """
        query = self.db.query(UserSession).filter(
            UserSession.id == session_id,
            UserSession.is_active == true(),
            UserSession.expires_at > self.clock(),
        )
        if expected_token_hash is not None:
            query = query.filter(UserSession.token_hash == expected_token_hash)
        updated = query.update(
            {
                UserSession.token_hash: hash_token(new_raw_token),
                UserSession.expires_at: new_expires_at,
            },
            synchronize_session="fetch",
        )
        if updated == 0:
            logger.info("Session rotation skipped, no active row: session_id=%s", session_id)
            raise SessionNotFoundError()
        self.db.flush()
        row = self.db.get(UserSession, session_id)
        logger.info("Session rotated: session_id=%s", session_id)
        return row
