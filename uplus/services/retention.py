"""Maintenance sweep: purge expired session rows and stale password reset tokens."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from uplus.core.security import utcnow
from uplus.models import PasswordResetToken, UserSession

if TYPE_CHECKING:
    from uplus.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class RetentionResult:
    sessions_deleted: int = 0
    reset_tokens_deleted: int = 0


def run_retention(
    session: Session,
    settings: "Settings",
    now: datetime | None = None,
) -> RetentionResult:
    """
    Delete sessions past expires_at, and reset tokens that are expired or were
    used more than RESET_TOKEN_USED_GRACE_HOURS ago.

    Revoked-but-unexpired sessions are kept until they expire. Idempotent: safe
    to run repeatedly.
    """
    if not settings.RETENTION_ENABLED:
        logger.info("Retention is disabled (RETENTION_ENABLED=false); skipping.")
        return RetentionResult()

    now = now or utcnow()
    used_cutoff = now - timedelta(hours=settings.RESET_TOKEN_USED_GRACE_HOURS)

    sessions_deleted = (
        session.query(UserSession)
        .filter(UserSession.expires_at < now)
        .delete(synchronize_session=False)
    )
    reset_tokens_deleted = (
        session.query(PasswordResetToken)
        .filter(
            or_(
                PasswordResetToken.expires_at < now,
                and_(
                    PasswordResetToken.used_at.is_not(None),
                    PasswordResetToken.used_at < used_cutoff,
                ),
            )
        )
        .delete(synchronize_session=False)
    )
    session.commit()

    if sessions_deleted > 0 or reset_tokens_deleted > 0:
        logger.info(
            "Retention run: now=%s, sessions_deleted=%s, reset_tokens_deleted=%s",
            now.isoformat(),
            sessions_deleted,
            reset_tokens_deleted,
        )
    return RetentionResult(
        sessions_deleted=sessions_deleted,
        reset_tokens_deleted=reset_tokens_deleted,
    )
