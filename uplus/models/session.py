"""ORM model for server-side session records (one row per issued token lineage)."""

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, func, true
from sqlalchemy.orm import relationship

from uplus.models.base import Base, UTCDateTime


class UserSession(Base):
    """
    Tracks whether an issued session token is still honored.

    Only the sha256 digest of the raw token is stored. A row is usable while
    is_active is true and expires_at is in the future; refresh rewrites
    token_hash/expires_at in place.
    """

    __tablename__ = "user_sessions"
    __table_args__ = (Index("ix_user_sessions_user_id_is_active", "user_id", "is_active"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    expires_at = Column(UTCDateTime(), nullable=False, index=True)
    created_at = Column(UTCDateTime(), nullable=False, server_default=func.now())
    user_agent = Column(String(512), nullable=True)
    ip_address = Column(String(64), nullable=True)

    user = relationship("User", back_populates="sessions")
