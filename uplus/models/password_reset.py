"""ORM model for single-use password reset tokens."""

from sqlalchemy import Column, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from uplus.models.base import Base, UTCDateTime


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    expires_at = Column(UTCDateTime(), nullable=False, index=True)
    used_at = Column(UTCDateTime(), nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, server_default=func.now())

    user = relationship("User", back_populates="reset_tokens")
