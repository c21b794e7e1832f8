"""ORM model for application users (auth, RBAC and tenant membership)."""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
    true,
)
from sqlalchemy.orm import relationship

from uplus.models.base import Base, UTCDateTime


class User(Base):
    """
    User account for session authentication and role-based access control.

    role: one of uplus.core.roles.Role. school_id is NULL only for headadmin.
    """

    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("school_id", "email", name="uq_users_school_email"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, index=True)
    username = Column(String(255), nullable=True, index=True)
    first_name = Column(String(100), nullable=False, default="", server_default="")
    last_name = Column(String(100), nullable=False, default="", server_default="")
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, index=True)
    school_id = Column(
        Integer,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    login_attempts = Column(Integer, nullable=False, default=0, server_default="0")
    lock_until = Column(UTCDateTime(), nullable=True)
    last_login = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, server_default=func.now())
    updated_at = Column(
        UTCDateTime(),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    school = relationship("School", back_populates="users")
    sessions = relationship(
        "UserSession",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    reset_tokens = relationship(
        "PasswordResetToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
