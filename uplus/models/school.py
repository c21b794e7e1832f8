"""ORM model for schools (the tenant partition)."""

from sqlalchemy import Boolean, Column, Integer, String, func, true
from sqlalchemy.orm import relationship

from uplus.models.base import Base, UTCDateTime


class School(Base):
    __tablename__ = "schools"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(UTCDateTime(), nullable=False, server_default=func.now())

    users = relationship("User", back_populates="school", passive_deletes=True)
