"""SQLAlchemy ORM models."""

from uplus.models.base import Base
from uplus.models.password_reset import PasswordResetToken
from uplus.models.school import School
from uplus.models.session import UserSession
from uplus.models.user import User

__all__ = ["Base", "PasswordResetToken", "School", "User", "UserSession"]
