"""Core app configuration, store client, roles and token handling."""

from uplus.core.config import get_settings, settings
from uplus.core.database import Database, get_db
from uplus.core.roles import Role

__all__ = ["Database", "Role", "get_settings", "settings", "get_db"]
