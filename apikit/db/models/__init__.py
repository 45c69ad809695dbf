"""Model module imports for SQLAlchemy metadata registration."""

from apikit.db.models.app import App
from apikit.db.models.token import Token
from apikit.db.models.user import Base
from apikit.db.models.user import User

__all__ = [
    "App",
    "Base",
    "Token",
    "User",
]
