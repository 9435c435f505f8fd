"""Database package for bajas (SQLAlchemy async models and helpers)."""

from bajas.db.connection import get_session, init_db
from bajas.db.models import Base

__all__ = ["Base", "get_session", "init_db"]
