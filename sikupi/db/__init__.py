"""Database package — declarative base, engine setup and session factories."""

from sikupi.db.base import Base, close_db, create_session_factory, init_db

__all__ = [
    "Base",
    "close_db",
    "create_session_factory",
    "init_db",
]
