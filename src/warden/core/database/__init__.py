"""Database layer - session management, base models, and mixins."""

from warden.core.database.base import Base, IdMixin, TimestampMixin, utcnow
from warden.core.database.session import (
    async_engine,
    async_session_factory,
    get_db,
)


__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "async_engine",
    "async_session_factory",
    "get_db",
    "utcnow",
]
