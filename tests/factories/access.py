"""Factories for users and roles."""

from uuid import uuid4

from polyfactory.factories.sqlalchemy_factory import SQLAlchemyFactory

from warden.core.access.models import Role
from warden.modules.users.models import User


class UserFactory(SQLAlchemyFactory[User]):
    """Factory for creating test User instances."""

    __model__ = User
    __set_primary_key__ = False
    __set_relationships__ = False

    @classmethod
    def username(cls) -> str:
        """Generate a unique username."""
        return f"user-{uuid4().hex[:8]}"


class RoleFactory(SQLAlchemyFactory[Role]):
    """Factory for creating test Role instances."""

    __model__ = Role
    __set_primary_key__ = False
    __set_relationships__ = False

    @classmethod
    def shortname(cls) -> str:
        """Generate a unique shortname."""
        return f"role-{uuid4().hex[:8]}"

    @classmethod
    def name(cls) -> str:
        """Generate a display name."""
        return f"Test Role {uuid4().hex[:4]}"

    @classmethod
    def description(cls) -> str:
        """Default to an empty description."""
        return ""

    @classmethod
    def sortorder(cls) -> int:
        """Default sortorder."""
        return 100
