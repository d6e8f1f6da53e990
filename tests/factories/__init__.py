"""Test factories."""

from tests.factories.access import RoleFactory, UserFactory


__all__ = ["RoleFactory", "UserFactory"]
