"""Users module: the identities access decisions are made for."""

from warden.modules.users.models import User
from warden.modules.users.repos import UserRepository


__all__ = ["User", "UserRepository"]
