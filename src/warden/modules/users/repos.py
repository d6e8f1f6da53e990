"""User repository for database operations."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from warden.modules.users.models import User


class UserRepository:
    """Repository for the lookups the access engine needs on users."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, user_id: int) -> User | None:
        """Get a user by ID."""
        return await self.session.get(User, user_id)

    async def get_by_username(self, username: str) -> User | None:
        """Get a user by username.

        Args:
            username: The user's login name

        Returns:
            User if found, None otherwise
        """
        result = await self.session.execute(
            select(User).where(User.username == username)
        )
        return result.scalar_one_or_none()

    async def get_first_user_id(self) -> int | None:
        """Return the smallest user id, i.e. the earliest-created account."""
        result = await self.session.execute(
            select(User.id).order_by(User.id.asc()).limit(1)
        )
        return result.scalar_one_or_none()
