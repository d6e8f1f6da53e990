"""User database models."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from warden.core.constants import MAX_USERNAME_LENGTH
from warden.core.database.base import Base, IdMixin, TimestampMixin


class User(Base, IdMixin, TimestampMixin):
    """Authenticated account.

    Accounts are owned by the authentication layer; the access engine only
    reads the integer identity (which doubles as creation order) and the
    username.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(
        String(MAX_USERNAME_LENGTH),
        unique=True,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"
