"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from warden.core.database import get_db


# Type alias for database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


def get_current_user_id(request: Request) -> int:
    """Get the authenticated user's id from the request context.

    The authentication layer stores the id on ``request.state.user_id``;
    anonymous requests resolve to 0, which never holds a capability.
    """
    user_id = getattr(request.state, "user_id", None)
    if isinstance(user_id, int) and user_id > 0:
        return user_id
    return 0


CurrentUserId = Annotated[int, Depends(get_current_user_id)]
