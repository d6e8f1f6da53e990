"""Permission evaluation.

This module answers "does user U hold capability C?" by folding every
role assignment that applies to U and C's component into a single
permission per capability.

Precedence, from highest to lowest:
- Component-scoped assignments, by role sortorder
- Global assignments, by role sortorder
- Role id breaks sortorder ties

The first non-notset permission found for a capability wins, except that
prohibit from any applicable role always wins. Only allow grants.
"""

from collections.abc import Iterable

import structlog
from sqlalchemy import Select, case, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from warden.core.access.models import Role, RoleAssignment, RoleCapability
from warden.core.access.schemas import Permission, split_capability
from warden.core.errors import AccessStoreError


logger = structlog.get_logger()


def coerce_permission(value: str | None) -> Permission:
    """Map a stored permission string to Permission, unknown values to NOTSET."""
    if not value:
        return Permission.NOTSET
    try:
        return Permission(value)
    except ValueError:
        return Permission.NOTSET


def fold_permissions(rows: Iterable[tuple[str, str | None]]) -> dict[str, Permission]:
    """Fold (capability, permission) rows given in priority order.

    Args:
        rows: Capability/permission pairs, highest priority first

    Returns:
        The resolved permission per capability (notset entries omitted)
    """
    resolved: dict[str, Permission] = {}

    for capability, raw_permission in rows:
        permission = coerce_permission(raw_permission)
        if permission is Permission.NOTSET:
            continue

        current = resolved.get(capability)
        if current is None:
            resolved[capability] = permission
        elif current is Permission.PROHIBIT:
            continue
        elif permission is Permission.PROHIBIT:
            resolved[capability] = Permission.PROHIBIT

    return resolved


def assignment_rows_query(user_id: int, component: str) -> Select[tuple[str, str]]:
    """Build the query returning a user's capability rows in priority order."""
    return (
        select(RoleCapability.capability, RoleCapability.permission)
        .select_from(RoleAssignment)
        .join(Role, Role.id == RoleAssignment.role_id)
        .join(RoleCapability, RoleCapability.role_id == Role.id)
        .where(
            RoleAssignment.user_id == user_id,
            or_(
                RoleAssignment.component.is_(None),
                RoleAssignment.component == component,
            ),
        )
        .order_by(
            # Component-scoped assignments first
            case((RoleAssignment.component.is_(None), 1), else_=0),
            Role.sortorder.asc(),
            Role.id.asc(),
            RoleCapability.id.asc(),
        )
    )


class AccessEvaluator:
    """Request-scoped capability checker.

    Holds two caches for the lifetime of one request:
    - evaluation cache: (user, component) -> capability -> permission
    - decision cache: (user, component, capability) -> bool

    Each (user, component) pair costs at most one query per instance.
    Build one evaluator per request, or call reset_cache() at request
    boundaries when an instance is reused.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._evaluations: dict[tuple[int, str], dict[str, Permission]] = {}
        self._decisions: dict[tuple[int, str, str], bool] = {}

    def reset_cache(self) -> None:
        """Drop both caches."""
        self._evaluations.clear()
        self._decisions.clear()

    async def build_evaluation_cache(self, user_id: int, component: str) -> dict[str, Permission]:
        """Query and fold the permissions of a user for one component.

        Raises:
            AccessStoreError: If the store cannot be queried
        """
        try:
            result = await self.session.execute(assignment_rows_query(user_id, component))
            rows = result.all()
        except SQLAlchemyError as exc:
            logger.error(
                "access_evaluation_failed",
                user_id=user_id,
                component=component,
                error=str(exc),
            )
            raise AccessStoreError(
                details={"user_id": user_id, "component": component}
            ) from exc

        permissions = fold_permissions((row[0], row[1]) for row in rows)
        self._evaluations[(user_id, component)] = permissions

        logger.debug(
            "access_evaluation_built",
            user_id=user_id,
            component=component,
            rows=len(rows),
            capabilities=len(permissions),
        )
        return permissions

    async def resolve_permission(self, capability: str, user_id: int) -> Permission:
        """Return the effective permission of a user for a capability.

        Malformed capabilities and non-positive user ids resolve to NOTSET
        without touching the store.
        """
        parts = split_capability(capability)
        if parts is None or not _valid_user_id(user_id):
            return Permission.NOTSET

        component = parts[0]
        permissions = self._evaluations.get((user_id, component))
        if permissions is None:
            permissions = await self.build_evaluation_cache(user_id, component)
        return permissions.get(capability, Permission.NOTSET)

    async def user_has_capability(self, capability: str, user_id: int) -> bool:
        """Check whether a user holds a capability.

        Args:
            capability: Capability name, "component:action"
            user_id: The user's id

        Returns:
            True only if the resolved permission is allow

        Raises:
            AccessStoreError: If the store cannot be queried
        """
        parts = split_capability(capability)
        if parts is None or not _valid_user_id(user_id):
            return False

        key = (user_id, parts[0], capability)
        cached = self._decisions.get(key)
        if cached is not None:
            return cached

        permission = await self.resolve_permission(capability, user_id)
        allowed = permission is Permission.ALLOW
        self._decisions[key] = allowed
        return allowed

    async def has_any_capability(self, capabilities: Iterable[str], user_id: int) -> bool:
        """Check whether a user holds at least one of the capabilities."""
        for capability in capabilities:
            if await self.user_has_capability(capability, user_id):
                return True
        return False

    async def has_all_capabilities(self, capabilities: Iterable[str], user_id: int) -> bool:
        """Check whether a user holds every one of the capabilities."""
        for capability in capabilities:
            if not await self.user_has_capability(capability, user_id):
                return False
        return True


def _valid_user_id(user_id: object) -> bool:
    return isinstance(user_id, int) and not isinstance(user_id, bool) and user_id > 0
