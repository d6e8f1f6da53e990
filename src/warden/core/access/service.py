"""Role management: roles, their permissions, and user assignments.

Every mutation is flushed (the caller owns the commit), drops the caches
of the attached evaluator and leaves an audit entry.
"""

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from warden.core.access.audit import AccessAuditService
from warden.core.access.evaluator import AccessEvaluator, coerce_permission
from warden.core.access.models import Capability, Role, RoleAssignment, RoleCapability
from warden.core.access.schemas import Permission
from warden.core.constants import DEFAULT_ROLE_SORTORDER
from warden.core.database.base import utcnow
from warden.core.errors import ConflictError, NotFoundError, ValidationError
from warden.modules.users.repos import UserRepository


logger = structlog.get_logger()

RoleRef = int | str


class RoleService:
    """Service for managing roles and role assignments."""

    def __init__(
        self,
        session: AsyncSession,
        evaluator: AccessEvaluator | None = None,
        actor_id: int | None = None,
        ip_address: str | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            session: Database session
            evaluator: Evaluator whose caches are dropped after each change
            actor_id: User performing the changes, recorded in the audit log
            ip_address: Client IP address, recorded in the audit log
        """
        self.session = session
        self.evaluator = evaluator
        self.audit = AccessAuditService(session, actor_id=actor_id, ip_address=ip_address)

    @staticmethod
    def _normalize_component(component: str | None) -> str | None:
        """Blank components mean a global assignment."""
        if component is None:
            return None
        return component.strip() or None

    def _invalidate(self) -> None:
        if self.evaluator is not None:
            self.evaluator.reset_cache()

    async def list_roles(self) -> list[Role]:
        """Return all roles, highest priority first."""
        result = await self.session.execute(
            select(Role).order_by(Role.sortorder.asc(), Role.id.asc())
        )
        return list(result.scalars().all())

    async def get_role(self, ref: RoleRef) -> Role:
        """Resolve a role by id or shortname.

        A string made only of digits is treated as an id.

        Raises:
            NotFoundError: If no role matches
        """
        if isinstance(ref, int) or ref.isdigit():
            role = await self.session.get(Role, int(ref))
        else:
            result = await self.session.execute(select(Role).where(Role.shortname == ref))
            role = result.scalar_one_or_none()

        if role is None:
            raise NotFoundError("Role not found", resource="role", resource_id=str(ref))
        return role

    async def create_role(
        self,
        shortname: str,
        name: str,
        sortorder: int = DEFAULT_ROLE_SORTORDER,
        description: str = "",
    ) -> Role:
        """Create a new role.

        Raises:
            ValidationError: If shortname or name is empty
            ConflictError: If the shortname is already taken
        """
        shortname = shortname.strip()
        name = name.strip()
        if not shortname or not name:
            raise ValidationError("Role shortname and name are required")
        if shortname.isdigit():
            raise ValidationError(
                "Role shortname cannot be numeric",
                details={"shortname": shortname},
            )

        existing = await self.session.scalar(select(Role.id).where(Role.shortname == shortname))
        if existing is not None:
            raise ConflictError(
                "Role shortname already exists",
                details={"shortname": shortname},
            )

        role = Role(
            shortname=shortname,
            name=name,
            sortorder=sortorder,
            description=description,
        )
        self.session.add(role)
        await self.session.flush()

        self.audit.log_action(
            "role_create",
            details={"shortname": shortname, "sortorder": sortorder},
            target_role_id=role.id,
        )
        logger.info("role_created", role_id=role.id, shortname=shortname)
        return role

    async def list_capabilities(self) -> list[Capability]:
        """Return every registered capability, grouped by component."""
        result = await self.session.execute(
            select(Capability).order_by(Capability.component, Capability.name)
        )
        return list(result.scalars().all())

    async def role_capabilities(self, ref: RoleRef) -> list[tuple[Capability, Permission]]:
        """Pair every registered capability with a role's permission for it.

        Capabilities the role has no row for are reported as notset.
        """
        role = await self.get_role(ref)
        result = await self.session.execute(
            select(Capability, RoleCapability.permission)
            .outerjoin(
                RoleCapability,
                (RoleCapability.capability == Capability.name)
                & (RoleCapability.role_id == role.id),
            )
            .order_by(Capability.component, Capability.name)
        )
        return [
            (capability, coerce_permission(permission))
            for capability, permission in result.all()
        ]

    async def set_permission(
        self,
        ref: RoleRef,
        capability: str,
        permission: Permission | str = Permission.ALLOW,
    ) -> RoleCapability:
        """Set a role's permission for a registered capability.

        Re-asserting an existing pair updates the permission in place.

        Raises:
            ValidationError: If the permission value is unknown
            NotFoundError: If the role or capability does not exist
        """
        try:
            permission = Permission(permission)
        except ValueError as exc:
            raise ValidationError(
                "Invalid permission value",
                details={"permission": str(permission), "allowed": [p.value for p in Permission]},
            ) from exc

        role = await self.get_role(ref)
        if await self.session.get(Capability, capability) is None:
            raise NotFoundError(
                "Capability not found", resource="capability", resource_id=capability
            )

        result = await self.session.execute(
            select(RoleCapability).where(
                RoleCapability.role_id == role.id,
                RoleCapability.capability == capability,
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = RoleCapability(
                role_id=role.id,
                capability=capability,
                permission=permission.value,
            )
            self.session.add(record)
        else:
            record.permission = permission.value
            record.updated_at = utcnow()
        await self.session.flush()

        self._invalidate()
        self.audit.log_action(
            "capability_set",
            details={"permission": permission.value},
            target_role_id=role.id,
            capability=capability,
        )
        return record

    async def revoke(self, ref: RoleRef, capability: str) -> bool:
        """Remove a role's permission row for a capability.

        Returns:
            True if a row was removed
        """
        role = await self.get_role(ref)
        result = await self.session.execute(
            delete(RoleCapability).where(
                RoleCapability.role_id == role.id,
                RoleCapability.capability == capability,
            )
        )
        await self.session.flush()

        self._invalidate()
        self.audit.log_action(
            "capability_revoke",
            target_role_id=role.id,
            capability=capability,
        )
        return bool(result.rowcount)

    async def _find_assignment(
        self, user_id: int, role_id: int, component: str | None
    ) -> RoleAssignment | None:
        component_clause = (
            RoleAssignment.component.is_(None)
            if component is None
            else RoleAssignment.component == component
        )
        result = await self.session.execute(
            select(RoleAssignment).where(
                RoleAssignment.user_id == user_id,
                RoleAssignment.role_id == role_id,
                component_clause,
            )
        )
        return result.scalar_one_or_none()

    async def assign(
        self,
        user_id: int,
        ref: RoleRef,
        component: str | None = None,
    ) -> RoleAssignment:
        """Assign a role to a user, globally or for one component.

        Raises:
            ValidationError: If the user id is not positive
            NotFoundError: If the user or role does not exist
        """
        if user_id <= 0:
            raise ValidationError("Invalid user id", details={"user_id": user_id})
        component = self._normalize_component(component)

        if await UserRepository(self.session).get_by_id(user_id) is None:
            raise NotFoundError("User not found", resource="user", resource_id=str(user_id))
        role = await self.get_role(ref)

        assignment = await self._find_assignment(user_id, role.id, component)
        if assignment is None:
            assignment = RoleAssignment(user_id=user_id, role_id=role.id, component=component)
            self.session.add(assignment)
        else:
            assignment.updated_at = utcnow()
        await self.session.flush()

        self._invalidate()
        self.audit.log_action(
            "role_assign",
            details={"component": component},
            user_id=user_id,
            target_role_id=role.id,
        )
        return assignment

    async def unassign(
        self,
        user_id: int,
        ref: RoleRef,
        component: str | None = None,
    ) -> bool:
        """Remove a user's assignment to a role.

        Returns:
            True if an assignment was removed
        """
        component = self._normalize_component(component)
        role = await self.get_role(ref)
        assignment = await self._find_assignment(user_id, role.id, component)
        if assignment is None:
            return False

        await self.session.delete(assignment)
        await self.session.flush()

        self._invalidate()
        self.audit.log_action(
            "role_unassign",
            details={"component": component},
            user_id=user_id,
            target_role_id=role.id,
        )
        return True

    async def list_assignments(self, user_id: int) -> list[RoleAssignment]:
        """Return a user's role assignments."""
        result = await self.session.execute(
            select(RoleAssignment)
            .where(RoleAssignment.user_id == user_id)
            .order_by(RoleAssignment.id)
        )
        return list(result.scalars().all())
