"""Default administrator bootstrap.

The first capability sync on an empty roles table creates the
"admin" role, allows it every registered capability and binds it globally
to the earliest-created user. Seeding is a convenience: its failures are
reported in the result and never abort the sync.
"""

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from warden.core.access.audit import AccessAuditService
from warden.core.access.models import Capability, Role, RoleAssignment, RoleCapability
from warden.core.access.schemas import Permission, SeedOutcome, SeedResult
from warden.core.constants import (
    ADMIN_ROLE_DESCRIPTION,
    ADMIN_ROLE_NAME,
    ADMIN_ROLE_SHORTNAME,
    DEFAULT_ADMIN_USERNAME,
)
from warden.modules.users.repos import UserRepository


logger = structlog.get_logger()


class AdministratorSeeder:
    """Creates and maintains the default administrator role."""

    def __init__(
        self,
        session: AsyncSession,
        admin_username: str = DEFAULT_ADMIN_USERNAME,
    ) -> None:
        self.session = session
        self.admin_username = admin_username
        self.users = UserRepository(session)

    async def seed_default_admin_if_empty(self) -> SeedResult:
        """Seed the administrator role when no role exists yet.

        Returns:
            SEEDED with the new role id (and the assigned user id, if any
            user exists), SKIPPED when roles already exist, FAILED with the
            reason on error
        """
        try:
            count = await self.session.scalar(select(func.count()).select_from(Role))
            if count:
                return SeedResult(outcome=SeedOutcome.SKIPPED, reason="roles_exist")

            role = Role(
                name=ADMIN_ROLE_NAME,
                shortname=ADMIN_ROLE_SHORTNAME,
                description=ADMIN_ROLE_DESCRIPTION,
                sortorder=0,
            )
            self.session.add(role)
            await self.session.flush()
            role_id = role.id

            result = await self.session.execute(
                select(Capability.name).order_by(Capability.name)
            )
            for name in result.scalars().all():
                self.session.add(
                    RoleCapability(
                        role_id=role_id,
                        capability=name,
                        permission=Permission.ALLOW.value,
                    )
                )

            first_user_id = await self.users.get_first_user_id()
            if first_user_id is not None:
                self.session.add(
                    RoleAssignment(user_id=first_user_id, role_id=role_id, component=None)
                )

            await self.session.commit()
        except Exception as exc:
            await self.session.rollback()
            logger.exception("admin_seed_failed", error=str(exc))
            return SeedResult(outcome=SeedOutcome.FAILED, reason=str(exc))

        logger.info(
            "admin_role_seeded",
            role_id=role_id,
            user_id=first_user_id,
        )
        return SeedResult(
            outcome=SeedOutcome.SEEDED,
            role_id=role_id,
            user_id=first_user_id,
        )

    async def ensure_admin_user_has_admin_role(self) -> int | None:
        """Give the configured admin account a global admin assignment.

        Returns:
            The user id if an assignment was created, None otherwise
        """
        try:
            role_id = await self.session.scalar(
                select(Role.id).where(Role.shortname == ADMIN_ROLE_SHORTNAME)
            )
            if role_id is None:
                return None

            user = await self.users.get_by_username(self.admin_username)
            if user is None:
                return None
            user_id = user.id

            existing = await self.session.scalar(
                select(RoleAssignment.id).where(
                    RoleAssignment.user_id == user_id,
                    RoleAssignment.role_id == role_id,
                    RoleAssignment.component.is_(None),
                )
            )
            if existing is not None:
                return None

            self.session.add(
                RoleAssignment(user_id=user_id, role_id=role_id, component=None)
            )
            AccessAuditService(self.session, actor_id=user_id).log_action(
                "auto_assign_admin_role",
                details={"roleid": role_id},
            )
            await self.session.commit()
        except Exception as exc:
            await self.session.rollback()
            logger.exception("admin_user_assignment_failed", error=str(exc))
            return None

        logger.info("admin_user_assigned", user_id=user_id, role_id=role_id)
        return user_id
