"""Audit trail for role, permission and assignment changes."""

from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from warden.core.access.models import RoleAuditLog
from warden.core.constants import DEFAULT_AUDIT_PAGE_SIZE, MAX_AUDIT_PAGE_SIZE


log = structlog.get_logger()


class AccessAuditService:
    """Records RBAC changes in the ``role_audit_log`` table.

    Entries are added to the caller's session and are persisted with the
    caller's commit, so a rolled-back change leaves no audit entry behind.
    """

    def __init__(
        self,
        session: AsyncSession,
        actor_id: int | None = None,
        ip_address: str | None = None,
    ) -> None:
        """Initialize audit service.

        Args:
            session: Database session
            actor_id: User performing the changes (None for system actions)
            ip_address: Client IP address, when acting on behalf of a request
        """
        self.session = session
        self.actor_id = actor_id
        self.ip_address = ip_address

    def log_action(
        self,
        action: str,
        details: dict[str, Any] | None = None,
        user_id: int | None = None,
        target_role_id: int | None = None,
        capability: str | None = None,
    ) -> RoleAuditLog:
        """Create an audit log entry.

        Args:
            action: Type of change (e.g., "role_assign", "capability_set")
            details: Additional context data
            user_id: The user affected by the change
            target_role_id: The role affected by the change
            capability: The capability affected by the change

        Returns:
            The pending audit log entry
        """
        entry = RoleAuditLog(
            actor_id=self.actor_id,
            user_id=user_id,
            target_role_id=target_role_id,
            capability=capability,
            action=action,
            details=details or {},
            ip_address=self.ip_address,
        )
        self.session.add(entry)

        log.info(
            "rbac_audit_logged",
            action=action,
            actor_id=self.actor_id,
            user_id=user_id,
            target_role_id=target_role_id,
            capability=capability,
        )
        return entry

    async def list_entries(self, limit: int = DEFAULT_AUDIT_PAGE_SIZE) -> list[RoleAuditLog]:
        """Return the most recent audit entries, newest first."""
        limit = max(1, min(limit, MAX_AUDIT_PAGE_SIZE))
        result = await self.session.execute(
            select(RoleAuditLog).order_by(RoleAuditLog.id.desc()).limit(limit)
        )
        return list(result.scalars().all())
