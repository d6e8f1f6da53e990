"""Role import and export.

Exports are JSON-serialisable snapshots of roles and their capability
permissions. Imports match roles by shortname: missing roles are created,
existing ones updated. In replace mode an existing role's permissions are
cleared before the imported ones are written.
"""

from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from warden.core.access.audit import AccessAuditService
from warden.core.access.evaluator import AccessEvaluator
from warden.core.access.models import Role, RoleCapability
from warden.core.access.schemas import (
    CapabilityPermissionEntry,
    ImportMode,
    ImportSummary,
    Permission,
    RoleTransfer,
    RoleTransferPayload,
)
from warden.core.constants import ADMIN_ROLE_SHORTNAME
from warden.core.database.base import utcnow
from warden.core.errors import ValidationError


logger = structlog.get_logger()

# notset is never imported: an absent row already means notset
IMPORTABLE_PERMISSIONS = frozenset(
    permission.value
    for permission in (Permission.ALLOW, Permission.PREVENT, Permission.PROHIBIT)
)


class RoleTransferService:
    """Exports roles to, and imports them from, transfer payloads."""

    def __init__(
        self,
        session: AsyncSession,
        evaluator: AccessEvaluator | None = None,
        actor_id: int | None = None,
    ) -> None:
        self.session = session
        self.evaluator = evaluator
        self.audit = AccessAuditService(session, actor_id=actor_id)

    async def export_roles(self, include_admin: bool = True) -> RoleTransferPayload:
        """Snapshot all roles with their capability permissions."""
        result = await self.session.execute(
            select(Role).order_by(Role.sortorder.asc(), Role.id.asc())
        )
        roles: list[RoleTransfer] = []
        for role in result.scalars().all():
            if not include_admin and role.shortname == ADMIN_ROLE_SHORTNAME:
                continue
            caps = await self.session.execute(
                select(RoleCapability.capability, RoleCapability.permission)
                .where(RoleCapability.role_id == role.id)
                .order_by(RoleCapability.capability)
            )
            roles.append(
                RoleTransfer(
                    shortname=role.shortname,
                    name=role.name,
                    description=role.description,
                    sortorder=role.sortorder,
                    capabilities=[
                        CapabilityPermissionEntry(name=name, permission=permission)
                        for name, permission in caps.all()
                    ],
                )
            )

        payload = RoleTransferPayload(
            exported_at=utcnow(),
            include_admin=include_admin,
            roles=roles,
        )
        self.audit.log_action("role_export", details={"count": len(roles)})
        return payload

    async def import_roles(
        self,
        payload: RoleTransferPayload | dict[str, Any],
        mode: ImportMode | str = ImportMode.MERGE,
    ) -> ImportSummary:
        """Create or update roles from a transfer payload.

        Capability entries with an unknown or notset permission are skipped.

        Raises:
            ValidationError: If the payload structure or mode is invalid
        """
        try:
            mode = ImportMode(mode)
        except ValueError as exc:
            raise ValidationError("Invalid import mode", details={"mode": str(mode)}) from exc

        if not isinstance(payload, RoleTransferPayload):
            try:
                payload = RoleTransferPayload.model_validate(payload)
            except PydanticValidationError as exc:
                raise ValidationError(
                    "Invalid role import payload",
                    errors=[
                        {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
                        for err in exc.errors()
                    ],
                ) from exc

        summary = ImportSummary(mode=mode)
        for entry in payload.roles:
            role = await self._upsert_role(entry, mode, summary)
            summary.capabilities_written += await self._write_capabilities(
                role.id, entry.capabilities
            )

        await self.session.flush()
        if self.evaluator is not None:
            self.evaluator.reset_cache()

        self.audit.log_action(
            "role_import",
            details={"mode": mode.value, "role_count": len(payload.roles)},
        )
        logger.info(
            "roles_imported",
            mode=mode.value,
            created=summary.created,
            updated=summary.updated,
            capabilities_written=summary.capabilities_written,
        )
        return summary

    async def _upsert_role(
        self, entry: RoleTransfer, mode: ImportMode, summary: ImportSummary
    ) -> Role:
        result = await self.session.execute(
            select(Role).where(Role.shortname == entry.shortname)
        )
        role = result.scalar_one_or_none()

        if role is None:
            role = Role(
                shortname=entry.shortname,
                name=entry.name,
                description=entry.description,
                sortorder=entry.sortorder,
            )
            self.session.add(role)
            await self.session.flush()
            summary.created += 1
            self.audit.log_action(
                "role_import_create",
                details={"shortname": entry.shortname},
                target_role_id=role.id,
            )
            return role

        role.name = entry.name
        role.description = entry.description
        role.sortorder = entry.sortorder
        role.updated_at = utcnow()
        if mode is ImportMode.REPLACE:
            await self.session.execute(
                delete(RoleCapability).where(RoleCapability.role_id == role.id)
            )
        await self.session.flush()
        summary.updated += 1
        self.audit.log_action(
            "role_import_update",
            details={"shortname": entry.shortname},
            target_role_id=role.id,
        )
        return role

    async def _write_capabilities(
        self, role_id: int, entries: list[CapabilityPermissionEntry]
    ) -> int:
        written = 0
        for entry in entries:
            if entry.permission not in IMPORTABLE_PERMISSIONS:
                continue

            result = await self.session.execute(
                select(RoleCapability).where(
                    RoleCapability.role_id == role_id,
                    RoleCapability.capability == entry.name,
                )
            )
            record = result.scalar_one_or_none()
            if record is None:
                self.session.add(
                    RoleCapability(
                        role_id=role_id,
                        capability=entry.name,
                        permission=entry.permission,
                    )
                )
                # Flush so a repeated name in one payload updates this row
                await self.session.flush()
            elif record.permission != entry.permission:
                record.permission = entry.permission
                record.updated_at = utcnow()
            else:
                continue
            written += 1
        return written
