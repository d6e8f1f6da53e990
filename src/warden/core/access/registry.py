"""Capability registry: persists declared capabilities.

A sync walks every declaration source, validates each declaration and
upserts it into the ``capabilities`` table. Each upsert is committed on
its own, so an interrupted sync leaves a superset of capabilities that the
next run completes. Syncing is idempotent and safe to re-run.
"""

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from warden.core.access.declarations import (
    DeclarationRegistry,
    DeclarationSource,
    parse_declarations,
)
from warden.core.access.evaluator import AccessEvaluator
from warden.core.access.models import Capability
from warden.core.access.schemas import (
    CapabilityDefinition,
    FailedSource,
    SkippedDeclaration,
    SyncResult,
)
from warden.core.access.seeder import AdministratorSeeder
from warden.core.constants import DEFAULT_ADMIN_USERNAME
from warden.core.database.base import utcnow


logger = structlog.get_logger()


class CapabilityRegistry:
    """Synchronises declared capabilities into the store."""

    def __init__(
        self,
        session: AsyncSession,
        declarations: DeclarationRegistry,
        evaluator: AccessEvaluator | None = None,
        admin_username: str = DEFAULT_ADMIN_USERNAME,
    ) -> None:
        """Initialize the registry.

        Args:
            session: Database session
            declarations: Where capability declarations come from
            evaluator: Evaluator whose caches are dropped on every sync
            admin_username: Account that always receives the admin role
        """
        self.session = session
        self.declarations = declarations
        self.evaluator = evaluator
        self.seeder = AdministratorSeeder(session, admin_username=admin_username)

    def discover_declarations(self) -> list[DeclarationSource]:
        """Return every declaration source, core components first."""
        return self.declarations.discover()

    async def upsert_capability(self, definition: CapabilityDefinition) -> None:
        """Insert a capability or refresh the stored one, then commit."""
        record = await self.session.get(Capability, definition.name)
        if record is None:
            self.session.add(
                Capability(
                    name=definition.name,
                    captype=definition.captype.value,
                    component=definition.component,
                )
            )
        else:
            record.captype = definition.captype.value
            record.component = definition.component
            record.updated_at = utcnow()
        await self.session.commit()

    async def _sync_source(self, source: DeclarationSource, result: SyncResult) -> None:
        try:
            definitions, skipped = parse_declarations(source.name, source.load())
        except Exception as exc:
            logger.warning(
                "capability_source_failed",
                source=source.name,
                error=str(exc),
            )
            result.failed_sources.append(FailedSource(source=source.name, reason=str(exc)))
            return

        for entry in skipped:
            logger.debug(
                "capability_declaration_skipped",
                source=entry.source,
                capability=entry.name,
                reason=entry.reason,
            )
        result.skipped.extend(skipped)

        for definition in definitions:
            try:
                await self.upsert_capability(definition)
            except SQLAlchemyError as exc:
                await self.session.rollback()
                logger.warning(
                    "capability_upsert_failed",
                    source=source.name,
                    capability=definition.name,
                    error=str(exc),
                )
                result.skipped.append(
                    SkippedDeclaration(
                        source=source.name,
                        name=definition.name,
                        reason="store_error",
                    )
                )
                continue
            result.synced.append(definition.name)

    async def sync_all(self) -> SyncResult:
        """Synchronise all declared capabilities and bootstrap the admin role.

        Never raises: failures are logged and recorded in the result.
        """
        if self.evaluator is not None:
            self.evaluator.reset_cache()

        result = SyncResult()
        try:
            for source in self.discover_declarations():
                await self._sync_source(source, result)

            result.seed = await self.seeder.seed_default_admin_if_empty()
            result.admin_user_assigned = await self.seeder.ensure_admin_user_has_admin_role()
        except Exception as exc:
            logger.exception("capability_sync_failed", error=str(exc))
            result.ok = False
            result.reason = str(exc)
            return result

        logger.info(
            "capabilities_synced",
            synced=len(result.synced),
            skipped=len(result.skipped),
            failed_sources=[failed.source for failed in result.failed_sources],
            seed=result.seed.outcome if result.seed else None,
        )
        if self.evaluator is not None:
            self.evaluator.reset_cache()
        return result
