"""Integration tests for the capability registry sync.

These tests verify:
- Declarations are upserted and skipped entries reported
- Syncing is idempotent
- Failing sources do not abort the sync
- The sync never raises
"""

from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from warden.core.access.declarations import (
    DeclarationRegistry,
    StaticDeclarationSource,
    build_declaration_registry,
)
from warden.core.access.evaluator import AccessEvaluator
from warden.core.access.models import Capability, Role, RoleAssignment, RoleCapability
from warden.core.access.registry import CapabilityRegistry
from warden.core.access.schemas import SeedOutcome


pytestmark = pytest.mark.integration


class BrokenSource:
    """Declaration source whose load always fails."""

    name = "broken"

    def load(self):
        raise OSError("cannot read declarations")


def forum_source() -> StaticDeclarationSource:
    return StaticDeclarationSource(
        "forum",
        {
            "forum:view": {"captype": "read"},
            "forum:post": {"captype": "write"},
            "forum": {"captype": "read"},
            "forum:pin": {"captype": "admin"},
        },
    )


async def count(db: AsyncSession, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


async def capability_rows(db: AsyncSession) -> list[tuple]:
    result = await db.execute(
        select(
            Capability.name, Capability.captype, Capability.component, Capability.created_at
        ).order_by(Capability.name)
    )
    return [tuple(row) for row in result.all()]


class TestSyncAll:
    """Tests for CapabilityRegistry.sync_all."""

    async def test_upserts_valid_declarations(self, db: AsyncSession):
        """Valid declarations are stored, invalid ones reported."""
        registry = CapabilityRegistry(db, DeclarationRegistry([forum_source()]))

        result = await registry.sync_all()

        assert result.ok is True
        assert result.synced == ["forum:view", "forum:post"]
        assert {(s.name, s.reason) for s in result.skipped} == {
            ("forum", "malformed_name"),
            ("forum:pin", "invalid_captype"),
        }
        stored = await db.get(Capability, "forum:post")
        assert stored is not None
        assert stored.captype == "write"
        assert stored.component == "forum"

    async def test_sync_is_idempotent(self, db: AsyncSession):
        """Running the sync twice leaves the same store."""
        registry = CapabilityRegistry(db, DeclarationRegistry([forum_source()]))

        await registry.sync_all()
        first = (await count(db, Capability), await count(db, Role), await count(db, RoleCapability))
        first_rows = await capability_rows(db)
        await registry.sync_all()
        second = (await count(db, Capability), await count(db, Role), await count(db, RoleCapability))
        second_rows = await capability_rows(db)

        assert first == second == (2, 1, 2)
        assert [row[:3] for row in first_rows] == [
            ("forum:post", "write", "forum"),
            ("forum:view", "read", "forum"),
        ]
        assert first_rows == second_rows

    async def test_redeclared_captype_is_updated(self, db: AsyncSession):
        """A changed captype is written on the next sync."""
        await CapabilityRegistry(
            db, DeclarationRegistry([StaticDeclarationSource("forum", {"forum:pin": {"captype": "read"}})])
        ).sync_all()

        await CapabilityRegistry(
            db, DeclarationRegistry([StaticDeclarationSource("forum", {"forum:pin": {"captype": "write"}})])
        ).sync_all()

        stored = await db.get(Capability, "forum:pin")
        assert stored.captype == "write"

    async def test_failing_source_is_recorded(self, db: AsyncSession):
        """A source that cannot load is reported and the rest still sync."""
        registry = CapabilityRegistry(db, DeclarationRegistry([BrokenSource(), forum_source()]))

        result = await registry.sync_all()

        assert result.ok is True
        assert [f.source for f in result.failed_sources] == ["broken"]
        assert "cannot read" in result.failed_sources[0].reason
        assert "forum:view" in result.synced

    async def test_malformed_yaml_module(self, db: AsyncSession, tmp_path: Path):
        """A module with broken YAML does not stop other modules."""
        (tmp_path / "good").mkdir()
        (tmp_path / "good" / "access.yaml").write_text("good:view:\n  captype: read\n")
        (tmp_path / "bad").mkdir()
        (tmp_path / "bad" / "access.yaml").write_text("bad:view: [unclosed\n")

        result = await CapabilityRegistry(db, DeclarationRegistry(modules_dir=tmp_path)).sync_all()

        assert [f.source for f in result.failed_sources] == ["bad"]
        assert result.synced == ["good:view"]

    async def test_store_error_skips_item(self, db: AsyncSession, monkeypatch: pytest.MonkeyPatch):
        """An upsert that fails is skipped and the sync carries on."""
        registry = CapabilityRegistry(db, DeclarationRegistry([forum_source()]))
        original = registry.upsert_capability

        async def flaky_upsert(definition):
            if definition.name == "forum:view":
                raise OperationalError("INSERT", {}, Exception("disk full"))
            await original(definition)

        monkeypatch.setattr(registry, "upsert_capability", flaky_upsert)

        result = await registry.sync_all()

        assert result.ok is True
        assert result.synced == ["forum:post"]
        assert ("forum:view", "store_error") in {(s.name, s.reason) for s in result.skipped}
        assert await db.get(Capability, "forum:view") is None

    async def test_fatal_error_is_reported_not_raised(
        self, db: AsyncSession, monkeypatch: pytest.MonkeyPatch
    ):
        """An unexpected failure marks the result as not ok."""
        registry = CapabilityRegistry(db, DeclarationRegistry([forum_source()]))

        def exploding_discover():
            raise RuntimeError("registry corrupted")

        monkeypatch.setattr(registry, "discover_declarations", exploding_discover)

        result = await registry.sync_all()

        assert result.ok is False
        assert result.reason == "registry corrupted"

    async def test_sync_resets_evaluator(self, db: AsyncSession, make_user):
        """A sync drops the caches of the attached evaluator."""
        user = await make_user()
        await db.commit()
        evaluator = AccessEvaluator(db)
        assert await evaluator.user_has_capability("rbac:manage", user.id) is False

        await CapabilityRegistry(db, build_declaration_registry(), evaluator=evaluator).sync_all()

        assert await evaluator.user_has_capability("rbac:manage", user.id) is True


class TestBootstrapScenario:
    """End-to-end bootstrap of a fresh install."""

    async def test_fresh_install_grants_first_user_rbac_manage(
        self, db: AsyncSession, make_user
    ):
        """The earliest user becomes administrator on the first sync."""
        first = await make_user(username="first")
        await make_user(username="second")
        await db.commit()

        result = await CapabilityRegistry(db, build_declaration_registry()).sync_all()

        assert result.seed.outcome is SeedOutcome.SEEDED
        assert result.seed.user_id == first.id
        assert "rbac:manage" in result.synced

        assignments = (await db.execute(select(RoleAssignment))).scalars().all()
        assert [(a.user_id, a.component) for a in assignments] == [(first.id, None)]

        evaluator = AccessEvaluator(db)
        assert await evaluator.user_has_capability("rbac:manage", first.id) is True
