"""Integration tests for the access API routes.

These tests verify:
- Capability checks for the current user
- The protected sync and audit endpoints
- Problem Details errors for anonymous, forbidden and outage cases
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from warden.core.access.schemas import Permission
from warden.core.access.service import RoleService


pytestmark = pytest.mark.integration


class TestHealth:
    async def test_liveness(self, client: AsyncClient):
        response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}


class TestCheckCapability:
    """Tests for GET /access/check."""

    @pytest.fixture
    async def editor(self, make_user, make_role, set_permission, assign_role):
        user = await make_user()
        role = await make_role("editor")
        await set_permission(role, "doc:edit", Permission.ALLOW)
        await set_permission(role, "doc:delete", Permission.PROHIBIT)
        await assign_role(user, role)
        return user

    async def test_allowed(self, client: AsyncClient, editor, login_as):
        login_as(editor.id)

        response = await client.get("/access/check", params={"capability": "doc:edit"})

        assert response.status_code == 200
        assert response.json() == {"capability": "doc:edit", "allowed": True}

    async def test_prohibited(self, client: AsyncClient, editor, login_as):
        login_as(editor.id)

        response = await client.get("/access/check", params={"capability": "doc:delete"})

        assert response.json()["allowed"] is False

    async def test_anonymous_is_denied(self, client: AsyncClient, editor):
        response = await client.get("/access/check", params={"capability": "doc:edit"})

        assert response.status_code == 200
        assert response.json()["allowed"] is False

    async def test_malformed_capability(self, client: AsyncClient, editor, login_as):
        login_as(editor.id)

        response = await client.get("/access/check", params={"capability": "doc"})

        assert response.json()["allowed"] is False

    async def test_store_outage_is_503(
        self, client: AsyncClient, db: AsyncSession, editor, login_as, monkeypatch
    ):
        login_as(editor.id)

        async def failing_execute(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        monkeypatch.setattr(db, "execute", failing_execute)

        response = await client.get("/access/check", params={"capability": "doc:edit"})

        assert response.status_code == 503
        assert response.json()["type"] == "urn:warden:error:access_store_unavailable"


class TestSync:
    """Tests for POST /access/sync."""

    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.post("/access/sync")

        assert response.status_code == 401
        assert response.json()["type"] == "urn:warden:error:auth_required"

    async def test_requires_rbac_manage(self, client: AsyncClient, make_user, login_as):
        user = await make_user()
        login_as(user.id)

        response = await client.post("/access/sync")

        assert response.status_code == 403
        assert response.json()["required_capability"] == "rbac:manage"

    async def test_admin_can_sync(
        self, client: AsyncClient, db: AsyncSession, make_user, make_role, make_capability,
        set_permission, assign_role, login_as,
    ):
        await make_capability("rbac:manage", captype="write")
        user = await make_user()
        role = await make_role("manager", sortorder=1)
        await set_permission(role, "rbac:manage", Permission.ALLOW)
        await assign_role(user, role)
        await db.commit()
        login_as(user.id)

        response = await client.post("/access/sync")

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert "rbac:viewaudit" in body["synced"]
        assert body["seed"]["outcome"] == "skipped"


class TestAudit:
    """Tests for GET /access/audit."""

    async def test_requires_rbac_viewaudit(self, client: AsyncClient, make_user, login_as):
        user = await make_user()
        login_as(user.id)

        response = await client.get("/access/audit")

        assert response.status_code == 403

    async def test_lists_newest_first(
        self, client: AsyncClient, db: AsyncSession, make_user, make_capability,
        assign_role, login_as,
    ):
        await make_capability("rbac:viewaudit")
        auditor = await make_user()
        role = await RoleService(db, actor_id=auditor.id).create_role("auditor", "Auditor")
        await RoleService(db, actor_id=auditor.id).set_permission(role.id, "rbac:viewaudit")
        await assign_role(auditor, role)
        await db.commit()
        login_as(auditor.id)

        response = await client.get("/access/audit", params={"limit": 10})

        assert response.status_code == 200
        entries = response.json()
        assert [e["action"] for e in entries] == ["capability_set", "role_create"]
        assert entries[0]["capability"] == "rbac:viewaudit"
        assert entries[0]["actor_id"] == auditor.id

    async def test_limit_is_validated(self, client: AsyncClient, make_user, login_as):
        user = await make_user()
        login_as(user.id)

        response = await client.get("/access/audit", params={"limit": 0})

        assert response.status_code == 422
