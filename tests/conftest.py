"""Pytest configuration and shared fixtures."""

import os


os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from warden.api.dependencies import get_current_user_id  # noqa: E402
from warden.core.access.models import (  # noqa: E402
    Capability,
    Role,
    RoleAssignment,
    RoleCapability,
)
from warden.core.access.schemas import Permission, split_capability  # noqa: E402
from warden.core.database import Base, get_db  # noqa: E402
from warden.main import create_app  # noqa: E402
from warden.modules.users.models import User  # noqa: E402
from tests.factories import RoleFactory, UserFactory  # noqa: E402


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def query_counter(engine: AsyncEngine) -> Callable[[], int]:
    """Count SELECT statements issued against the test engine.

    Returns a callable giving the number of SELECTs since the fixture was
    requested.
    """
    statements: list[str] = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            statements.append(statement)

    event.listen(engine.sync_engine, "before_cursor_execute", before_cursor_execute)
    yield lambda: len(statements)
    event.remove(engine.sync_engine, "before_cursor_execute", before_cursor_execute)


@pytest.fixture
async def app(db: AsyncSession):
    """Create test application instance."""
    application = create_app()

    # Override database dependency
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    application.dependency_overrides[get_db] = override_get_db

    yield application

    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture
def login_as(app) -> Callable[[int], None]:
    """Make subsequent requests authenticate as the given user id."""

    def _login(user_id: int) -> None:
        app.dependency_overrides[get_current_user_id] = lambda: user_id

    return _login


# ============================================================
# Data builders
# ============================================================


@pytest.fixture
def make_user(db: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Persist a user built by the factory."""

    async def _make(**kwargs) -> User:
        user = UserFactory.build(**kwargs)
        db.add(user)
        await db.flush()
        return user

    return _make


@pytest.fixture
def make_role(db: AsyncSession) -> Callable[..., Awaitable[Role]]:
    """Persist a role built by the factory."""

    async def _make(shortname: str, sortorder: int = 100, **kwargs) -> Role:
        role = RoleFactory.build(shortname=shortname, sortorder=sortorder, **kwargs)
        db.add(role)
        await db.flush()
        return role

    return _make


@pytest.fixture
def make_capability(db: AsyncSession) -> Callable[..., Awaitable[Capability]]:
    """Persist a registered capability."""

    async def _make(name: str, captype: str = "read") -> Capability:
        parts = split_capability(name)
        assert parts is not None
        capability = Capability(name=name, captype=captype, component=parts[0])
        db.add(capability)
        await db.flush()
        return capability

    return _make


@pytest.fixture
def set_permission(db: AsyncSession) -> Callable[..., Awaitable[RoleCapability]]:
    """Write a role's permission row for a capability."""

    async def _set(role: Role, capability: str, permission: Permission) -> RoleCapability:
        record = RoleCapability(
            role_id=role.id,
            capability=capability,
            permission=permission.value,
        )
        db.add(record)
        await db.flush()
        return record

    return _set


@pytest.fixture
def assign_role(db: AsyncSession) -> Callable[..., Awaitable[RoleAssignment]]:
    """Bind a user to a role, globally or for one component."""

    async def _assign(user: User, role: Role, component: str | None = None) -> RoleAssignment:
        assignment = RoleAssignment(user_id=user.id, role_id=role.id, component=component)
        db.add(assignment)
        await db.flush()
        return assignment

    return _assign
