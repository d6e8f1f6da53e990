"""Unit tests for application settings."""

import pytest

from warden.config import Settings


pytestmark = pytest.mark.unit


class TestSettings:
    """Tests for Settings validation."""

    def test_log_level_is_normalised(self):
        """Log levels are accepted in any case."""
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        """Unknown log levels fail validation."""
        with pytest.raises(ValueError):
            Settings(log_level="verbose")

    def test_postgres_url_uses_async_driver(self):
        """Plain PostgreSQL URLs are upgraded to asyncpg."""
        settings = Settings(database_url="postgresql://u:p@db:5432/warden")

        assert settings.database_url == "postgresql+asyncpg://u:p@db:5432/warden"
        assert settings.is_sqlite is False

    def test_sqlite_detection(self):
        """SQLite URLs are detected."""
        assert Settings(database_url="sqlite+aiosqlite:///:memory:").is_sqlite is True

    def test_environment_flags(self):
        """Environment helpers follow the environment name."""
        production = Settings(environment="production")
        development = Settings(environment="development")

        assert production.is_production is True
        assert production.is_development is False
        assert development.is_development is True

    def test_admin_username_override(self, monkeypatch: pytest.MonkeyPatch):
        """The admin username can be set from the environment."""
        monkeypatch.setenv("ADMIN_USERNAME", "root")

        assert Settings().admin_username == "root"
