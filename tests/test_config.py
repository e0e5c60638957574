"""
Settings and Database Wiring Tests
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.config import Settings, get_settings
from app.database import _engine_options, create_tables, drop_tables, get_db
from app.services.rating_config import get_active_config


class TestSettings:
    """Tests for Settings loading and validation."""

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RECALC_MAX_WORKERS", "8")
        monkeypatch.setenv("LOG_LEVEL", "warning")

        settings = Settings()

        assert settings.recalc_max_workers == 8
        assert settings.log_level == "WARNING"

    def test_invalid_log_level(self):
        with pytest.raises(PydanticValidationError):
            Settings(log_level="LOUD")

    def test_invalid_environment(self):
        with pytest.raises(PydanticValidationError):
            Settings(environment="qa")

    @pytest.mark.parametrize("field", ["recalc_batch_size", "recalc_max_workers"])
    def test_recalculation_sizes_must_be_positive(self, field):
        with pytest.raises(PydanticValidationError):
            Settings(**{field: 0})

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestDatabaseWiring:
    """Tests for engine options and session helpers."""

    def test_sqlite_has_no_sized_pool(self):
        options = _engine_options("sqlite:///ratings.db")

        assert "pool_size" not in options
        assert options["connect_args"] == {"check_same_thread": False}

    def test_postgres_pool_options(self):
        options = _engine_options("postgresql://localhost/books")

        assert options["pool_pre_ping"] is True
        assert options["pool_size"] == get_settings().db_pool_size

    def test_get_db_session(self):
        create_tables()
        sessions = get_db()
        db = next(sessions)
        try:
            assert get_active_config(db).version == 0
        finally:
            sessions.close()
            drop_tables()
