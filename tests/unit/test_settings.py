"""Tests for configuration settings."""
import pytest
from pydantic import ValidationError

from workbench.config.settings import Settings, get_settings, reset_settings
from workflow_runtime import EngineSettings


class TestSettings:
    """Test Settings configuration."""

    def test_settings_default_values(self, monkeypatch):
        """Test default values are set correctly."""
        monkeypatch.delenv("WORKBENCH_LOG_LEVEL", raising=False)

        settings = Settings()

        # Note: env is set to 'test' in conftest.py
        assert settings.env in ("development", "test")
        assert settings.log_level == "INFO"
        assert settings.log_json is True

        # Redis settings (test environment uses db 1)
        assert settings.redis_url in ("redis://localhost:6379/0", "redis://localhost:6379/1")
        assert settings.redis_key_prefix == "workbench"

        # Workflow settings
        assert settings.workflow_format_version == "1.0"
        assert settings.http_timeout_s == 30.0
        assert settings.dashboard_preview_rows == 1000
        assert settings.strict_output_specs is True

    def test_settings_from_env(self, monkeypatch):
        """Test that WORKBENCH_* variables override defaults."""
        monkeypatch.setenv("WORKBENCH_DASHBOARD_PREVIEW_ROWS", "25")
        monkeypatch.setenv("WORKBENCH_STRICT_OUTPUT_SPECS", "false")
        monkeypatch.setenv("WORKBENCH_LOG_LEVEL", "debug")

        settings = Settings()

        assert settings.dashboard_preview_rows == 25
        assert settings.strict_output_specs is False
        assert settings.log_level == "DEBUG"

    def test_invalid_log_level(self, monkeypatch):
        """Test that unknown log levels are rejected."""
        monkeypatch.setenv("WORKBENCH_LOG_LEVEL", "LOUD")

        with pytest.raises(ValidationError) as exc_info:
            Settings()

        assert "Unknown log level" in str(exc_info.value)

    @pytest.mark.parametrize("field", ["http_timeout_s", "dashboard_preview_rows"])
    def test_limits_must_be_positive(self, field):
        """Test that timeouts and row limits must be positive."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(**{field: 0})

        assert f"{field} must be positive" in str(exc_info.value)

    def test_engine_settings(self):
        """Test the engine options derived from settings."""
        settings = Settings(dashboard_preview_rows=10, strict_output_specs=False, http_timeout_s=5)

        engine = settings.engine_settings()

        assert isinstance(engine, EngineSettings)
        assert engine.dashboard_preview_rows == 10
        assert engine.strict_output_specs is False
        assert engine.http_timeout_s == 5


class TestGetSettings:
    """Test the global settings instance."""

    def test_get_settings_is_cached(self):
        """Test that get_settings returns the same instance."""
        assert get_settings() is get_settings()

    def test_reset_settings(self, monkeypatch):
        """Test that reset_settings picks up environment changes."""
        first = get_settings()
        monkeypatch.setenv("WORKBENCH_REDIS_KEY_PREFIX", "other")

        reset_settings()
        second = get_settings()

        assert second is not first
        assert second.redis_key_prefix == "other"
