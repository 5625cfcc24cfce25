"""Configuration and settings management using pydantic-settings."""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from workflow_runtime import EngineSettings

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}


class Settings(BaseSettings):
    """Application settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_prefix="WORKBENCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core service settings
    env: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(default=True, description="Emit JSON log lines")

    # Redis settings
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_key_prefix: str = Field(
        default="workbench",
        description="Prefix of every Redis key written by the stores",
    )

    # Workflow settings
    workflow_format_version: str = Field(
        default="1.0",
        description="Version written to metadata.version of saved workflows",
    )
    http_timeout_s: float = Field(
        default=30.0,
        description="Timeout for HTTP reads done by source nodes",
    )
    dashboard_preview_rows: int = Field(
        default=1000,
        description="Maximum rows copied into a table dashboard item",
    )
    strict_output_specs: bool = Field(
        default=True,
        description="Fail a node whose output spec differs from its configured spec",
    )
    discover_entry_points: bool = Field(
        default=True,
        description="Load node packs from the workbench.nodepacks entry point group",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that the log level is a known logging level name."""
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("http_timeout_s", "dashboard_preview_rows")
    @classmethod
    def validate_positive(cls, v: float, info) -> float:
        """Validate that limits are positive."""
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v

    def engine_settings(self) -> EngineSettings:
        """Execution engine options derived from these settings."""
        return EngineSettings(
            strict_output_specs=self.strict_output_specs,
            dashboard_preview_rows=self.dashboard_preview_rows,
            http_timeout_s=self.http_timeout_s,
        )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
