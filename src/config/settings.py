"""
Application settings management using Pydantic.

This module combines YAML configuration with environment variables to create
a unified settings object.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.config.loader import load_config, merge_with_env
from src.core.errors import ConfigurationError

SUPPORTED_CODECS = ["webp", "jpeg", "png"]


class StoreSettings(BaseSettings):
    """Document store settings."""

    database_url: str = "sqlite:///./gallery.db"
    max_batch_ops: int = 500
    bootstrap_default_category: bool = False

    @field_validator("max_batch_ops")
    @classmethod
    def validate_max_batch_ops(cls, v: int) -> int:
        if not 1 <= v <= 500:
            raise ValueError("max_batch_ops must be between 1 and 500")
        return v


class MigrationSettings(BaseSettings):
    """Encoding migration settings."""

    canonical_codec: str = "webp"
    quality: int = 80
    dry_run_ratio: float = 0.7

    @field_validator("canonical_codec")
    @classmethod
    def validate_codec(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in SUPPORTED_CODECS:
            raise ValueError(f"Codec must be one of: {', '.join(SUPPORTED_CODECS)}")
        return v_lower

    @field_validator("quality")
    @classmethod
    def validate_quality(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError("quality must be between 1 and 100")
        return v

    @field_validator("dry_run_ratio")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError("dry_run_ratio must be in (0, 1]")
        return v


class ExportSettings(BaseSettings):
    """Export bundle and package settings."""

    download_timeout: int = 30
    max_workers: int = 8


class APISettings(BaseSettings):
    """API configuration settings."""

    host: str = "0.0.0.0"
    port: int = 8000
    cors_enabled: bool = True
    cors_origins: list[str] = Field(default_factory=list)

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    level: str = "INFO"
    format: str = "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        valid_formats = ["json", "text"]
        if v not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Combines environment variables with YAML configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    store: StoreSettings = Field(default_factory=StoreSettings)
    migration: MigrationSettings = Field(default_factory=MigrationSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    api: APISettings = Field(default_factory=APISettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    environment: str = "development"


def create_settings() -> AppSettings:
    """
    Create application settings by combining YAML config and environment variables.

    Returns:
        AppSettings instance with all configuration loaded

    Raises:
        ConfigurationError: If configuration cannot be loaded or is invalid
    """
    try:
        config = merge_with_env(load_config())

        return AppSettings(
            store=StoreSettings(**config["store"]),
            migration=MigrationSettings(**config["migration"]),
            export=ExportSettings(**config.get("export", {})),
            api=APISettings(**config["api"]),
            logging=LoggingSettings(**config["logging"]),
            environment=config.get("environment", "development"),
        )

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Failed to create settings: {e}") from e


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """
    Get the application settings singleton.

    This function is cached, so subsequent calls return the same instance.
    Use reload_settings() to force a reload during development.
    """
    return create_settings()


def reload_settings() -> AppSettings:
    """Reload settings by clearing the cache and recreating."""
    get_settings.cache_clear()
    return get_settings()
