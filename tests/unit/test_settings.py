"""
Unit tests for settings module.
"""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.config.settings import (
    APISettings,
    LoggingSettings,
    MigrationSettings,
    StoreSettings,
    create_settings,
    get_settings,
    reload_settings,
)
from src.core.errors import ConfigurationError

BASE_CONFIG = {
    "environment": "test",
    "store": {"database_url": "sqlite://", "max_batch_ops": 100},
    "migration": {"canonical_codec": "webp", "quality": 75, "dry_run_ratio": 0.7},
    "api": {"host": "127.0.0.1", "port": 9000},
    "logging": {"level": "debug", "format": "text"},
}


class TestStoreSettings:

    def test_defaults(self):
        settings = StoreSettings()
        assert settings.max_batch_ops == 500
        assert settings.bootstrap_default_category is False

    def test_max_batch_ops_bounds(self):
        with pytest.raises(ValidationError, match="max_batch_ops must be between"):
            StoreSettings(max_batch_ops=0)
        with pytest.raises(ValidationError, match="max_batch_ops must be between"):
            StoreSettings(max_batch_ops=501)


class TestMigrationSettings:

    def test_codec_is_lowercased(self):
        assert MigrationSettings(canonical_codec="WEBP").canonical_codec == "webp"

    def test_unsupported_codec(self):
        with pytest.raises(ValidationError, match="Codec must be one of"):
            MigrationSettings(canonical_codec="bmp")

    def test_quality_bounds(self):
        with pytest.raises(ValidationError, match="quality must be between"):
            MigrationSettings(quality=0)

    def test_ratio_bounds(self):
        with pytest.raises(ValidationError, match="dry_run_ratio"):
            MigrationSettings(dry_run_ratio=0)
        with pytest.raises(ValidationError, match="dry_run_ratio"):
            MigrationSettings(dry_run_ratio=1.5)


class TestAPIAndLoggingSettings:

    def test_port_validation(self):
        with pytest.raises(ValidationError, match="Port must be between"):
            APISettings(port=70000)

    def test_level_is_uppercased(self):
        assert LoggingSettings(level="warning").level == "WARNING"

    def test_invalid_level(self):
        with pytest.raises(ValidationError, match="Log level must be one of"):
            LoggingSettings(level="LOUD")

    def test_invalid_format(self):
        with pytest.raises(ValidationError, match="Log format must be one of"):
            LoggingSettings(format="xml")


class TestCreateSettings:

    def test_from_yaml_config(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with patch("src.config.settings.load_config", return_value=BASE_CONFIG):
            settings = create_settings()

        assert settings.environment == "test"
        assert settings.store.max_batch_ops == 100
        assert settings.migration.quality == 75
        assert settings.api.port == 9000
        assert settings.logging.level == "DEBUG"
        assert settings.export.max_workers == 8

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://db/gallery")
        monkeypatch.setenv("MAX_BATCH_OPS", "50")
        with patch("src.config.settings.load_config", return_value=BASE_CONFIG):
            settings = create_settings()

        assert settings.store.database_url == "postgresql://db/gallery"
        assert settings.store.max_batch_ops == 50

    def test_invalid_values_raise_configuration_error(self):
        config = {**BASE_CONFIG, "migration": {"quality": 500}}
        with patch("src.config.settings.load_config", return_value=config):
            with pytest.raises(ConfigurationError, match="Failed to create settings"):
                create_settings()

    def test_get_settings_is_cached(self):
        with patch("src.config.settings.load_config", return_value=BASE_CONFIG) as mock_load:
            first = get_settings()
            second = get_settings()
            assert first is second
            assert mock_load.call_count == 1

            reload_settings()
            assert mock_load.call_count == 2
