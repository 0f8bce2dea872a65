"""
Unit tests for the YAML configuration loader.
"""

import pytest

from src.config.loader import get_config_path, load_config, load_yaml_file, merge_with_env
from src.core.errors import ConfigurationError


class TestLoadYamlFile:

    def test_loads_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("store:\n  max_batch_ops: 10\n")
        assert load_yaml_file(path) == {"store": {"max_batch_ops": 10}}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        with pytest.raises(ConfigurationError, match="empty"):
            load_yaml_file(path)

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="dictionary"):
            load_yaml_file(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("store: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Failed to parse"):
            load_yaml_file(path)


class TestLoadConfig:

    def test_bundled_config_has_required_sections(self, monkeypatch):
        monkeypatch.delenv("CONFIG_DIR", raising=False)
        config = load_config()
        for section in ("store", "migration", "api", "logging"):
            assert section in config

    def test_config_dir_override(self, tmp_path, monkeypatch):
        (tmp_path / "config.yaml").write_text("store: {}\nmigration: {}\napi: {}\n")
        monkeypatch.setenv("CONFIG_DIR", str(tmp_path))

        assert get_config_path("config.yaml") == tmp_path / "config.yaml"
        with pytest.raises(ConfigurationError, match="logging"):
            load_config()

    def test_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
        with pytest.raises(ConfigurationError, match="not found"):
            get_config_path("config.yaml")


class TestMergeWithEnv:

    def test_does_not_mutate_input(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        config = {"logging": {"level": "INFO"}}

        merged = merge_with_env(config)

        assert merged["logging"]["level"] == "DEBUG"
        assert config["logging"]["level"] == "INFO"

    def test_port_and_environment(self, monkeypatch):
        monkeypatch.setenv("API_PORT", "8123")
        monkeypatch.setenv("ENVIRONMENT", "production")

        merged = merge_with_env({"api": {}})

        assert merged["api"]["port"] == 8123
        assert merged["environment"] == "production"

    @pytest.mark.parametrize("name", ["API_PORT", "MAX_BATCH_OPS"])
    def test_non_integer_override(self, monkeypatch, name):
        monkeypatch.setenv(name, "lots")
        with pytest.raises(ConfigurationError, match=name):
            merge_with_env({})
