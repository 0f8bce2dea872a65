"""
Configuration loader for YAML files.

This module handles loading and parsing YAML configuration files.
"""

import copy
import os
from pathlib import Path
from typing import Any

import yaml

from src.core.errors import ConfigurationError

REQUIRED_SECTIONS = ["store", "migration", "api", "logging"]


def get_config_path(filename: str) -> Path:
    """
    Get the path to a configuration file.

    Args:
        filename: Name of the config file (e.g., 'config.yaml')

    Returns:
        Path to the configuration file

    Raises:
        ConfigurationError: If config file doesn't exist
    """
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        config_path = Path(config_dir) / filename
    else:
        # Get project root (parent of src directory)
        project_root = Path(__file__).parent.parent.parent
        config_path = project_root / "config" / filename

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    return config_path


def load_yaml_file(file_path: Path) -> dict[str, Any]:
    """
    Load and parse a YAML file.

    Args:
        file_path: Path to the YAML file

    Returns:
        Parsed YAML content as a dictionary

    Raises:
        ConfigurationError: If file cannot be loaded or parsed
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)

        if content is None:
            raise ConfigurationError(f"YAML file is empty: {file_path}")

        if not isinstance(content, dict):
            raise ConfigurationError(
                f"YAML file must contain a dictionary at root level: {file_path}"
            )

        return content

    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML file {file_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read file {file_path}: {e}") from e


def load_config() -> dict[str, Any]:
    """
    Load the main configuration file (config.yaml).

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If config cannot be loaded
    """
    config_path = get_config_path("config.yaml")
    config = load_yaml_file(config_path)

    missing_keys = [key for key in REQUIRED_SECTIONS if key not in config]
    if missing_keys:
        raise ConfigurationError(
            f"Missing required configuration sections: {', '.join(missing_keys)}"
        )

    return config


def merge_with_env(config: dict[str, Any]) -> dict[str, Any]:
    """
    Merge configuration with environment variable overrides.

    Environment variables can override specific config values:
    - DATABASE_URL -> store.database_url
    - MAX_BATCH_OPS -> store.max_batch_ops
    - API_PORT -> api.port
    - LOG_LEVEL -> logging.level
    - ENVIRONMENT -> environment

    Args:
        config: Base configuration dictionary

    Returns:
        Configuration with environment overrides applied

    Raises:
        ConfigurationError: If a numeric override is not an integer
    """
    merged = copy.deepcopy(config)

    if database_url := os.getenv("DATABASE_URL"):
        merged.setdefault("store", {})["database_url"] = database_url

    if max_batch_ops := os.getenv("MAX_BATCH_OPS"):
        try:
            merged.setdefault("store", {})["max_batch_ops"] = int(max_batch_ops)
        except ValueError as e:
            raise ConfigurationError(f"MAX_BATCH_OPS must be an integer: {max_batch_ops}") from e

    if port := os.getenv("API_PORT"):
        try:
            merged.setdefault("api", {})["port"] = int(port)
        except ValueError as e:
            raise ConfigurationError(f"API_PORT must be an integer: {port}") from e

    if log_level := os.getenv("LOG_LEVEL"):
        merged.setdefault("logging", {})["level"] = log_level.upper()

    if environment := os.getenv("ENVIRONMENT"):
        merged["environment"] = environment

    return merged
