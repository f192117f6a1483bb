"""Configuration loader for medoidkit.

This module handles loading configuration from multiple sources:
1. Default values (lowest priority)
2. User config file (~/.config/medoidkit/config.toml)
3. Project config file (./medoidkit.toml)
4. Environment variables (MEDOIDKIT_* prefix)
5. Programmatic overrides (highest priority)
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

import tomli_w

from .schema import MedoidkitConfig

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

# Default paths
USER_CONFIG_DIR = Path.home() / ".config" / "medoidkit"
USER_CONFIG_PATH = USER_CONFIG_DIR / "config.toml"
PROJECT_CONFIG_NAME = "medoidkit.toml"
ENV_PREFIX = "MEDOIDKIT_"

# Known section names (first level)
SECTIONS = {"kmedoids", "strategy", "logging"}


def _parse_env_value(value: str) -> Any:
    """Parse an environment variable value to appropriate Python type."""
    # Handle booleans
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    # Handle None
    if value.lower() in ("none", "null", ""):
        return None

    # Try numeric types
    try:
        if "." in value or "e" in value.lower():
            return float(value)
        return int(value)
    except ValueError:
        pass

    # Return as string
    return value


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class ConfigLoader:
    """Load configuration from multiple sources with priority handling."""

    def __init__(
        self,
        project_path: Optional[Path] = None,
        user_config_path: Optional[Path] = None,
    ):
        """Initialize the configuration loader.

        Args:
            project_path: Directory containing medoidkit.toml
            user_config_path: Optional override for user config path
        """
        self.project_path = Path(project_path) if project_path else None
        self.user_config_path = Path(user_config_path) if user_config_path else USER_CONFIG_PATH

    @property
    def project_config_path(self) -> Optional[Path]:
        if self.project_path is None:
            return None
        return self.project_path / PROJECT_CONFIG_NAME

    def load(self, overrides: Optional[dict[str, Any]] = None) -> MedoidkitConfig:
        """Load configuration from all sources with priority handling.

        Priority (highest to lowest):
        1. Programmatic overrides
        2. Environment variables (MEDOIDKIT_*)
        3. Project config (medoidkit.toml)
        4. User config (~/.config/medoidkit/config.toml)
        5. Default values

        Args:
            overrides: Nested dictionary applied last

        Returns:
            Merged MedoidkitConfig instance
        """
        config_dict: dict[str, Any] = {}

        if self.user_config_path.exists():
            user_data = self._load_toml(self.user_config_path)
            if user_data:
                config_dict = _deep_merge(config_dict, user_data)
                logger.debug(f"Loaded user config from {self.user_config_path}")

        project_config_path = self.project_config_path
        if project_config_path is not None and project_config_path.exists():
            project_data = self._load_toml(project_config_path)
            if project_data:
                config_dict = _deep_merge(config_dict, project_data)
                logger.debug(f"Loaded project config from {project_config_path}")

        env_overrides = self._load_env_vars()
        if env_overrides:
            config_dict = _deep_merge(config_dict, env_overrides)
            logger.debug("Applied environment variable overrides")

        if overrides:
            config_dict = _deep_merge(config_dict, overrides)

        return MedoidkitConfig.from_dict(config_dict)

    def _load_toml(self, path: Path) -> Optional[dict[str, Any]]:
        """Load a TOML configuration file.

        Args:
            path: Path to the TOML file

        Returns:
            Parsed configuration dict or None if the file cannot be parsed
        """
        try:
            with open(path, "rb") as f:
                return tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Failed to load TOML config from {path}: {e}")
            return None

    def _load_env_vars(self) -> dict[str, Any]:
        """Load configuration from environment variables.

        Environment variables are prefixed with MEDOIDKIT_ and use underscores
        to separate the section from the key. For example:
        - MEDOIDKIT_KMEDOIDS_TOLERANCE -> kmedoids.tolerance
        - MEDOIDKIT_LOGGING_LEVEL -> logging.level

        Returns:
            Configuration dictionary from environment variables
        """
        result: dict[str, Any] = {}

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue

            parts = key[len(ENV_PREFIX) :].lower().split("_")
            nested = self._build_nested_dict(parts, _parse_env_value(value))
            result = _deep_merge(result, nested)

        return result

    def _build_nested_dict(self, parts: list[str], value: Any) -> dict[str, Any]:
        """Build a nested dictionary from key parts.

        The first part names the section; the remaining parts are joined back
        with underscores to form the key (e.g. ``pairwise_cache_limit``).

        Args:
            parts: List of key parts from splitting on underscores
            value: Value to set

        Returns:
            Nested dictionary, empty for unknown sections
        """
        if not parts or parts[0] not in SECTIONS:
            logger.debug(f"Ignoring unknown configuration variable: {'_'.join(parts)}")
            return {}

        section = parts[0]
        remaining = parts[1:]
        if not remaining:
            return {}

        return {section: {"_".join(remaining): value}}

    def save_project_config(self, config: MedoidkitConfig) -> Path:
        """Save configuration to the project config file.

        Args:
            config: Configuration to save

        Returns:
            Path written to
        """
        config_path = self.project_config_path
        if config_path is None:
            raise ValueError("No project path set")

        self._save_toml(config_path, config.to_dict())
        logger.info(f"Saved project config to {config_path}")
        return config_path

    def save_user_config(self, config: MedoidkitConfig) -> Path:
        """Save configuration to the user config file.

        Args:
            config: Configuration to save

        Returns:
            Path written to
        """
        self._save_toml(self.user_config_path, config.to_dict())
        logger.info(f"Saved user config to {self.user_config_path}")
        return self.user_config_path

    def _save_toml(self, path: Path, data: dict[str, Any]) -> None:
        """Save configuration as TOML.

        Args:
            path: Path to save to
            data: Configuration data
        """
        # TOML has no null, so None values are dropped
        filtered_data = self._filter_none_values(data)

        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(path, "wb") as f:
                tomli_w.dump(filtered_data, f)
        except OSError as e:
            logger.error(f"Failed to save config to {path}: {e}")
            raise

    def _filter_none_values(self, data: dict[str, Any]) -> dict[str, Any]:
        """Recursively filter out None values from a dictionary.

        Args:
            data: Dictionary to filter

        Returns:
            Filtered dictionary without None values
        """
        result = {}
        for key, value in data.items():
            if value is None:
                continue
            elif isinstance(value, dict):
                result[key] = self._filter_none_values(value)
            else:
                result[key] = value
        return result


def load_config(
    project_path: Optional[Path] = None,
    user_config_path: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> MedoidkitConfig:
    """Load medoidkit configuration from all sources.

    This is the main entry point for loading configuration.

    Args:
        project_path: Optional directory containing medoidkit.toml
        user_config_path: Optional override for user config path
        overrides: Optional nested dictionary applied last

    Returns:
        Merged MedoidkitConfig instance
    """
    loader = ConfigLoader(project_path, user_config_path)
    return loader.load(overrides)


def get_default_config() -> MedoidkitConfig:
    """Get a MedoidkitConfig with all default values.

    Returns:
        MedoidkitConfig with defaults
    """
    return MedoidkitConfig()
