"""
Configuration management for TrackSense.

Loads and validates configuration from YAML files with environment
variable interpolation support. Values missing from a file are filled
in from get_default_config().
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from tracksense.core.models import MAX_BEATS, MAX_BPM, MIN_BPM
from tracksense.utils.errors import ConfigurationError


CONFIG_SCHEMA: Dict[str, Dict[str, Any]] = {
    "audio.max_file_size": {"type": int},
    "audio.fetch_timeout": {"type": (int, float)},
    "audio.supported_formats": {"type": list},
    "analysis.parallel_stages": {"type": bool},
    "analysis.max_beats": {"type": int},
    "analysis.bpm_range": {"type": list},
    "analysis.analysis_seconds": {"type": (int, float)},
    "analysis.key_max_windows": {"type": int},
    "logging.level": {"type": str},
    "logging.format": {"type": str},
    "performance.max_workers": {"type": int},
}


class ConfigManager:
    """
    Manages application configuration loaded from YAML files.

    Features:
    - YAML configuration loading
    - Environment variable interpolation (${VAR_NAME})
    - Nested key access with dot notation
    - Schema validation
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        self._config: Dict[str, Any] = config_dict or {}
        self._env_pattern = re.compile(r'\$\{([^}]+)\}')

    @classmethod
    def from_file(cls, file_path: Path) -> "ConfigManager":
        """
        Create ConfigManager from YAML file.

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {file_path}",
                config_key=str(file_path)
            )

        try:
            with open(file_path, 'r') as f:
                config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {e}",
                config_key=str(file_path)
            )

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                f"Configuration root must be a mapping: {file_path}",
                config_key=str(file_path)
            )

        manager = cls(config_dict)
        manager._interpolate_env_vars()
        return manager

    def _interpolate_env_vars(self) -> None:
        """Replace ${ENV_VAR} patterns with environment variable values."""
        self._config = self._interpolate(self._config)

    def _interpolate(self, value: Any) -> Any:
        """Recursively interpolate environment variables in nested values."""
        if isinstance(value, dict):
            return {k: self._interpolate(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._interpolate(item) for item in value]
        if isinstance(value, str):
            return self._interpolate_string(value)
        return value

    def _interpolate_string(self, s: str) -> str:
        """Replace ${ENV_VAR} with environment variable value."""
        def replace(match: re.Match) -> str:
            value = os.environ.get(match.group(1))
            if value is None:
                return match.group(0)  # Keep original if not found
            return value

        return self._env_pattern.sub(replace, s)

    def get(
        self,
        key: str,
        default: Any = None,
        required: bool = False
    ) -> Any:
        """
        Get configuration value using dot notation.

        Example:
            config.get("analysis.max_beats", default=500)
            config.get("audio.fetch_timeout", required=True)
        """
        value = self._config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                if required:
                    raise ConfigurationError(
                        f"Required configuration key not found: {key}",
                        config_key=key
                    )
                return default

        return value

    def get_section(self, key: str) -> Dict[str, Any]:
        """Get an entire configuration section (empty dict if not found)."""
        value = self.get(key, default={})
        if not isinstance(value, dict):
            return {}
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation."""
        keys = key.split('.')
        current = self._config

        for k in keys[:-1]:
            if k not in current:
                current[k] = {}
            current = current[k]

        current[keys[-1]] = value

    def merge_defaults(self, defaults: Dict[str, Any]) -> None:
        """Fill in keys missing from the loaded config with ``defaults``."""
        self._config = _deep_merge(copy.deepcopy(defaults), self._config)

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self._config)

    def validate(self, schema: Dict[str, Any]) -> None:
        """
        Validate configuration against a schema.

        Schema format:
            {
                "analysis.max_beats": {"type": int, "required": True},
            }

        Raises:
            ConfigurationError: If validation fails
        """
        for key, rules in schema.items():
            value = self.get(key)
            expected_type = rules.get("type")

            if value is None:
                if rules.get("required", False):
                    raise ConfigurationError(
                        f"Required configuration missing: {key}",
                        config_key=key
                    )
                continue

            # bool is an int subclass; reject it for numeric keys
            if expected_type is not bool and isinstance(value, bool):
                raise ConfigurationError(
                    f"Invalid type for {key}: got bool",
                    config_key=key
                )

            if expected_type and not isinstance(value, expected_type):
                raise ConfigurationError(
                    f"Invalid type for {key}: got {type(value).__name__}",
                    config_key=key
                )

        bpm_range = self.get("analysis.bpm_range")
        if bpm_range is not None:
            if len(bpm_range) != 2 or not MIN_BPM <= bpm_range[0] < bpm_range[1] <= MAX_BPM:
                raise ConfigurationError(
                    f"analysis.bpm_range must be [min, max] with "
                    f"{MIN_BPM} <= min < max <= {MAX_BPM}, got {bpm_range}",
                    config_key="analysis.bpm_range"
                )

        max_beats = self.get("analysis.max_beats")
        if isinstance(max_beats, int) and not 1 <= max_beats <= MAX_BEATS:
            raise ConfigurationError(
                f"analysis.max_beats must be in [1, {MAX_BEATS}], got {max_beats}",
                config_key="analysis.max_beats"
            )


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from file or return defaults.

    Args:
        config_path: Optional path to config file.
                    If None, tries "config/config.yaml" then "config.yaml"

    Returns:
        Dict[str, Any]: Validated configuration dictionary
    """
    if config_path is None:
        default_paths = [
            Path("config/config.yaml"),
            Path("config.yaml"),
        ]

        for path in default_paths:
            if path.exists():
                config_path = str(path)
                break

    if config_path is None:
        return get_default_config()

    manager = ConfigManager.from_file(Path(config_path))
    manager.merge_defaults(get_default_config())
    manager.validate(CONFIG_SCHEMA)
    return manager.to_dict()


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "audio": {
            "supported_formats": [".wav", ".aiff", ".aif", ".mp3", ".flac", ".ogg"],
            "max_file_size": 104857600,  # 100MB
            "fetch_timeout": 30.0,
        },
        "analysis": {
            "parallel_stages": False,
            "max_beats": 500,
            "bpm_range": [60, 200],
            "analysis_seconds": 10.0,
            "key_max_windows": 20,
        },
        "logging": {
            "level": "INFO",
            "format": "text",
            "file": None,
        },
        "performance": {
            "max_workers": 4,
        },
    }
