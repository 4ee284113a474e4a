"""
Centralized configuration manager.
Loads the YAML config and provides typed access with defaults.

    - Built-in defaults deep-merged under the YAML file
    - Schema validation for critical config fields
    - Reset support for testing
"""

import os
import copy
import yaml
import logging

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

_DEFAULTS = {
    "system": {
        "version": "1.0.0",
    },
    "recognition": {
        "k": 7,
        "feature_epsilon": 1e-5,
    },
    "stabilizer": {
        "window_size": 8,
        "stability_threshold": 0.7,
        "base_gap_ms": 900,
        "delete_gap_ms": 450,
        "repeat_gap_factor": 2,
        "auto_commit": True,
        "space_label": "Space",
        "delete_label": "Delete",
    },
    "storage": {
        "db_path": "data/samples.db",
        "export_file": "asl_dataset.json",
    },
    "capture": {
        "burst_count": 10,
        "burst_interval_ms": 100,
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "max_size_mb": 10,
        "backup_count": 3,
    },
}

# Schema: required sections and their expected types
_CONFIG_SCHEMA = {
    "recognition": {
        "k": int,
        "feature_epsilon": float,
    },
    "stabilizer": {
        "window_size": int,
        "stability_threshold": float,
        "base_gap_ms": float,
        "delete_gap_ms": float,
        "auto_commit": bool,
        "space_label": str,
        "delete_label": str,
    },
    "storage": {
        "db_path": str,
    },
    "capture": {
        "burst_count": int,
        "burst_interval_ms": float,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Singleton configuration manager."""

    _instance = None
    _data = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._data = _deep_merge({}, _DEFAULTS)
        return cls._instance

    def load(self, config_path=None):
        """Load configuration from a YAML file on top of the defaults."""
        config_path = config_path or os.path.join(_CONFIG_DIR, "config.yaml")

        try:
            with open(config_path, "r") as f:
                file_data = yaml.safe_load(f) or {}
            logger.info("Loaded config from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using defaults", config_path)
            file_data = {}

        if not isinstance(file_data, dict):
            logger.warning("Config root in %s is not a mapping, using defaults", config_path)
            file_data = {}

        self._data = _deep_merge(_DEFAULTS, file_data)
        self._validate()

        return self

    def _validate(self):
        """Validate critical config fields against schema."""
        warnings = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if not isinstance(section, dict):
                warnings.append(f"Section '{section_name}' should be a dict, got {type(section).__name__}")
                continue
            for field_name, expected_type in fields.items():
                if field_name in section:
                    value = section[field_name]
                    # Allow int where float is expected
                    if expected_type is float and isinstance(value, (int, float)) and not isinstance(value, bool):
                        continue
                    if expected_type is int and isinstance(value, bool):
                        warnings.append(f"{section_name}.{field_name}: expected int, got bool")
                        continue
                    if not isinstance(value, expected_type):
                        warnings.append(
                            f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                            f"got {type(value).__name__} ({value!r})"
                        )

        if warnings:
            for w in warnings:
                logger.warning("Config validation: %s", w)
        else:
            logger.debug("Config validation passed")
        return warnings

    def get(self, key_path: str, default=None):
        """Get nested config value using dot notation: 'stabilizer.window_size'."""
        keys = key_path.split(".")
        value = self._data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, key_path: str, value):
        """Override a nested config value (CLI flags)."""
        keys = key_path.split(".")
        section = self._data
        for key in keys[:-1]:
            section = section.setdefault(key, {})
        section[keys[-1]] = value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        return self._data.get(section, {})

    @property
    def recognition(self) -> dict:
        return self._data.get("recognition", {})

    @property
    def stabilizer(self) -> dict:
        return self._data.get("stabilizer", {})

    @property
    def storage(self) -> dict:
        return self._data.get("storage", {})

    @property
    def capture(self) -> dict:
        return self._data.get("capture", {})

    @property
    def base_dir(self) -> str:
        return _BASE_DIR

    def resolve_path(self, path: str) -> str:
        """Resolve a config-relative path against the project root."""
        if os.path.isabs(path) or path == ":memory:":
            return path
        return os.path.join(_BASE_DIR, path)

    @classmethod
    def reset(cls):
        """Reset singleton instance (for testing)."""
        cls._instance = None
        cls._data = {}
