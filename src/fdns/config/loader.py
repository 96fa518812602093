"""Configuration loader for the resolver.

This module handles loading configuration from files and environment
variables, with validation.
"""

import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .schema import (
    FDNSConfig,
    LoggingConfig,
    ResolverConfig,
    WebConfig,
    create_default_config,
)

ENV_PREFIX = "FDNS_"


class ConfigLoader:
    """Configuration loader merging defaults, a file and the environment."""

    def __init__(self, config_file: Optional[str] = None, env_prefix: str = ENV_PREFIX):
        """Initialize configuration loader.

        Args:
            config_file: Path to configuration file (YAML or JSON)
            env_prefix: Prefix of environment variable overrides
        """
        self.config_file = config_file
        self.env_prefix = env_prefix
        self._config: Optional[FDNSConfig] = None

    def load_config(self) -> FDNSConfig:
        """Load configuration from file and environment variables.

        Returns:
            Loaded and validated configuration

        Raises:
            FileNotFoundError: If config file is specified but not found
            ValueError: If configuration is invalid
            yaml.YAMLError: If YAML parsing fails
            json.JSONDecodeError: If JSON parsing fails
        """
        config_dict = asdict(create_default_config())

        if self.config_file:
            file_config = self._load_from_file(self.config_file)
            config_dict = self._merge_configs(config_dict, file_config)

        config_dict = self._apply_env_overrides(config_dict)

        self._config = self._dict_to_config(config_dict)
        return self._config

    def get_config(self) -> Optional[FDNSConfig]:
        """Get current configuration."""
        return self._config

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file.

        Raises:
            FileNotFoundError: If file is not found
            ValueError: If file format is not supported
            yaml.YAMLError: If YAML parsing fails
            json.JSONDecodeError: If JSON parsing fails
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(path, "r", encoding="utf-8") as f:
            content = f.read()

        if path.suffix.lower() in [".yaml", ".yml"]:
            result = yaml.safe_load(content)
        elif path.suffix.lower() == ".json":
            result = json.loads(content)
        else:
            # Try YAML first, then JSON
            try:
                result = yaml.safe_load(content)
            except yaml.YAMLError:
                try:
                    result = json.loads(content)
                except json.JSONDecodeError:
                    raise ValueError(f"Unsupported file format: {file_path}")

        return result if isinstance(result, dict) else {}

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> FDNSConfig:
        """Convert dictionary to configuration object.

        Raises:
            ValueError: If configuration is invalid or has unknown keys
        """
        try:
            return FDNSConfig(
                resolver=ResolverConfig(**config_dict.get("resolver") or {}),
                logging=LoggingConfig(**config_dict.get("logging") or {}),
                web=WebConfig(**config_dict.get("web") or {}),
            )
        except TypeError as e:
            raise ValueError(f"Invalid configuration: {e}")

    def _merge_configs(
        self, base: Dict[str, Any], override: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Merge two configuration dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration.

        Environment variables use the format FDNS_<SECTION>_<KEY>
        For example: FDNS_RESOLVER_DEFAULT_TIMEOUT_MS=500
        """
        for env_key, env_value in os.environ.items():
            if not env_key.startswith(self.env_prefix):
                continue

            key_parts = env_key[len(self.env_prefix) :].lower().split("_")
            if len(key_parts) < 2:
                continue

            section = key_parts[0]
            config_key = "_".join(key_parts[1:])

            if not isinstance(config_dict.get(section), dict):
                continue

            current = config_dict[section].get(config_key)
            config_dict[section][config_key] = self._convert_env_value(
                env_value, current
            )

        return config_dict

    def _convert_env_value(self, value: str, current: Any) -> Any:
        """Convert environment variable value to the type of the value it replaces."""
        if isinstance(current, bool):
            lowered = value.strip().lower()
            if lowered in ("true", "yes", "1", "on"):
                return True
            if lowered in ("false", "no", "0", "off"):
                return False
            return value

        if isinstance(current, int):
            try:
                return int(value)
            except ValueError:
                return value

        if isinstance(current, list):
            return [item.strip() for item in value.split(",") if item.strip()]

        return value


def load_config_from_file(config_file: Optional[str] = None) -> FDNSConfig:
    """Convenience function to load configuration."""
    return ConfigLoader(config_file).load_config()
