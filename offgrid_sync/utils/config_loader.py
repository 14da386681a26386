"""Configuration loader for the offgrid sync vault."""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml
from pydantic import ValidationError

from offgrid_sync.models.config import AppConfig

log = structlog.stdlib.get_logger()

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent / "config"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class ConfigLoader:
    """Loads and validates vault configuration from YAML files and environment variables."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize the ConfigLoader.

        Args:
            config_dir: Directory holding <env>.yaml files (defaults to ./config
                next to the package)
        """
        self.config_dir = config_dir or DEFAULT_CONFIG_DIR
        self.env_var_pattern = re.compile(r"\$\{([^}]+)\}")

    def load_config(self, config_path: Optional[str] = None) -> AppConfig:
        """Load configuration from YAML file with environment variable overrides.

        An explicit ``config_path`` must exist. Without one, the file for
        ``OFFGRID_ENV`` (or default.yaml) is used when present; otherwise the
        configuration comes from OFFGRID_* environment variables and defaults.

        Args:
            config_path: Path to the configuration YAML file

        Returns:
            AppConfig: Validated application configuration

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid
        """
        if config_path is None:
            config_path = self._get_default_config_path()

        if config_path is None:
            log.info("no_configuration_file_using_environment")
            config_dict: Dict[str, Any] = {}
        else:
            log.info("loading_configuration", config_path=config_path)
            config_dict = self._substitute_env_vars(self._load_yaml_file(config_path))

        try:
            app_config = AppConfig(**config_dict)
            log.info("configuration_loaded_successfully")
            return app_config
        except ValidationError as e:
            log.error("configuration_validation_failed", error=str(e))
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

    def _get_default_config_path(self) -> Optional[str]:
        """Get the configuration file for the current environment, if any.

        Returns:
            Path to the configuration file, or None when none exists
        """
        env = os.getenv("OFFGRID_ENV", "default")
        config_file = self.config_dir / f"{env}.yaml"

        if not config_file.exists():
            config_file = self.config_dir / "default.yaml"

        if not config_file.exists():
            return None

        return str(config_file)

    def _load_yaml_file(self, config_path: str) -> Dict[str, Any]:
        """Load YAML configuration file.

        Args:
            config_path: Path to the YAML file

        Returns:
            Dict containing the configuration

        Raises:
            ConfigurationError: If file cannot be read or parsed
        """
        try:
            with open(config_path, "r") as f:
                config_dict = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Configuration file not found: {config_path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file {config_path}: {e}") from e

        if config_dict is None:
            raise ConfigurationError(f"Configuration file is empty: {config_path}")
        if not isinstance(config_dict, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")

        log.debug("yaml_file_loaded", config_path=config_path)
        return config_dict

    def _substitute_env_vars(self, config: Any) -> Any:
        """Recursively substitute ${VAR_NAME} references in configuration values."""
        if isinstance(config, dict):
            return {key: self._substitute_env_vars(value) for key, value in config.items()}
        elif isinstance(config, list):
            return [self._substitute_env_vars(item) for item in config]
        elif isinstance(config, str):
            return self._substitute_env_var_in_string(config)
        else:
            return config

    def _substitute_env_var_in_string(self, value: str) -> str:
        """Substitute environment variables in a string.

        Raises:
            ConfigurationError: If a referenced environment variable is not set
        """
        for var_name in self.env_var_pattern.findall(value):
            env_value = os.getenv(var_name)
            if env_value is None:
                raise ConfigurationError(
                    f"Required environment variable not set: {var_name}. "
                    f"Please set {var_name} in your environment or .env file."
                )
            value = value.replace(f"${{{var_name}}}", env_value)

        return value

    def validate_config(self, config: AppConfig) -> list[str]:
        """Validate configuration and return any warnings.

        Args:
            config: Application configuration to validate

        Returns:
            List of warning messages (empty if no warnings)
        """
        warnings = []

        quota = config.quota
        if quota.capacity_bytes is not None and quota.capacity_bytes < quota.unit_cost_bytes:
            warnings.append(
                f"quota.capacity_bytes ({quota.capacity_bytes}) is smaller than one record "
                f"(unit_cost_bytes={quota.unit_cost_bytes}); no record can be downloaded"
            )

        if config.remote.timeout_seconds * (config.remote.max_retries + 1) > 30:
            warnings.append(
                "remote timeout and retries allow a catalog fetch to block for over 30 seconds"
            )

        if warnings:
            log.warning("configuration_validation_warnings", warnings=warnings)

        return warnings
