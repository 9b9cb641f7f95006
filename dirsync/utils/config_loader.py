"""Configuration loader for directory change polling."""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml
from pydantic import ValidationError

from dirsync.exceptions import DirSyncError
from dirsync.models.config import AppConfig

log = structlog.stdlib.get_logger()

CONFIG_ENV_VAR = "DIRSYNC_ENV"


class ConfigurationError(DirSyncError):
    """Raised when configuration is invalid or missing."""

    pass


class ConfigLoader:
    """Loads and validates application configuration from YAML files and environment variables."""

    def __init__(self, config_dir: str | Path | None = None) -> None:
        """
        Initialize the ConfigLoader.

        Args:
            config_dir: Directory holding ``<env>.yaml`` files; defaults to the
                        project's ``config/`` directory
        """
        self.env_var_pattern = re.compile(r"\$\{([^}]+)\}")
        self.config_dir = (
            Path(config_dir) if config_dir is not None else Path(__file__).parent.parent.parent / "config"
        )

    def load_config(self, config_path: Optional[str] = None) -> AppConfig:
        """Load configuration from a YAML file with environment variable substitution.

        Values written as ``${VAR}`` are replaced from the environment before
        validation. Settings not present in the file still fall back to
        ``DIRSYNC_``-prefixed environment variables.

        Args:
            config_path: Path to the configuration YAML file. If None, uses
                         ``$DIRSYNC_ENV.yaml`` or ``default.yaml``

        Returns:
            AppConfig: Validated application configuration

        Raises:
            ConfigurationError: If the file is missing or invalid, or validation fails
        """
        if config_path is None:
            config_path = self._get_default_config_path()

        log.info("loading_configuration", config_path=config_path)

        config_dict = self._load_yaml_file(config_path)
        config_dict = self._substitute_env_vars(config_dict)

        try:
            app_config = AppConfig(**config_dict)
        except ValidationError as e:
            log.error("configuration_validation_failed", error=str(e))
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        log.info(
            "configuration_loaded_successfully",
            base_context=app_config.directory.base_context,
            object_classes=sorted(app_config.directory.object_classes),
        )
        return app_config

    def _get_default_config_path(self) -> str:
        """Pick ``<DIRSYNC_ENV>.yaml`` from the config directory, else ``default.yaml``."""
        env = os.getenv(CONFIG_ENV_VAR, "default")
        config_file = self.config_dir / f"{env}.yaml"

        if not config_file.exists():
            config_file = self.config_dir / "default.yaml"

        if not config_file.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_file}. "
                f"Please create config/default.yaml or set {CONFIG_ENV_VAR} to a valid environment."
            )

        return str(config_file)

    def _load_yaml_file(self, config_path: str) -> Dict[str, Any]:
        """Load a YAML configuration file.

        Raises:
            ConfigurationError: If the file cannot be read or parsed, or is not a mapping
        """
        try:
            with open(config_path, "r") as f:
                config_dict = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Configuration file not found: {config_path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to load configuration file {config_path}: {e}") from e

        if config_dict is None:
            raise ConfigurationError(f"Configuration file is empty: {config_path}")
        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping at the top level: {config_path}"
            )

        log.debug("yaml_file_loaded", config_path=config_path)
        return config_dict

    def _substitute_env_vars(self, config: Any) -> Any:
        """Recursively substitute ``${VAR_NAME}`` references in configuration values."""
        if isinstance(config, dict):
            return {key: self._substitute_env_vars(value) for key, value in config.items()}
        elif isinstance(config, list):
            return [self._substitute_env_vars(item) for item in config]
        elif isinstance(config, str):
            return self._substitute_env_var_in_string(config)
        else:
            return config

    def _substitute_env_var_in_string(self, value: str) -> str:
        """
        Substitute environment variables in a string.

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
        """Check a loaded configuration for settings that are valid but suspicious.

        Args:
            config: Application configuration to validate

        Returns:
            List of warning messages (empty if no warnings)
        """
        warnings = []

        if "=" not in config.directory.base_context:
            warnings.append(
                f"directory.base_context '{config.directory.base_context}' does not look like a DN"
            )

        for identity in config.directory.modifiers_names_to_filter_out:
            if "=" not in identity:
                warnings.append(
                    f"modifiers_names_to_filter_out entry '{identity}' does not look like a DN "
                    f"and will never match a modifier"
                )

        if config.directory.fixture_path and not Path(config.directory.fixture_path).exists():
            warnings.append(f"directory.fixture_path '{config.directory.fixture_path}' does not exist")

        if not config.directory.object_classes:
            warnings.append("directory.object_classes is empty; only ALL scans can run")

        directory_classes = [
            mapping.directory_object_class.lower()
            for mapping in config.directory.object_classes.values()
        ]
        if len(set(directory_classes)) != len(directory_classes):
            warnings.append(
                "Several object classes map to the same directory object class; "
                "their entries cannot be told apart in ALL scans"
            )

        if config.sync.retry_base_delay > config.sync.retry_max_delay:
            warnings.append(
                f"sync.retry_base_delay ({config.sync.retry_base_delay}) is greater than "
                f"sync.retry_max_delay ({config.sync.retry_max_delay})"
            )

        if warnings:
            log.warning("configuration_validation_warnings", warnings=warnings)

        return warnings
