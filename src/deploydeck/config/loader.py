"""Configuration loader for DeployDeck projects.

This module provides the ConfigLoader class for loading, parsing, and
validating deployment configuration from YAML (or JSON) files.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from deploydeck.config.defaults import DEFAULT_CONFIG_FILE, ENV_FILE_NAME, ENV_VAR_MAP
from deploydeck.config.env_loader import load_env_file, substitute_env_vars
from deploydeck.config.validator import flatten_pydantic_errors
from deploydeck.lib.errors import ConfigError, FileNotFoundError
from deploydeck.lib.logging_config import get_logger
from deploydeck.models.deployment import DeployConfig

logger = get_logger(__name__)

_INT_FIELDS = {"keepHours", "connectTimeout"}


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _parse_env_value(key: str, value: str) -> Any:
    """Parse an override value to the type of its field.

    Raises:
        ValueError: If value cannot be parsed
    """
    if key in _INT_FIELDS:
        return int(value)
    return value


def _apply_env_overrides(
    data: dict[str, Any], env_vars: os._Environ[str] | dict[str, str]
) -> None:
    """Apply DEPLOYDECK_* overrides to raw config data (in-place).

    Invalid values are logged and ignored, leaving the file value in place.
    """
    for path, env_var_name in ENV_VAR_MAP.items():
        if env_var_name not in env_vars:
            continue

        *parents, key = path
        try:
            value = _parse_env_value(key, env_vars[env_var_name])
        except ValueError:
            logger.warning(
                f"Ignoring {env_var_name}={env_vars[env_var_name]!r}: "
                "not a valid integer"
            )
            continue

        section = data
        for parent in parents:
            child = section.get(parent)
            if not isinstance(child, dict):
                child = {}
                section[parent] = child
            section = child

        # Drop the snake_case spelling so the override is not shadowed
        section.pop(_snake_case(key), None)
        section[key] = value
        logger.debug(f"Applied {env_var_name} override to {'.'.join(path)}")


def _read_yaml_with_env_substitution(path: Path) -> dict[str, Any] | None:
    """Read a YAML file with environment variable substitution.

    Raises:
        OSError: If file cannot be read
        yaml.YAMLError: If YAML parsing fails
        ConfigError: If env var substitution fails
    """
    raw_text = path.read_text(encoding="utf-8")
    substituted = substitute_env_vars(raw_text)
    content = yaml.safe_load(substituted)
    return content if content else None


class ConfigLoader:
    """Loads and validates deployment configuration files.

    This class handles:
    - Loading a ``.env`` file next to the configuration file
    - Environment variable substitution in the raw file text
    - DEPLOYDECK_* environment overrides
    - Converting validation errors into human-readable messages
    """

    def load_deploy_config(self, file_path: str = DEFAULT_CONFIG_FILE) -> DeployConfig:
        """Load and validate a deployment configuration.

        This method:
        1. Loads ``.env`` from the configuration file's directory
        2. Reads the file with env var substitution (single pass)
        3. Applies DEPLOYDECK_* environment overrides
        4. Validates against the DeployConfig schema

        Configuration precedence (highest to lowest):
        1. DEPLOYDECK_* environment variables
        2. Configuration file values
        3. Model defaults

        Args:
            file_path: Path to deploy.yaml (or a JSON file)

        Returns:
            Validated DeployConfig instance

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigError: If parsing, substitution or validation fails
        """
        path = Path(file_path)
        load_env_file(path.parent / ENV_FILE_NAME)

        try:
            raw_config = _read_yaml_with_env_substitution(path)
        except OSError as e:
            raise FileNotFoundError(
                file_path,
                f"Configuration file not found at {file_path}. "
                f"Please ensure the file exists at this path.",
            ) from e
        except yaml.YAMLError as e:
            raise ConfigError(
                "yaml_parse",
                f"Failed to parse YAML file {file_path}: {str(e)}",
            ) from e

        if raw_config is None:
            raw_config = {}
        if not isinstance(raw_config, dict):
            raise ConfigError(
                "root",
                f"Configuration in {file_path} must be a mapping, "
                f"got {type(raw_config).__name__}",
            )

        _apply_env_overrides(raw_config, os.environ)

        try:
            config = DeployConfig.model_validate(raw_config)
        except PydanticValidationError as e:
            error_text = "\n".join(flatten_pydantic_errors(e))
            raise ConfigError(
                "deploy_validation",
                f"Invalid deployment configuration in {file_path}:\n{error_text}",
            ) from e

        logger.debug(
            f"Loaded configuration for project '{config.project}' "
            f"({len(config.services)} service(s)) from {file_path}"
        )
        return config


def load_deploy_config(file_path: str = DEFAULT_CONFIG_FILE) -> DeployConfig:
    """One-call helper for CLI commands."""
    return ConfigLoader().load_deploy_config(file_path)
