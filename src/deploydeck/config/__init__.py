"""Configuration loading and validation for DeployDeck projects.

Main components:
- ConfigLoader: Load and validate deploy.yaml files
- load_deploy_config: One-call helper for CLI commands
- Environment variable substitution (${VAR} and ${VAR:-default})
"""

from deploydeck.config.env_loader import get_env_var, load_env_file, substitute_env_vars
from deploydeck.config.loader import ConfigLoader, load_deploy_config

__all__ = [
    "ConfigLoader",
    "load_deploy_config",
    "substitute_env_vars",
    "get_env_var",
    "load_env_file",
]
