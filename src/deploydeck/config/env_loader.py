"""Environment variable handling for deployment configuration.

Supports ``${VAR}`` and ``${VAR:-default}`` references inside configuration
text, and loading of ``.env`` files through python-dotenv.
"""

import os
import re
from pathlib import Path

from dotenv import load_dotenv

from deploydeck.lib.errors import ConfigError
from deploydeck.lib.logging_config import get_logger

logger = get_logger(__name__)

# ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(
    r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}"
)


def get_env_var(name: str, default: str | None = None) -> str | None:
    """Return an environment variable, or ``default`` when unset."""
    return os.environ.get(name, default)


def substitute_env_vars(text: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` references in text.

    Args:
        text: Raw configuration text

    Returns:
        Text with every reference replaced

    Raises:
        ConfigError: If a referenced variable is unset and has no default
    """

    def replace(match: re.Match[str]) -> str:
        name = match.group("name")
        value = get_env_var(name)
        if value is not None:
            return value
        default = match.group("default")
        if default is not None:
            return default
        raise ConfigError(
            name,
            f"Environment variable '{name}' is not set. "
            f"Set it in the environment or a .env file, "
            f"or use ${{{name}:-default}}.",
        )

    return ENV_VAR_PATTERN.sub(replace, text)


def load_env_file(path: str | Path) -> bool:
    """Load a ``.env`` file into the process environment.

    Variables already present in the environment are not overridden.

    Returns:
        True if the file existed and was loaded
    """
    env_path = Path(path)
    if not env_path.is_file():
        return False
    logger.debug(f"Loading environment from {env_path}")
    return load_dotenv(env_path, override=False)
