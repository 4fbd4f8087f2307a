"""Shared utilities and error handling for DeployDeck."""

from deploydeck.lib.errors import (
    ConfigError,
    DeployDeckError,
    DeploymentError,
    ServiceNotFoundError,
    TransportError,
)
from deploydeck.lib.errors import (
    FileNotFoundError as DeployDeckFileNotFoundError,
)

__all__ = [
    "ConfigError",
    "DeployDeckError",
    "DeployDeckFileNotFoundError",
    "DeploymentError",
    "ServiceNotFoundError",
    "TransportError",
]
