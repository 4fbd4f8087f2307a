"""Pydantic models for DeployDeck configuration and remote state."""

from deploydeck.models.deployment import (
    DeployConfig,
    ExecSpec,
    FailureKind,
    ReleaseEntry,
    RemoteTarget,
    ServiceDescriptor,
    ServiceStatus,
    SSHOptions,
    SyncMap,
)

__all__ = [
    "DeployConfig",
    "ExecSpec",
    "FailureKind",
    "ReleaseEntry",
    "RemoteTarget",
    "SSHOptions",
    "ServiceDescriptor",
    "ServiceStatus",
    "SyncMap",
]
