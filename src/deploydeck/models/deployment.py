"""Pydantic models for deployment configuration and remote read models.

This module defines the configuration schema for a DeployDeck project
(remote target, SSH options, service descriptors) and the transient values
assembled from remote command output (releases, service status).
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

# Regex patterns for validation
SERVICE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")
RELEASE_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
ENV_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

DEFAULT_KEEP_HOURS = 48


class FailureKind(str, Enum):
    """Typed classification of a failed remote invocation."""

    UNREACHABLE = "unreachable"
    NOT_INSTALLED = "not_installed"
    LOCKED = "locked"
    FAILED = "failed"


def validate_release_id(release_id: str) -> str:
    """Validate that a release id is a single safe path component.

    Raises:
        ValueError: If the id is empty, contains a slash or is '.'/'..'
    """
    if release_id in (".", "..") or not RELEASE_ID_PATTERN.match(release_id):
        raise ValueError(
            f"Invalid release id: {release_id!r}. "
            "Must contain only letters, numbers, '.', '_', '-'"
        )
    return release_id


class SSHOptions(BaseModel):
    """Options for the ssh client used as remote shell transport.

    Attributes:
        connect_timeout: Seconds allowed for connection establishment
        strict_host_key_checking: Whether unknown host keys are rejected
        command_timeout: Optional deadline in seconds for a whole invocation
        extra_args: Additional ssh arguments inserted before the destination
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    connect_timeout: int = Field(
        default=5,
        ge=1,
        alias="connectTimeout",
        description="Connection timeout in seconds",
    )
    strict_host_key_checking: bool = Field(
        default=False,
        alias="strictHostKeyChecking",
        description="Reject unknown host keys",
    )
    command_timeout: float | None = Field(
        default=None,
        gt=0,
        alias="commandTimeout",
        description="Deadline for a whole remote invocation in seconds",
    )
    extra_args: list[str] = Field(
        default_factory=list,
        alias="extraArgs",
        description="Extra ssh arguments (e.g. ['-p', '2222'])",
    )


class RemoteTarget(BaseModel):
    """One remote endpoint for a deployment session.

    Attributes:
        host: SSH destination used verbatim, may embed a user (user@host)
        project: Namespace used to derive unique unit names
        base_dir: Absolute remote directory holding all service directories
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    host: str = Field(..., min_length=1, description="SSH destination")
    project: str = Field(..., min_length=1, description="Project namespace")
    base_dir: str = Field(..., alias="baseDir", description="Remote base directory")

    @field_validator("base_dir")
    @classmethod
    def validate_base_dir(cls, v: str) -> str:
        """Validate base_dir is absolute and normalize trailing slashes."""
        if not v.startswith("/"):
            raise ValueError(f"base_dir must be an absolute path, got: {v}")
        return v.rstrip("/") or "/"

    @property
    def ssh_user(self) -> str | None:
        """User part of the SSH destination, if one is embedded."""
        if "@" in self.host:
            return self.host.split("@", 1)[0] or None
        return None


class ExecSpec(BaseModel):
    """Start command of a service."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    command: str = Field(..., min_length=1, description="Executable to start")
    args: list[str] = Field(default_factory=list, description="Command arguments")


class SyncMap(BaseModel):
    """Local-to-remote sync mapping, consumed by an external sync step."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    from_path: str = Field(..., alias="from", description="Local source path")
    to_path: str = Field(..., alias="to", description="Remote destination path")


class ServiceDescriptor(BaseModel):
    """Static configuration of one deployable service.

    Attributes:
        name: Internal name, unique within the project
        label: Human-readable label
        exec: Start command and arguments
        sync: Sync mappings (declared only)
        requires: Services this one depends on; a leading '.' marks a
            service of the same project
        env: Environment variables for the unit
        user: Remote user the unit runs as (defaults to the SSH user)
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., description="Service name")
    label: str = Field(..., description="Human-readable label")
    exec: ExecSpec = Field(..., description="Start command")
    sync: list[SyncMap] = Field(default_factory=list, description="Sync mappings")
    requires: list[str] = Field(default_factory=list, description="Dependencies")
    env: dict[str, str] = Field(default_factory=dict, description="Environment")
    user: str | None = Field(default=None, description="Unit user")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate service name pattern."""
        if not SERVICE_NAME_PATTERN.match(v):
            raise ValueError(
                f"Invalid service name: {v}. "
                "Must contain only letters, numbers, '.', '_', '-'"
            )
        return v

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: dict[str, str]) -> dict[str, str]:
        """Validate environment variable names."""
        for key in v:
            if not ENV_NAME_PATTERN.match(key):
                raise ValueError(f"Invalid environment variable name: {key}")
        return v


class DeployConfig(RemoteTarget):
    """Main deployment configuration model.

    Attributes:
        keep_hours: Releases older than this many hours are pruned
        services: Ordered service descriptors; the first is the default
        ssh: SSH transport options
        lock_timeout: Seconds to wait for the remote service lock
    """

    keep_hours: Annotated[int, Field(ge=0)] = Field(
        default=DEFAULT_KEEP_HOURS,
        alias="keepHours",
        description="Prune threshold in hours",
    )
    services: list[ServiceDescriptor] = Field(
        ..., min_length=1, description="Configured services"
    )
    ssh: SSHOptions = Field(default_factory=SSHOptions, description="SSH options")
    lock_timeout: Annotated[int, Field(ge=0)] = Field(
        default=30,
        alias="lockTimeout",
        description="Seconds to wait for the remote service lock",
    )

    @model_validator(mode="after")
    def validate_unique_services(self) -> "DeployConfig":
        """Validate that service names are unique."""
        seen: set[str] = set()
        for service in self.services:
            if service.name in seen:
                raise ValueError(f"Duplicate service name: {service.name}")
            seen.add(service.name)
        return self

    @property
    def target(self) -> RemoteTarget:
        """The remote endpoint part of this configuration."""
        return RemoteTarget(
            host=self.host, project=self.project, base_dir=self.base_dir
        )


class ReleaseEntry(BaseModel):
    """One release directory as observed on the remote host."""

    model_config = ConfigDict(frozen=True)

    timestamp: str = Field(..., description="Release directory name")
    current: bool = Field(default=False, description="Pointed to by 'current'")


class ServiceStatus(BaseModel):
    """Freshly queried status of one service unit.

    Attributes:
        name: Unit name (<project>-<service>)
        installed: Whether the service directory exists remotely
        loaded: systemd load state ("loaded", "not-found", or "no")
        active: systemd active state ("active", "inactive", "failed", ...)
        location: Unit file location, or the service dir when unknown
        reason: Sub-state or error text, when available
        failure: Classification when the status query itself failed
        checked_at: When the status was queried
    """

    model_config = ConfigDict(frozen=True)

    name: str
    installed: bool
    loaded: str
    active: str
    location: str
    reason: str | None = None
    failure: FailureKind | None = None
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_active(self) -> bool:
        """Whether systemd reports the unit as active."""
        return self.active == "active"

    @property
    def reachable(self) -> bool:
        """Whether the host answered the status query."""
        return self.failure != FailureKind.UNREACHABLE
