"""Remote release management for services on SSH-reachable hosts.

This package provides the transport (``RemoteExecutor``), the per-service
operations (``ServiceUnit``, ``ReleaseStore``), the registry resolving
configured services and the status poller used by ``status --watch``.
"""

from deploydeck.deploy.executor import RemoteExecutor, SSHResult, stderr_empty
from deploydeck.deploy.failures import classify, describe
from deploydeck.deploy.poller import StatusPoller
from deploydeck.deploy.registry import DeploymentRegistry
from deploydeck.deploy.releases import ReleaseStore
from deploydeck.deploy.service import ServiceUnit
from deploydeck.deploy.unit import generate_unit

__all__ = [
    "DeploymentRegistry",
    "ReleaseStore",
    "RemoteExecutor",
    "SSHResult",
    "ServiceUnit",
    "StatusPoller",
    "classify",
    "describe",
    "generate_unit",
    "stderr_empty",
]
