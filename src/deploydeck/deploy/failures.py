"""Typed classification of failed remote invocations.

Callers render different messages for an unreachable host, a service that
was never installed, a service locked by another operator and any other
failure. The classification looks at the exit status first and falls back
to well-known diagnostics written by ssh, coreutils and systemctl.
"""

from __future__ import annotations

from deploydeck.deploy.executor import SSHResult
from deploydeck.lib.errors import TransportError
from deploydeck.models.deployment import FailureKind

# ssh exits with 255 when the connection itself failed
SSH_TRANSPORT_EXIT = 255
# Exit status of remote scripts that could not acquire the service lock
LOCKED_EXIT = 75
LOCKED_MESSAGE = "another deployment is in progress"

UNREACHABLE_PATTERNS = (
    "could not resolve hostname",
    "connection refused",
    "connection timed out",
    "operation timed out",
    "timed out after",
    "no route to host",
    "network is unreachable",
    "connection closed by",
    "host key verification failed",
    "permission denied (publickey",
    "no such file or directory: 'ssh'",
)
NOT_INSTALLED_PATTERNS = (
    "no such file or directory",
    "could not be found",
    "not-found",
)


def classify(result: SSHResult) -> FailureKind | None:
    """Classify a result; returns None when the result is a success."""
    if result.success:
        return None
    return classify_output(result.stderr, result.exit_code)


def classify_error(error: TransportError) -> FailureKind:
    """Classify a raised transport error."""
    return classify_output(error.stderr, error.exit_code)


def classify_output(stderr: str, exit_code: int | None) -> FailureKind:
    """Classify raw stderr text plus exit status."""
    text = stderr.lower()

    if exit_code == LOCKED_EXIT or LOCKED_MESSAGE in text:
        return FailureKind.LOCKED
    if exit_code in (SSH_TRANSPORT_EXIT, None) or any(
        pattern in text for pattern in UNREACHABLE_PATTERNS
    ):
        return FailureKind.UNREACHABLE
    if any(pattern in text for pattern in NOT_INSTALLED_PATTERNS):
        return FailureKind.NOT_INSTALLED
    return FailureKind.FAILED


def describe(kind: FailureKind, host: str, service_label: str) -> str:
    """Return the user-facing sentence for a failure classification."""
    if kind == FailureKind.UNREACHABLE:
        return f"Could not connect to {host}"
    if kind == FailureKind.NOT_INSTALLED:
        return f"Service '{service_label}' is not installed on {host}"
    if kind == FailureKind.LOCKED:
        return f"Service '{service_label}' is locked by another deployment"
    return f"Operation on '{service_label}' failed on {host}"
