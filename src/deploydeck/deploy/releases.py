"""Release directory management on the remote host.

Layout under a service directory::

    <service_dir>/
      current -> releases/<timestamp>     (symlink, may be absent)
      releases/
        <timestamp-1>/
        <timestamp-2>/

Release payloads are written by an external sync step; this module only
lists them, moves the ``current`` pointer and prunes old ones.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, TypeVar, overload

from deploydeck.deploy import scripts
from deploydeck.deploy.executor import SSHResult, stderr_empty
from deploydeck.deploy.failures import classify_error, describe
from deploydeck.lib.errors import DeploymentError, TransportError
from deploydeck.lib.logging_config import get_logger
from deploydeck.models.deployment import ReleaseEntry, validate_release_id

if TYPE_CHECKING:
    from deploydeck.deploy.service import ServiceUnit

logger = get_logger(__name__)

R = TypeVar("R")

CURRENT_MARK = "current"
PRUNED_PREFIX = "pruned "


def parse_release_listing(stdout: str) -> list[ReleaseEntry]:
    """Parse ``<name>|current|old`` lines into entries sorted by timestamp."""
    entries: list[ReleaseEntry] = []
    for line in stdout.strip().splitlines():
        line = line.strip()
        if not line:
            continue
        timestamp, _, status = line.rpartition("|")
        if not timestamp:
            logger.debug(f"Skipping malformed release line: {line!r}")
            continue
        entries.append(
            ReleaseEntry(timestamp=timestamp, current=status == CURRENT_MARK)
        )
    return sorted(entries, key=lambda entry: entry.timestamp)


def pruned_releases(result: SSHResult) -> list[str]:
    """Names of the releases a prune run reported as removed."""
    return [
        line[len(PRUNED_PREFIX) :]
        for line in result.stdout.splitlines()
        if line.startswith(PRUNED_PREFIX)
    ]


class ReleaseStore:
    """Timestamped releases of one service, backed by the remote filesystem.

    Nothing is cached locally: every call lists or mutates the remote
    directories afresh.
    """

    def __init__(self, service: ServiceUnit) -> None:
        """Bind the store to its owning service."""
        self.service = service

    @property
    def releases_dir(self) -> str:
        """Remote directory holding one sub-directory per release."""
        return f"{self.service.service_dir}/releases"

    @overload
    async def list(self) -> list[ReleaseEntry]: ...

    @overload
    async def list(self, map_fn: Callable[[ReleaseEntry], R]) -> list[R]: ...

    async def list(
        self, map_fn: Callable[[ReleaseEntry], R] | None = None
    ) -> list[ReleaseEntry] | list[R]:
        """List releases in ascending timestamp order.

        A missing releases directory yields an empty list.

        Args:
            map_fn: Optional mapping applied to each entry after sorting

        Returns:
            Entries (or mapped values) sorted by timestamp

        Raises:
            TransportError: If the remote invocation fails
        """
        result = await self.service.executor.ssh(
            self.service.host, scripts.list_releases(self.releases_dir)
        )
        entries = parse_release_listing(result.stdout)
        logger.debug(f"{self.service.unit_name}: {len(entries)} release(s) found")
        if map_fn is None:
            return entries
        return [map_fn(entry) for entry in entries]

    async def switch(self, release_id: str) -> SSHResult:
        """Point ``current`` at a release and restart the service.

        Both steps run in one ``set -e`` script, so the restart is never
        attempted when the symlink could not be replaced.

        Args:
            release_id: Name of a directory under the releases root

        Returns:
            Result of the remote script

        Raises:
            DeploymentError: If the id is invalid, the release is missing,
                the service is locked or the remote script fails
        """
        try:
            validate_release_id(release_id)
        except ValueError as exc:
            raise DeploymentError(operation="switch", message=str(exc)) from exc

        script = scripts.switch_release(
            releases_dir=self.releases_dir,
            service_dir=self.service.service_dir,
            release_id=release_id,
            unit_name=self.service.unit_name,
            lock_timeout=self.service.lock_timeout,
        )
        logger.info(f"Switching {self.service.unit_name} to release {release_id}")

        try:
            return await self.service.executor.ssh(self.service.host, script)
        except TransportError as exc:
            kind = classify_error(exc)
            summary = describe(kind, self.service.host, self.service.label)
            detail = exc.stderr.strip()
            raise DeploymentError(
                operation="switch",
                message=f"{summary}: {detail}" if detail else summary,
            ) from exc

    async def prune(self, age_hours: int) -> SSHResult:
        """Remove non-current releases older than ``age_hours`` whole hours.

        The release ``current`` points to is never removed. A release whose
        age equals the threshold is kept.

        Args:
            age_hours: Age threshold in whole hours

        Returns:
            Result with one ``pruned <name>`` stdout line per removed release;
            success iff nothing was written to stderr

        Raises:
            ValueError: If age_hours is negative
        """
        if age_hours < 0:
            raise ValueError(f"age_hours must be >= 0, got {age_hours}")

        logger.info(
            f"Pruning releases of {self.service.unit_name} older than {age_hours}h"
        )
        result = await self.service.executor.test_ssh(
            self.service.host,
            scripts.prune_releases(self.releases_dir, age_hours),
            test=stderr_empty,
        )
        removed = pruned_releases(result)
        if removed:
            logger.info(f"Pruned {len(removed)} release(s): {', '.join(removed)}")
        return result
