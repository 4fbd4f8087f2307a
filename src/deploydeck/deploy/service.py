"""Service units: identity, directory layout and systemd lifecycle."""

from __future__ import annotations

import re

from deploydeck.deploy import scripts
from deploydeck.deploy.executor import (
    RemoteExecutor,
    SSHResult,
    SuccessPredicate,
    stderr_empty,
)
from deploydeck.deploy.failures import classify
from deploydeck.deploy.releases import ReleaseStore
from deploydeck.deploy.unit import generate_unit
from deploydeck.lib.logging_config import get_logger
from deploydeck.models.deployment import (
    RemoteTarget,
    ServiceDescriptor,
    ServiceStatus,
)

logger = get_logger(__name__)

STATUS_PATTERN = re.compile(
    r"Loaded: (?P<loaded>\w+) \((?P<location>[^)]+)\)"
    r".*Active: (?P<active>\w+)\s*(?:\((?P<reason>[^)]+)\))?",
    re.IGNORECASE | re.DOTALL,
)


def parse_status(output: str) -> dict[str, str | None] | None:
    """Extract load/active state from ``systemctl status`` output.

    Returns:
        Dict with loaded, location, active and reason keys, or None when the
        output does not match
    """
    match = STATUS_PATTERN.search(output)
    if match is None:
        return None
    return match.groupdict()


def guarded(guard: str) -> SuccessPredicate:
    """Predicate requiring the guard in stdout and an empty stderr."""

    def test(result: SSHResult) -> bool:
        return guard in result.stdout and not result.stderr

    return test


class ServiceUnit:
    """One deployable service on the remote host.

    Cheap to construct; holds references to the shared target, descriptor
    and executor only.
    """

    def __init__(
        self,
        target: RemoteTarget,
        descriptor: ServiceDescriptor,
        executor: RemoteExecutor,
        lock_timeout: int = 30,
    ) -> None:
        """Initialize the service.

        Args:
            target: Remote endpoint of the session
            descriptor: Static service configuration
            executor: Transport used for every remote command
            lock_timeout: Seconds mutating scripts wait for the service lock
        """
        self.target = target
        self.descriptor = descriptor
        self.executor = executor
        self.lock_timeout = lock_timeout

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def label(self) -> str:
        return self.descriptor.label

    @property
    def host(self) -> str:
        return self.target.host

    @property
    def unit_name(self) -> str:
        """Project-namespaced systemd unit name."""
        return f"{self.target.project}-{self.descriptor.name}"

    @property
    def service_dir(self) -> str:
        return f"{self.target.base_dir}/{self.descriptor.name}"

    @property
    def releases(self) -> ReleaseStore:
        return ReleaseStore(self)

    @property
    def releases_dir(self) -> str:
        return self.releases.releases_dir

    def render_unit(self) -> str:
        """Render the unit file this service installs."""
        return generate_unit(
            service=self.descriptor,
            base_dir=self.target.base_dir,
            project=self.target.project,
            user=self.descriptor.user or self.target.ssh_user,
        )

    async def status(self) -> ServiceStatus:
        """Query installed flag and systemd state of the unit.

        Never raises for remote failures: when the status query fails the
        result carries loaded="no", active="inactive", the service dir as
        location and the error text as reason.
        """
        installed = await self.executor.test_ssh(
            self.host, scripts.service_installed(self.service_dir), test=stderr_empty
        )
        result = await self.executor.test_ssh(
            self.host, scripts.unit_status(self.unit_name), test=stderr_empty
        )

        if result.success:
            fields = parse_status(result.stdout)
            if fields is not None:
                return ServiceStatus(
                    name=self.unit_name,
                    installed=installed.success,
                    loaded=fields["loaded"] or "no",
                    active=fields["active"] or "inactive",
                    location=fields["location"] or self.service_dir,
                    reason=fields["reason"],
                )
            logger.debug(f"Unrecognized status output for {self.unit_name}")

        failure = classify(result)
        reason = result.stderr.strip() or "status output not recognized"
        logger.debug(f"Status query for {self.unit_name} failed: {reason}")
        return ServiceStatus(
            name=self.unit_name,
            installed=installed.success,
            loaded="no",
            active="inactive",
            location=self.service_dir,
            reason=reason,
            failure=failure,
        )

    async def restart(self) -> SSHResult:
        """Restart the unit; failure is reported in the result."""
        logger.info(f"Restarting {self.unit_name} on {self.host}")
        return await self.executor.test_ssh(
            self.host, scripts.restart_unit(self.unit_name), test=stderr_empty
        )

    async def install(self) -> SSHResult:
        """Create the service layout and install the unit definition.

        Success requires the guard line in stdout and an empty stderr, so
        that a failed privileged write is not hidden by the final echo.
        """
        guard = f"{self.unit_name} Installed successfully"
        unit = self.render_unit()
        logger.info(f"Installing {self.unit_name} on {self.host}")
        return await self.executor.test_ssh(
            self.host,
            scripts.install_unit(
                service_dir=self.service_dir,
                releases_dir=self.releases_dir,
                unit_name=self.unit_name,
                guard=guard,
                lock_timeout=self.lock_timeout,
            ),
            test=guarded(guard),
            input=unit.encode("utf-8"),
        )

    async def uninstall(self) -> SSHResult:
        """Stop, disable and remove the unit definition; releases are kept."""
        guard = f"{self.unit_name} Uninstalled successfully"
        logger.info(f"Uninstalling {self.unit_name} from {self.host}")
        return await self.executor.test_ssh(
            self.host,
            scripts.uninstall_unit(self.unit_name, guard, self.lock_timeout),
            test=guarded(guard),
        )
