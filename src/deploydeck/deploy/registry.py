"""Catalogue of configured services for one project/host pair."""

from __future__ import annotations

from deploydeck.deploy.executor import RemoteExecutor
from deploydeck.deploy.service import ServiceUnit
from deploydeck.lib.errors import ServiceNotFoundError
from deploydeck.models.deployment import DeployConfig, RemoteTarget, ServiceDescriptor


class DeploymentRegistry:
    """Resolves service units from a loaded deployment configuration.

    Example:
        >>> registry = DeploymentRegistry(config)
        >>> service = registry.service()  # first configured service
        >>> status = await service.status()
    """

    def __init__(
        self, config: DeployConfig, executor: RemoteExecutor | None = None
    ) -> None:
        """Initialize the registry.

        Args:
            config: Validated deployment configuration
            executor: Transport shared by all services (built from
                config.ssh when omitted)
        """
        self.config = config
        self.executor = executor or RemoteExecutor(config.ssh)
        self._target = config.target

    @property
    def target(self) -> RemoteTarget:
        return self._target

    @property
    def services(self) -> list[ServiceDescriptor]:
        return list(self.config.services)

    @property
    def first_service(self) -> str:
        """Name of the default service."""
        return self.config.services[0].name

    def names(self) -> list[str]:
        return [service.name for service in self.config.services]

    def service(self, name: str | None = None) -> ServiceUnit:
        """Return the named service, or the first one when name is omitted.

        Raises:
            ServiceNotFoundError: If a name is given that matches nothing
        """
        if name is None:
            descriptor = self.config.services[0]
        else:
            descriptor = next(
                (item for item in self.config.services if item.name == name), None
            )
            if descriptor is None:
                raise ServiceNotFoundError(name, self.names())

        return ServiceUnit(
            target=self._target,
            descriptor=descriptor,
            executor=self.executor,
            lock_timeout=self.config.lock_timeout,
        )
