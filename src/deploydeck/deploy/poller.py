"""Periodic status polling with at most one poll in flight."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from deploydeck.config.defaults import DEFAULT_POLL_INTERVAL
from deploydeck.deploy.service import ServiceUnit
from deploydeck.lib.logging_config import get_logger
from deploydeck.models.deployment import ServiceStatus

logger = get_logger(__name__)

StatusCallback = Callable[[ServiceStatus], Awaitable[None] | None]
DisconnectCallback = Callable[[ServiceStatus], Awaitable[None] | None]


async def _maybe_await(value: Awaitable[None] | None) -> None:
    if value is not None:
        await value


class StatusPoller:
    """Polls a service's status on a fixed interval.

    Polls run sequentially inside one task, so a new poll never starts
    while the previous one is outstanding. When a poll reports the host as
    unreachable the poller stops itself and calls ``on_disconnect``; the
    caller restarts it with ``start()`` once connectivity is back.
    """

    def __init__(
        self,
        service: ServiceUnit,
        on_status: StatusCallback,
        on_disconnect: DisconnectCallback | None = None,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Initialize the poller.

        Args:
            service: Service whose status is polled
            on_status: Called with every successfully reachable status
            on_disconnect: Called with the status that reported the host
                unreachable
            interval: Seconds between the end of one poll and the next
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.service = service
        self.on_status = on_status
        self.on_disconnect = on_disconnect
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start polling; does nothing if a poll loop is already running."""
        if self.running:
            return
        logger.debug(f"Starting status polling for {self.service.unit_name}")
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the poll loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug(f"Stopped status polling for {self.service.unit_name}")

    async def wait(self) -> None:
        """Wait until the poll loop ends on its own (disconnect)."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def _run(self) -> None:
        while True:
            status = await self.service.status()
            if not status.reachable:
                logger.warning(
                    f"Lost connection to {self.service.host}: {status.reason}"
                )
                if self.on_disconnect is not None:
                    await _maybe_await(self.on_disconnect(status))
                return
            await _maybe_await(self.on_status(status))
            await asyncio.sleep(self.interval)
