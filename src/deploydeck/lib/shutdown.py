"""Scoped SIGINT/SIGTERM handling for long-running commands.

A ``ShutdownScope`` replaces process-wide exit handlers: it installs signal
handlers on the running event loop for the duration of an ``async with``
block, exposes the shutdown request as an event, and runs registered
teardown callbacks exactly once on every exit path.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Awaitable, Callable
from types import TracebackType

from deploydeck.lib.logging_config import get_logger

logger = get_logger(__name__)

Teardown = Callable[[], Awaitable[None] | None]

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownScope:
    """Async context manager turning termination signals into an event.

    Example:
        >>> async with ShutdownScope() as scope:
        ...     scope.add_teardown(poller.stop)
        ...     await scope.wait()
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._teardowns: list[Teardown] = []
        self._installed: list[signal.Signals] = []
        self._closed = False
        self.received: signal.Signals | None = None

    @property
    def requested(self) -> bool:
        """Whether shutdown has been requested."""
        return self._event.is_set()

    def add_teardown(self, callback: Teardown) -> None:
        """Register a callback run once when the scope closes."""
        self._teardowns.append(callback)

    def request(self, sig: signal.Signals | None = None) -> None:
        """Request shutdown (called by the signal handlers)."""
        if self._event.is_set():
            return
        self.received = sig
        if sig is not None:
            logger.info(f"Received {sig.name}, shutting down...")
        self._event.set()

    async def wait(self) -> None:
        """Wait until shutdown is requested."""
        await self._event.wait()

    async def close(self) -> None:
        """Remove signal handlers and run teardown callbacks once."""
        if self._closed:
            return
        self._closed = True

        loop = asyncio.get_running_loop()
        for sig in self._installed:
            loop.remove_signal_handler(sig)
        self._installed.clear()

        for callback in reversed(self._teardowns):
            try:
                result = callback()
                if result is not None:
                    await result
            except Exception as e:
                logger.error(f"Teardown callback failed: {e}", exc_info=True)
        self._teardowns.clear()

    async def __aenter__(self) -> ShutdownScope:
        loop = asyncio.get_running_loop()
        for sig in HANDLED_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request, sig)
            except (NotImplementedError, RuntimeError):
                # add_signal_handler is unavailable on some platforms/threads
                logger.debug(f"Cannot install handler for {sig.name}")
                continue
            self._installed.append(sig)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
