"""Remote shell execution over the ssh client.

Every remote operation in DeployDeck is a POSIX shell script sent as the
command argument of one ``ssh`` invocation. This module turns such an
invocation into a structured ``SSHResult``.

Two entry points exist:
    - ``RemoteExecutor.ssh``: raises ``TransportError`` when the invocation
      fails, for callers that branch with ordinary control flow.
    - ``RemoteExecutor.test_ssh``: never raises for transport failures; the
      caller-supplied predicate decides what counts as success.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from deploydeck.lib.errors import TransportError
from deploydeck.lib.logging_config import get_logger
from deploydeck.models.deployment import SSHOptions

logger = get_logger(__name__)

CONNECTABLE_MARKER = "Connectable"


@dataclass(frozen=True)
class SSHResult:
    """Structured outcome of one remote invocation.

    Attributes:
        stdout: Captured standard output
        stderr: Captured standard error, or a synthesized error message
        success: Outcome of the success predicate
        exit_code: Exit status of the ssh process, None if it never ran
    """

    stdout: str
    stderr: str
    success: bool = True
    exit_code: int | None = 0


SuccessPredicate = Callable[[SSHResult], bool]


def stderr_empty(result: SSHResult) -> bool:
    """Default predicate: success iff nothing was written to stderr."""
    return not result.stderr


def join_commands(commands: str | Sequence[str]) -> str:
    """Join a sequence of script lines into one script body."""
    if isinstance(commands, str):
        return commands
    return "\n".join(commands)


class RemoteExecutor:
    """Runs shell scripts on remote hosts through the ssh client.

    The executor is stateless apart from its immutable options and is safe
    to share between services of one session.

    Example:
        >>> executor = RemoteExecutor(SSHOptions(connect_timeout=5))
        >>> result = await executor.test_ssh("debian@beaglebone.local", "uptime")
        >>> result.success
        True
    """

    def __init__(self, options: SSHOptions | None = None) -> None:
        """Initialize the executor.

        Args:
            options: SSH transport options (defaults apply when omitted)
        """
        self.options = options or SSHOptions()

    def build_argv(self, host: str, script: str) -> list[str]:
        """Build the local argv for running ``script`` on ``host``."""
        strict = "yes" if self.options.strict_host_key_checking else "no"
        return [
            "ssh",
            "-o",
            f"StrictHostKeyChecking={strict}",
            "-o",
            f"ConnectTimeout={self.options.connect_timeout}",
            *self.options.extra_args,
            host,
            script,
        ]

    async def ssh(
        self,
        host: str,
        commands: str | Sequence[str],
        *,
        input: bytes | None = None,
    ) -> SSHResult:
        """Run a script remotely and raise when the invocation fails.

        Args:
            host: SSH destination, used verbatim
            commands: Script body, or lines joined with newlines
            input: Bytes piped to the remote command's standard input

        Returns:
            SSHResult with success=True

        Raises:
            TransportError: On non-zero exit, missing ssh client or timeout
        """
        result = await self._invoke(host, join_commands(commands), input)
        if result.exit_code != 0:
            raise TransportError(
                host=host,
                stdout=result.stdout,
                stderr=result.stderr,
                exit_code=result.exit_code,
            )
        return result

    async def test_ssh(
        self,
        host: str,
        commands: str | Sequence[str],
        *,
        test: SuccessPredicate = stderr_empty,
        input: bytes | None = None,
    ) -> SSHResult:
        """Run a script remotely and classify the outcome with a predicate.

        Transport failures are never raised: captured output is kept, and
        when nothing was captured stderr carries the error message.

        Args:
            host: SSH destination, used verbatim
            commands: Script body, or lines joined with newlines
            test: Predicate deciding success from the captured result
            input: Bytes piped to the remote command's standard input

        Returns:
            SSHResult whose success is ``test(result)``
        """
        result = await self._invoke(host, join_commands(commands), input)
        success = test(result)
        if not success:
            logger.debug(f"Predicate rejected result from {host}: {result.stderr!r}")
        return SSHResult(
            stdout=result.stdout,
            stderr=result.stderr,
            success=success,
            exit_code=result.exit_code,
        )

    async def check_connection(self, host: str) -> SSHResult:
        """Probe whether the host accepts a trivial command."""
        return await self.test_ssh(
            host,
            f'echo "{CONNECTABLE_MARKER}"',
            test=lambda r: CONNECTABLE_MARKER in r.stdout,
        )

    async def _invoke(
        self, host: str, script: str, input: bytes | None
    ) -> SSHResult:
        """Spawn the transport process and capture its output."""
        argv = self.build_argv(host, script)
        logger.debug(f"Running remote script on {host}: {script!r}")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if input is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.warning(f"Could not start {argv[0]!r} for {host}: {exc}")
            return SSHResult(stdout="", stderr=str(exc), success=False, exit_code=None)

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(input=input),
                timeout=self.options.command_timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            message = (
                f"Remote command on {host} timed out after "
                f"{self.options.command_timeout}s"
            )
            logger.warning(message)
            return SSHResult(stdout="", stderr=message, success=False, exit_code=None)

        result = SSHResult(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            success=process.returncode == 0,
            exit_code=process.returncode,
        )
        if process.returncode != 0:
            logger.debug(
                f"Remote script on {host} exited with {process.returncode}: "
                f"{result.stderr.strip()!r}"
            )
        return result
