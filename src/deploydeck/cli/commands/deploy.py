"""CLI commands for managing services and releases on the remote host.

Each command loads the deployment configuration, resolves one service
(the first configured service unless SERVICE is given) and runs a single
remote operation.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Coroutine, Generator
from contextlib import contextmanager
from typing import Any, TypeVar

import click

from deploydeck.config.defaults import DEFAULT_POLL_INTERVAL
from deploydeck.config.loader import load_deploy_config
from deploydeck.deploy.executor import SSHResult
from deploydeck.deploy.failures import classify, describe
from deploydeck.deploy.poller import StatusPoller
from deploydeck.deploy.registry import DeploymentRegistry
from deploydeck.deploy.service import ServiceUnit
from deploydeck.lib.errors import ConfigError, DeploymentError
from deploydeck.lib.errors import FileNotFoundError as ConfigFileNotFoundError
from deploydeck.lib.logging_config import get_logger
from deploydeck.lib.shutdown import ShutdownScope
from deploydeck.lib.ui.colors import ANSIColors, colorize, highlight_state
from deploydeck.models.deployment import ServiceStatus

logger = get_logger(__name__)

T = TypeVar("T")


@contextmanager
def handle_deployment_errors() -> Generator[None, None, None]:
    """Context manager for consistent error handling in deployment commands.

    Exit codes:
        2: Configuration error
        3: Deployment/transport error
        130: Interrupted
    """
    try:
        yield
    except (ConfigError, ConfigFileNotFoundError) as e:
        logger.error(f"Configuration error: {e}")
        click.secho("Error: Configuration error", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(2)
    except DeploymentError as e:
        logger.error(f"Deployment error: {e}")
        click.secho(f"Error: {e.operation} failed", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(3)
    except KeyboardInterrupt:
        logger.info("Interrupted by user (Ctrl+C)")
        click.echo()
        sys.exit(130)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(3)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


def _load_registry(ctx: click.Context) -> DeploymentRegistry:
    config_path = ctx.obj["config_path"]
    logger.debug(f"Loading deployment configuration from {config_path}")
    return DeploymentRegistry(load_deploy_config(config_path))


def _resolve_service(ctx: click.Context, name: str | None) -> ServiceUnit:
    return _load_registry(ctx).service(name)


def _report_failure(action: str, service: ServiceUnit, result: SSHResult) -> None:
    """Print a failed operation result and exit with status 1."""
    kind = classify(result)
    click.secho(
        f'Failed to {action} "{service.label}" on '
        f'"{service.host} -> {service.service_dir}"',
        fg="red",
        err=True,
    )
    if kind is not None:
        click.echo(f"  {describe(kind, service.host, service.label)}", err=True)
    if result.stderr.strip():
        click.echo(f"  {result.stderr.strip()}", err=True)
    sys.exit(1)


def _render_status(status: ServiceStatus) -> None:
    installed = (
        colorize("yes", ANSIColors.GREEN)
        if status.installed
        else colorize("no", ANSIColors.RED)
    )
    checked_at = status.checked_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")

    click.echo(f"Name: {colorize(status.name, ANSIColors.BLUE)}")
    click.echo(f"Installed: {installed}")
    click.echo(f"Loaded: {highlight_state(status.loaded, 'loaded')}")
    click.echo(f"\t{colorize(status.location, ANSIColors.GRAY)}")
    click.echo(f"Active: {highlight_state(status.active, 'active')} {checked_at}")
    if status.reason:
        click.echo(f"  \\ {colorize(status.reason, ANSIColors.YELLOW)}")


async def _wait_or_timeout(scope: ShutdownScope, timeout: float) -> None:
    try:
        await asyncio.wait_for(scope.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        pass


async def _watch_status(service: ServiceUnit, interval: float) -> bool:
    """Render status every interval until interrupted.

    While the host is unreachable the connection is probed once per
    interval and polling resumes as soon as it answers.

    Returns:
        True if the watch ended because of a termination signal
    """

    def on_status(status: ServiceStatus) -> None:
        click.echo()
        _render_status(status)

    def on_disconnect(status: ServiceStatus) -> None:
        click.secho(f"Could not connect to {service.host}", fg="yellow", err=True)

    async with ShutdownScope() as scope:
        poller = StatusPoller(
            service,
            on_status=on_status,
            on_disconnect=on_disconnect,
            interval=interval,
        )
        scope.add_teardown(poller.stop)
        poller.start()

        while not scope.requested:
            await _wait_or_timeout(scope, interval)
            if scope.requested or poller.running:
                continue
            probe = await service.executor.check_connection(service.host)
            if probe.success:
                click.secho(f"Reconnected to {service.host}", fg="green", err=True)
                poller.start()

        return scope.received is not None


@click.command()
@click.pass_context
def services(ctx: click.Context) -> None:
    """List configured services; * marks the default."""
    with handle_deployment_errors():
        registry = _load_registry(ctx)
        click.echo("Project:")
        click.echo(f"\t{colorize(registry.target.project, ANSIColors.BLUE)}")
        click.echo()
        click.echo("Services:")
        for descriptor in registry.services:
            marker = "*" if descriptor.name == registry.first_service else " "
            label = colorize(descriptor.label, ANSIColors.BLUE)
            click.echo(f"  {marker} {label} ({descriptor.name})")


@click.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Check that the remote host accepts SSH commands."""
    with handle_deployment_errors():
        registry = _load_registry(ctx)
        host = registry.target.host
        if not ctx.obj["quiet"]:
            click.secho(f'Connecting to "{host}"...', fg="bright_black")

        result = _run(registry.executor.check_connection(host))
        if not result.success:
            click.secho(f"Could not connect to {host}", fg="yellow", err=True)
            if result.stderr.strip():
                click.echo(f"  {result.stderr.strip()}", err=True)
            sys.exit(1)
        click.secho(f"Connected to {host}", fg="green")


@click.command()
@click.argument("service", required=False)
@click.option(
    "--watch",
    is_flag=True,
    help="Keep polling until interrupted",
)
@click.option(
    "--interval",
    type=click.FloatRange(min=0.1),
    default=DEFAULT_POLL_INTERVAL,
    show_default=True,
    help="Seconds between polls with --watch",
)
@click.pass_context
def status(
    ctx: click.Context, service: str | None, watch: bool, interval: float
) -> None:
    """Show systemd status of SERVICE."""
    with handle_deployment_errors():
        unit = _resolve_service(ctx, service)

        if watch:
            click.echo(
                f"{colorize(unit.host, ANSIColors.GREEN)} > "
                f"{colorize(unit.label, ANSIColors.BLUE)} ({unit.name})"
            )
            if _run(_watch_status(unit, interval)):
                sys.exit(130)
            return

        result = _run(unit.status())
        if ctx.obj["quiet"]:
            click.echo(result.active)
        else:
            _render_status(result)
        if not result.reachable:
            sys.exit(1)


@click.command()
@click.argument("service", required=False)
@click.pass_context
def releases(ctx: click.Context, service: str | None) -> None:
    """List releases of SERVICE, oldest first."""
    with handle_deployment_errors():
        unit = _resolve_service(ctx, service)
        entries = _run(unit.releases.list())

        if not entries:
            click.secho("No releases", fg="bright_black")
            return

        click.echo(f"Releases ({colorize(unit.label, ANSIColors.BLUE)}):")
        for entry in entries:
            if entry.current:
                timestamp = colorize(entry.timestamp, ANSIColors.GREEN)
                click.echo(f"  * {timestamp} (current)")
            else:
                click.echo(f"    {entry.timestamp}")


@click.command()
@click.argument("release")
@click.argument("service", required=False)
@click.pass_context
def switch(ctx: click.Context, release: str, service: str | None) -> None:
    """Point SERVICE at RELEASE and restart it."""
    with handle_deployment_errors():
        unit = _resolve_service(ctx, service)
        _run(unit.releases.switch(release))
        click.secho(f'Switched "{unit.label}" to release {release}', fg="green")


@click.command()
@click.argument("service", required=False)
@click.option(
    "--hours",
    type=click.IntRange(min=0),
    default=None,
    help="Age threshold in hours (defaults to keepHours)",
)
@click.pass_context
def prune(ctx: click.Context, service: str | None, hours: int | None) -> None:
    """Remove non-current releases of SERVICE older than the threshold."""
    with handle_deployment_errors():
        registry = _load_registry(ctx)
        unit = registry.service(service)
        age_hours = registry.config.keep_hours if hours is None else hours

        result = _run(unit.releases.prune(age_hours))
        if result.stdout.strip():
            click.echo(result.stdout.rstrip())
        if not result.success:
            _report_failure("prune releases of", unit, result)
        if not result.stdout.strip() and not ctx.obj["quiet"]:
            click.secho(f"No releases older than {age_hours}h", fg="bright_black")


@click.command()
@click.argument("service", required=False)
@click.pass_context
def install(ctx: click.Context, service: str | None) -> None:
    """Create the layout of SERVICE and install its systemd unit."""
    with handle_deployment_errors():
        unit = _resolve_service(ctx, service)
        result = _run(unit.install())
        if not result.success:
            _report_failure("install", unit, result)
        click.secho(f'Installed "{unit.label}" as {unit.unit_name}', fg="green")


@click.command()
@click.argument("service", required=False)
@click.pass_context
def restart(ctx: click.Context, service: str | None) -> None:
    """Restart the systemd unit of SERVICE."""
    with handle_deployment_errors():
        unit = _resolve_service(ctx, service)
        result = _run(unit.restart())
        if not result.success:
            _report_failure("restart", unit, result)
        click.secho(f'Restarted "{unit.label}"', fg="green")


@click.command()
@click.argument("service", required=False)
@click.option(
    "--force",
    is_flag=True,
    help="Skip confirmation prompt",
)
@click.pass_context
def uninstall(ctx: click.Context, service: str | None, force: bool) -> None:
    """Stop SERVICE and remove its unit; releases are kept."""
    with handle_deployment_errors():
        unit = _resolve_service(ctx, service)

        if not force:
            confirm = click.confirm(
                f"Uninstall '{unit.unit_name}' from {unit.host}?", default=False
            )
            if not confirm:
                click.secho("Uninstall aborted.", fg="yellow")
                sys.exit(0)

        result = _run(unit.uninstall())
        if not result.success:
            _report_failure("uninstall", unit, result)
        click.secho(f'Uninstalled "{unit.label}"', fg="green")


@click.command(name="unit")
@click.argument("service", required=False)
@click.pass_context
def unit_file(ctx: click.Context, service: str | None) -> None:
    """Print the systemd unit file install would write for SERVICE."""
    with handle_deployment_errors():
        unit = _resolve_service(ctx, service)
        click.echo(unit.render_unit())


COMMANDS = [
    services,
    check,
    status,
    releases,
    switch,
    prune,
    install,
    restart,
    uninstall,
    unit_file,
]
