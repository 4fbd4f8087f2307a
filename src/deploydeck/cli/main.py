"""Entry point of the ``deploydeck`` command line interface."""

import click

from deploydeck import __version__
from deploydeck.cli.commands.deploy import COMMANDS
from deploydeck.config.defaults import DEFAULT_CONFIG_FILE
from deploydeck.lib.logging_config import setup_logging


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="deploydeck")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    envvar="DEPLOYDECK_CONFIG",
    help="Path to the deployment configuration file",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose debug logging",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress progress output",
)
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool, quiet: bool) -> None:
    """Manage releases of systemd services on a remote host over SSH.

    Commands act on the first configured service unless SERVICE is given.

    Example:

        deploydeck status --watch

        deploydeck switch 20240101120000 api
    """
    setup_logging(verbose=verbose, quiet=quiet)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


for command in COMMANDS:
    main.add_command(command)


if __name__ == "__main__":
    main()
