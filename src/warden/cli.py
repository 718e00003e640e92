"""Root CLI group, version flag, and logging setup."""

import logging
from pathlib import Path

import click

from warden import __version__
from warden.commands._common import CliState
from warden.commands.archive import archive
from warden.commands.ask import ask
from warden.commands.attach import attach
from warden.commands.complete import complete
from warden.commands.init import init
from warden.commands.interrupt import interrupt
from warden.commands.kill import kill
from warden.commands.log import log
from warden.commands.messages import messages
from warden.commands.peek import peek
from warden.commands.prompt import prompt
from warden.commands.spawn import spawn, worker_spawn
from warden.commands.status import status
from warden.commands.watch import watch


@click.group()
@click.version_option(version=__version__, prog_name="warden")
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file path (default: ./warden.yaml if present).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_file: Path | None, verbose: bool) -> None:
    """Warden: supervise long-running AI coding agents."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = CliState(config_path=config_file)


cli.add_command(init)
cli.add_command(spawn)
cli.add_command(worker_spawn)
cli.add_command(prompt)
cli.add_command(ask)
cli.add_command(complete)
cli.add_command(interrupt)
cli.add_command(kill)
cli.add_command(archive)
cli.add_command(status)
cli.add_command(log)
cli.add_command(peek)
cli.add_command(messages)
cli.add_command(attach)
cli.add_command(watch)
