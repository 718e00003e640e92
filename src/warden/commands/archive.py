"""warden archive: hide finished agents from the default listing."""

from __future__ import annotations

import click

from warden.commands._common import CliState, cli_errors, open_supervisor, pass_state


@click.command()
@click.argument("name")
@click.option("--undo", is_flag=True, help="Unarchive instead.")
@pass_state
def archive(state: CliState, name: str, undo: bool) -> None:
    """Archive a complete or failed agent NAME."""
    with cli_errors(), open_supervisor(state) as supervisor:
        agent = supervisor.unarchive(name) if undo else supervisor.archive(name)
    click.echo(f"{agent.name}: {agent.display_status}")
