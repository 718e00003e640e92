"""warden kill: terminate an agent and forget it."""

from __future__ import annotations

import click

from warden.commands._common import CliState, cli_errors, open_supervisor, pass_state


@click.command()
@click.argument("name")
@pass_state
def kill(state: CliState, name: str) -> None:
    """Send SIGTERM to agent NAME's process and delete the agent."""
    with cli_errors(), open_supervisor(state) as supervisor:
        signalled = supervisor.kill(name)
    if signalled:
        click.echo(f"Killed {name}.")
    else:
        click.echo(f"Removed {name} (no running process).")
