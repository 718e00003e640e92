"""warden interrupt: pause a running agent."""

from __future__ import annotations

import click

from warden.commands._common import CliState, cli_errors, open_supervisor, pass_state


@click.command()
@click.argument("name")
@pass_state
def interrupt(state: CliState, name: str) -> None:
    """Send SIGINT to agent NAME; it can be resumed later with `warden prompt`."""
    with cli_errors(), open_supervisor(state) as supervisor:
        agent = supervisor.interrupt(name)
    click.echo(f"Interrupted {agent.name} ({agent.display_status}).")
