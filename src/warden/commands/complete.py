"""warden complete: an agent reports that its task is done."""

from __future__ import annotations

import click

from warden.commands._common import CliState, cli_errors, open_supervisor, pass_state


@click.command()
@click.option("--id", "agent_id", required=True, help="Completing agent's name.")
@click.argument("summary", required=False, default="")
@pass_state
def complete(state: CliState, agent_id: str, summary: str) -> None:
    """Mark the agent complete, optionally with a SUMMARY of the work."""
    with cli_errors(), open_supervisor(state) as supervisor:
        supervisor.complete(agent_id, summary)
    click.echo(f"{agent_id} marked complete.")
