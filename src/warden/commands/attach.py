"""warden attach: print the command that reopens an agent's session."""

from __future__ import annotations

import click

from warden.commands._common import CliState, cli_errors, open_supervisor, pass_state
from warden.store.models import AgentKind


@click.command()
@click.argument("name")
@pass_state
def attach(state: CliState, name: str) -> None:
    """Print the command that resumes agent NAME interactively.

    The command is printed, not run.
    """
    with cli_errors(), open_supervisor(state) as supervisor:
        agent = supervisor.store.require_agent(name)
        binary = supervisor.config.command_for(agent.kind).binary

    if agent.kind is AgentKind.CLAUDE:
        click.echo(f"{binary} --resume {agent.session_token}")
    else:
        click.echo(f"{binary} resume {agent.session_token}")
        click.echo("(Note: Codex resume support may be limited)")
