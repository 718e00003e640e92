"""warden ask: an agent asks the orchestrator a question."""

from __future__ import annotations

import click

from warden.commands._common import CliState, cli_errors, open_supervisor, pass_state


@click.command()
@click.option("--id", "agent_id", required=True, help="Asking agent's name.")
@click.argument("question")
@pass_state
def ask(state: CliState, agent_id: str, question: str) -> None:
    """Post QUESTION and mark the agent as waiting for an answer."""
    with cli_errors(), open_supervisor(state) as supervisor:
        supervisor.ask(agent_id, question)
    click.echo(f"Question posted; {agent_id} is waiting.")
