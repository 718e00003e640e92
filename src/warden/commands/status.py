"""warden status: list agents in the current scope."""

from __future__ import annotations

import click

from warden.commands._common import CliState, cli_errors, open_supervisor, pass_state
from warden.supervisor.prompts import summarize


@click.command()
@click.option("-a", "--all", "show_all", is_flag=True, help="Include archived agents.")
@pass_state
def status(state: CliState, show_all: bool) -> None:
    """Show each agent's kind, status, and task."""
    with cli_errors(), open_supervisor(state) as supervisor:
        agents = supervisor.store.list_agents(include_archived=show_all)
        scope = supervisor.store.scope
    if not agents:
        click.echo(f"No agents in {scope}.")
        return
    width = max(len(a.name) for a in agents)
    for agent in agents:
        pid = f" pid={agent.pid}" if agent.pid is not None else ""
        click.echo(
            f"{agent.name:<{width}}  {agent.kind.value:<6}  {agent.display_status:<8}"
            f"  {summarize(agent.task, 60)}{pid}"
        )
