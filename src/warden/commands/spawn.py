"""warden spawn / worker-spawn: start a new agent."""

from __future__ import annotations

import asyncio

import click

from warden.commands._common import CliState, cli_errors, open_supervisor, pass_state
from warden.store.models import AgentKind
from warden.supervisor.supervisor import SpawnOptions


@click.command()
@click.argument("kind", type=click.Choice([k.value for k in AgentKind]))
@click.argument("task")
@click.option("--name", default=None, help="Agent name (derived from the task if omitted).")
@click.option("--files", default="", help="Relevant files to mention in the prompt.")
@click.option("--context", "extra_context", default="", help="Additional context for the agent.")
@click.option(
    "-d",
    "--detach",
    is_flag=True,
    help="Run the agent in a background worker and return immediately.",
)
@pass_state
def spawn(
    state: CliState,
    kind: str,
    task: str,
    name: str | None,
    files: str,
    extra_context: str,
    detach: bool,
) -> None:
    """Spawn a KIND agent (claude or codex) working on TASK."""
    options = SpawnOptions(name=name, files=files, context=extra_context, detach=detach)
    with cli_errors(), open_supervisor(state) as supervisor:
        agent_name = asyncio.run(supervisor.spawn(AgentKind(kind), task, options))
    click.echo(agent_name)


@click.command("worker-spawn", hidden=True)
@click.argument("name")
@pass_state
def worker_spawn(state: CliState, name: str) -> None:
    """Run NAME's latest prompt in the foreground (used by spawn --detach)."""
    with cli_errors(), open_supervisor(state) as supervisor:
        asyncio.run(supervisor.worker_spawn(name))
