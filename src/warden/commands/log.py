"""warden log: print an agent's transcript."""

from __future__ import annotations

import click

from warden.commands._common import CliState, cli_errors, open_supervisor, pass_state
from warden.store.models import LogEntry


def format_entry(entry: LogEntry) -> str:
    label = entry.event_type
    if entry.stream:
        label = f"{label}/{entry.stream}"
    header = f"{entry.created_at:%H:%M:%S} {entry.id} [{label}]"
    if entry.command:
        header += f" $ {entry.command}"
    if entry.exit_code is not None:
        header += f" (exit {entry.exit_code})"
    content = entry.content.rstrip("\n")
    return f"{header} {content}" if content else header


@click.command()
@click.argument("name")
@click.option("--since", "since_id", default=None, help="Only entries after this entry id.")
@click.option("--tail", type=click.IntRange(min=1), default=None, help="Only the last N entries.")
@pass_state
def log(state: CliState, name: str, since_id: str | None, tail: int | None) -> None:
    """Print the transcript of agent NAME, oldest first."""
    if since_id is not None and tail is not None:
        raise click.UsageError("--since and --tail are mutually exclusive")
    with cli_errors(), open_supervisor(state) as supervisor:
        store = supervisor.store
        store.require_agent(name)
        if tail is not None:
            entries = store.tail_logs(name, tail)
        else:
            entries = store.list_logs(name, since_id=since_id)
    for entry in entries:
        click.echo(format_entry(entry))
