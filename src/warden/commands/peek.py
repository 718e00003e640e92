"""warden peek: show what an agent has done since the last peek."""

from __future__ import annotations

import click

from warden.commands._common import CliState, cli_errors, open_supervisor, pass_state
from warden.store.models import LogEntry

#: Entries shown when peeking at a finished agent.
PEEK_CAP_LINES = 100


def format_peek_entry(entry: LogEntry) -> str:
    content = entry.content.rstrip("\n")
    match entry.event_type:
        case "item.started":
            if entry.command:
                return f"[running] {entry.command}"
            return f"[starting] {content}"
        case "turn.started":
            return "--- turn started ---"
        case "turn.completed":
            return "--- turn completed ---"
    return f"[{entry.stream or entry.event_type}] {content}"


@click.command()
@click.argument("name")
@pass_state
def peek(state: CliState, name: str) -> None:
    """Show new transcript entries for agent NAME.

    A running agent shows only what was logged since the previous peek.  A
    finished agent shows the end of its transcript.
    """
    with cli_errors(), open_supervisor(state) as supervisor:
        store = supervisor.store
        agent = store.require_agent(name)
        if agent.status.is_terminal:
            total = store.count_logs(name)
            entries = store.tail_logs(name, PEEK_CAP_LINES)
        else:
            total = None
            entries = store.list_logs(name, since_id=agent.peek_cursor)
            if entries:
                supervisor.lifecycle.advance_peek_cursor(name, entries[-1].id)

    if total is None:
        if not entries:
            click.echo(f"No new log entries for {name}")
            return
        for entry in entries:
            click.echo(format_peek_entry(entry))
        return

    if total == 0:
        click.echo(f"No log entries for {name}")
        return
    status = agent.status.value
    if total > PEEK_CAP_LINES:
        click.echo(f"[agent {status} - showing last {PEEK_CAP_LINES} lines]\n")
    else:
        click.echo(f"[agent {status} - showing all {total} lines]\n")
    for entry in entries:
        click.echo(format_peek_entry(entry))
    if total > PEEK_CAP_LINES:
        click.echo(f"\n[full log: {total} lines - run 'warden log {name}' for complete history]")
