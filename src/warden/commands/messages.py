"""warden messages: read the scope's message board."""

from __future__ import annotations

import click

from warden.commands._common import CliState, cli_errors, open_supervisor, pass_state
from warden.store.models import Message, MessageFilter, MessageType


def format_board_line(message: Message) -> str:
    return f"[{message.type.value}] {message.from_agent}: {message.content}"


@click.command()
@click.option("--from", "from_agent", default=None, help="Only messages from this agent.")
@click.option("-q", "--questions", is_flag=True, help="Only questions.")
@click.option("--last", type=click.IntRange(min=1), default=None, help="Only the last N messages.")
@click.option("--mentions", "mention", default=None, help="Only messages mentioning this agent.")
@click.option(
    "--id",
    "reader",
    default=None,
    help="Read as this agent: skip messages it has read and mark the rest read.",
)
@pass_state
def messages(
    state: CliState,
    from_agent: str | None,
    questions: bool,
    last: int | None,
    mention: str | None,
    reader: str | None,
) -> None:
    """List messages in the current scope, oldest first."""
    selection = MessageFilter(
        type=MessageType.QUESTION if questions else None,
        from_agent=from_agent,
        last=last,
        mention=mention,
        # Read messages are only hidden without --last.
        unread_by=reader if last is None else None,
    )
    with cli_errors(), open_supervisor(state) as supervisor:
        found = supervisor.store.list_messages(selection)
        if reader is not None and found:
            supervisor.store.mark_messages_read([m.id for m in found], reader)

    if not found:
        click.echo("No messages.")
        return
    for message in found:
        click.echo(format_board_line(message))
