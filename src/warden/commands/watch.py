"""warden watch: follow the message feed and sweep for dead agents."""

from __future__ import annotations

import asyncio
import contextlib
import signal

import click

from warden.background_loop import BackgroundLoop
from warden.commands._common import CliState, cli_errors, open_supervisor, pass_state
from warden.store.models import Message, MessageFilter
from warden.store.repository import AgentStore
from warden.supervisor.prompts import summarize
from warden.supervisor.supervisor import AgentSupervisor
from warden.supervisor.sweep import LivenessSweep


def format_message(message: Message) -> str:
    target = message.to_agent or "*"
    return (
        f"{message.created_at:%H:%M:%S} {message.from_agent} -> {target}"
        f" [{message.type.value}] {summarize(message.content)}"
    )


class MessageFeed(BackgroundLoop):
    """Print messages posted since the last tick."""

    def __init__(
        self,
        store: AgentStore,
        shutdown_event: asyncio.Event,
        interval: float,
        *,
        backlog: int = 10,
    ) -> None:
        super().__init__(shutdown_event, interval)
        self._store = store
        self._cursor: str | None = None
        self._backlog = backlog

    async def _tick(self) -> None:
        for message in await asyncio.to_thread(self.poll):
            click.echo(format_message(message))

    def poll(self) -> list[Message]:
        """New messages since the previous poll (the last few on the first one)."""
        if self._cursor is None:
            messages = self._store.list_messages()
            if messages:
                self._cursor = messages[-1].id
            return messages[-self._backlog :] if self._backlog else []
        messages = self._store.list_messages(MessageFilter(since_id=self._cursor))
        if messages:
            self._cursor = messages[-1].id
        return messages


@click.command()
@click.option(
    "--interval",
    type=click.FloatRange(min=0.1),
    default=None,
    help="Seconds between polls (defaults to the sweep interval).",
)
@click.option("--once", is_flag=True, help="Print recent messages, sweep once, and exit.")
@pass_state
def watch(state: CliState, interval: float | None, once: bool) -> None:
    """Follow agent messages; busy agents whose process died are marked failed."""
    with cli_errors(), open_supervisor(state) as supervisor:
        if once:
            feed = MessageFeed(supervisor.store, asyncio.Event(), 0)
            for message in feed.poll():
                click.echo(format_message(message))
            for name in supervisor.sweep():
                click.echo(f"{name}: marked failed (process died unexpectedly)")
            return
        period = interval or supervisor.config.sweep.interval
        asyncio.run(_follow(supervisor, period))


async def _follow(supervisor: AgentSupervisor, period: float) -> None:
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, shutdown_event.set)

    sweep = LivenessSweep(supervisor, shutdown_event, supervisor.config.sweep.interval)
    feed = MessageFeed(supervisor.store, shutdown_event, period)
    await sweep.start()
    try:
        await feed.run_until_shutdown()
    finally:
        await sweep.stop()
