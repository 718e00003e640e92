"""warden prompt: send a follow-up message to an agent."""

from __future__ import annotations

import asyncio

import click

from warden.commands._common import CliState, cli_errors, open_supervisor, pass_state


@click.command()
@click.argument("name")
@click.argument("message")
@pass_state
def prompt(state: CliState, name: str, message: str) -> None:
    """Resume agent NAME with MESSAGE and wait for it to finish."""
    with cli_errors(), open_supervisor(state) as supervisor:
        asyncio.run(supervisor.prompt(name, message))
