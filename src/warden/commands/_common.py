"""Shared plumbing for warden subcommands."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import click

from warden.config.parser import ConfigError, load_config
from warden.process.launcher import LaunchError
from warden.scope import detect_scope
from warden.store.repository import (
    AgentExistsError,
    AgentNotFoundError,
    AgentStore,
    UnknownCursorError,
)
from warden.supervisor.lifecycle import InvalidTransitionError
from warden.supervisor.sink import TranscriptPersistError
from warden.supervisor.supervisor import AgentRunError, AgentSupervisor


@dataclass
class CliState:
    """Options collected by the root group."""

    config_path: Path | None = None


pass_state = click.make_pass_decorator(CliState, ensure=True)


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn domain errors into one-line click errors (exit status 1)."""
    try:
        yield
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    except (
        AgentNotFoundError,
        AgentExistsError,
        InvalidTransitionError,
        UnknownCursorError,
    ) as exc:
        raise click.ClickException(str(exc)) from exc
    except LaunchError as exc:
        hint = " (is it installed and on your PATH?)" if exc.not_found else ""
        raise click.ClickException(f"{exc}{hint}") from exc
    except AgentRunError as exc:
        raise click.ClickException(f"Agent '{exc.name}' failed: {exc}") from exc
    except TranscriptPersistError as exc:
        raise click.ClickException(str(exc)) from exc


@contextmanager
def open_supervisor(state: CliState) -> Iterator[AgentSupervisor]:
    """Load config, open the scope's store, and yield a supervisor."""
    config = load_config(state.config_path)
    store = AgentStore(config.db_path, detect_scope())
    store.init_schema()
    worker_argv = [sys.executable, "-m", "warden"]
    if state.config_path is not None:
        worker_argv += ["--config", str(state.config_path.resolve())]
    try:
        yield AgentSupervisor(config, store, worker_argv=worker_argv)
    finally:
        store.close()
