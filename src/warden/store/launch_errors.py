"""Per-agent launch-error files kept next to the database."""

from __future__ import annotations

import logging
from pathlib import Path

from warden.scope import Scope
from warden.store.repository import utc_now

logger = logging.getLogger(__name__)


def launch_error_path(home: Path, scope: Scope, agent_name: str) -> Path:
    return home / "orchestrators" / scope.path / "launch-errors" / f"{agent_name}.log"


def record_launch_error(home: Path, scope: Scope, agent_name: str, error_text: str) -> Path | None:
    """Overwrite the agent's launch-error file with *error_text*.

    Failures are logged rather than raised; the caller is already handling
    a more important error.
    """
    path = launch_error_path(home, scope, agent_name)
    stamp = utc_now().isoformat(timespec="seconds")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"[{stamp}] {error_text.rstrip()}\n", encoding="utf-8")
    except OSError as exc:
        logger.error("Could not write launch error for %s: %s", agent_name, exc)
        return None
    return path


def read_launch_error(home: Path, scope: Scope, agent_name: str) -> str | None:
    path = launch_error_path(home, scope, agent_name)
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
