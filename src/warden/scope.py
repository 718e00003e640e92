"""Project/branch scope that namespaces agents, logs, and messages."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PROJECT = "unknown"
DEFAULT_BRANCH = "main"

_UNSAFE_SEGMENT = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True, slots=True)
class Scope:
    project: str
    branch: str

    @property
    def path(self) -> Path:
        """Relative directory for per-scope files (branch slashes become dashes)."""
        return Path(_safe_segment(self.project)) / _safe_segment(self.branch)

    def __str__(self) -> str:
        return f"{self.project}/{self.branch}"


def detect_scope(cwd: Path | None = None) -> Scope:
    """Derive the scope from the git checkout containing *cwd*.

    Outside a repository (or without git installed) the defaults are used.
    """
    toplevel = _git(["rev-parse", "--show-toplevel"], cwd)
    project = Path(toplevel).name if toplevel else DEFAULT_PROJECT
    branch = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd) or DEFAULT_BRANCH
    if branch == "HEAD":
        branch = DEFAULT_BRANCH
    return Scope(project=project, branch=branch)


def _git(args: list[str], cwd: Path | None) -> str:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("git %s failed: %s", " ".join(args), exc)
        return ""
    if result.returncode != 0:
        return ""
    return result.stdout.strip()


def _safe_segment(value: str) -> str:
    cleaned = _UNSAFE_SEGMENT.sub("-", value).strip("-.")
    return cleaned or "_"
