"""Per-run scratch CODEX_HOME holding only the user's credentials."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

AUTH_FILE = "auth.json"


def user_codex_home() -> Path:
    """The real CODEX_HOME: ``$CODEX_HOME`` or ``~/.codex``."""
    env_home = os.environ.get("CODEX_HOME")
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / ".codex"


@contextmanager
def codex_home_sandbox(source: Path | None = None) -> Iterator[Path]:
    """Yield a fresh temporary CODEX_HOME, removed when the block exits.

    ``auth.json`` is copied from *source* (default: :func:`user_codex_home`)
    with mode 0600 so the run can authenticate without sharing session state.
    """
    source = source or user_codex_home()
    with tempfile.TemporaryDirectory(prefix="warden-codex-") as scratch:
        home = Path(scratch)
        auth_src = source / AUTH_FILE
        if auth_src.is_file():
            auth_dst = home / AUTH_FILE
            shutil.copyfile(auth_src, auth_dst)
            auth_dst.chmod(0o600)
        else:
            logger.debug("No %s in %s; codex will run unauthenticated", AUTH_FILE, source)
        yield home
