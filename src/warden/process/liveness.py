"""Process existence checks and signalling by pid."""

from __future__ import annotations

import logging
import os
import signal

logger = logging.getLogger(__name__)

#: Maximum valid PID on most systems (Linux default PID_MAX).
PID_MAX = 4_194_304


def is_process_running(pid: int) -> bool:
    """Check if a process with the given PID is still running."""
    if pid <= 0 or pid > PID_MAX:
        return False
    try:
        os.kill(pid, 0)  # Signal 0 = check existence
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        return True  # Process exists but we can't signal it


def send_signal(pid: int, sig: signal.Signals) -> bool:
    """Send *sig* to *pid*.  Returns ``False`` if the process is already gone."""
    if pid <= 1 or pid > PID_MAX:
        logger.warning("Refusing to signal out-of-range pid %d", pid)
        return False
    try:
        os.kill(pid, sig)
    except ProcessLookupError:
        logger.debug("Process %d already exited before %s", pid, sig.name)
        return False
    return True
