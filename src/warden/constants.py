"""Shared constants for the warden runtime."""

from __future__ import annotations

#: Sender name used for messages the supervisor posts on an agent's behalf.
ORCHESTRATOR_SENDER = "orchestrator"

#: Default transcript chunk size in bytes.
DEFAULT_BUFFER_SIZE = 4096

#: Default capacity of the bounded chunk channel between capture and drain.
DEFAULT_CHANNEL_CAPACITY = 16

#: Seconds a quiet stream may hold pending bytes before they are flushed.
DEFAULT_FLUSH_AFTER = 0.2

#: Seconds between liveness sweeps of busy agents.
DEFAULT_SWEEP_INTERVAL = 5.0

#: Maximum length of an auto-generated agent name (before any ``-N`` suffix).
MAX_AGENT_NAME_LENGTH = 16

#: Environment variable that overrides the data directory.
HOME_ENV_VAR = "WARDEN_HOME"

# Exit messages posted to the message feed.
MSG_EXIT_SUCCESS = "process completed successfully"
MSG_EXIT_FAILED = "process failed"
MSG_KILLED = "KILLED: by orchestrator"
MSG_INTERRUPTED = "INTERRUPTED"
MSG_DIED = "process died unexpectedly"
