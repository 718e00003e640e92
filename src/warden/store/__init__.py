"""Agent, transcript, and message persistence."""

from warden.store.launch_errors import launch_error_path, read_launch_error, record_launch_error
from warden.store.models import (
    AgentKind,
    AgentStatus,
    AgentView,
    LogEntry,
    LogEntryCreate,
    Message,
    MessageCreate,
    MessageFilter,
    MessageType,
)
from warden.store.repository import (
    AgentExistsError,
    AgentNotFoundError,
    AgentStore,
    UnknownCursorError,
)

__all__ = [
    "AgentExistsError",
    "AgentKind",
    "AgentNotFoundError",
    "AgentStatus",
    "AgentStore",
    "AgentView",
    "LogEntry",
    "LogEntryCreate",
    "Message",
    "MessageCreate",
    "MessageFilter",
    "MessageType",
    "UnknownCursorError",
    "launch_error_path",
    "read_launch_error",
    "record_launch_error",
]
