"""Domain models for agents, transcript entries, and messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class AgentKind(StrEnum):
    """Agent CLI flavors."""

    CLAUDE = "claude"
    CODEX = "codex"

    @property
    def emits_protocol(self) -> bool:
        return self is AgentKind.CODEX


class AgentStatus(StrEnum):
    """Durable agent lifecycle states.  ``archived`` is a separate flag."""

    BUSY = "busy"
    WAITING = "waiting"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AgentStatus.COMPLETE, AgentStatus.FAILED)


class MessageType(StrEnum):
    PROMPT = "prompt"
    EXIT = "exit"
    QUESTION = "question"
    COMPLETE = "complete"
    SYSTEM = "system"


@dataclass(slots=True)
class AgentView:
    """Readable agent state for CLI and supervisor logic."""

    project: str
    branch: str
    name: str
    kind: AgentKind
    task: str
    status: AgentStatus
    session_token: str
    pid: int | None
    owner_pid: int | None
    peek_cursor: str | None
    completed_at: datetime | None
    archived_at: datetime | None
    compacted_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @property
    def archived(self) -> bool:
        return self.archived_at is not None

    @property
    def display_status(self) -> str:
        return "archived" if self.archived else self.status.value


@dataclass(slots=True)
class LogEntryCreate:
    """Input payload for one transcript entry."""

    event_type: str
    content: str = ""
    stream: str | None = None
    command: str | None = None
    exit_code: int | None = None
    status: str | None = None
    raw_json: str | None = None


@dataclass(slots=True)
class LogEntry:
    id: str
    seq: int
    agent_name: str
    agent_kind: str
    event_type: str
    content: str
    stream: str | None
    command: str | None
    exit_code: int | None
    status: str | None
    raw_json: str | None
    created_at: datetime


@dataclass(slots=True)
class MessageCreate:
    from_agent: str
    type: MessageType
    content: str
    to_agent: str | None = None
    mentions: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Message:
    id: str
    seq: int
    from_agent: str
    to_agent: str | None
    type: MessageType
    content: str
    mentions: list[str]
    read_by: list[str]
    created_at: datetime


@dataclass(slots=True)
class MessageFilter:
    """Selection for :meth:`AgentStore.list_messages`.

    ``limit`` keeps the first matches, ``last`` the most recent ones.
    ``mention`` and ``unread_by`` match against the JSON list columns.
    """

    type: MessageType | None = None
    from_agent: str | None = None
    to_agent: str | None = None
    since_id: str | None = None
    limit: int | None = None
    last: int | None = None
    mention: str | None = None
    unread_by: str | None = None
