"""Pydantic v2 models for the line-delimited JSON agent event protocol.

Protocol-emitting agents (``codex exec --json``) write one JSON object per
line on stdout.  Only a handful of event types drive supervisor behavior;
everything else is kept as :class:`UnrecognizedEvent` so it can still be
logged.  Lines that are not valid events decode to :class:`EmptyEvent`.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag


class EventKind(StrEnum):
    THREAD_STARTED = "thread.started"
    CONTEXT_COMPACTED = "context_compacted"
    TURN_STARTED = "turn.started"
    TURN_COMPLETED = "turn.completed"
    TURN_FAILED = "turn.failed"
    ITEM_STARTED = "item.started"
    ITEM_COMPLETED = "item.completed"


#: Item type aliases emitted by different protocol versions.
_ITEM_ALIASES: dict[str, str] = {
    "agent_message": "agent_message",
    "assistant_message": "agent_message",
    "message": "agent_message",
    "reasoning": "reasoning",
    "agent_reasoning": "reasoning",
    "thinking": "reasoning",
    "command_execution": "command_execution",
    "exec_command": "command_execution",
    "local_shell_call": "command_execution",
}


def normalize_item_type(item_type: str) -> str:
    """Collapse known item-type aliases onto one category name."""
    key = item_type.strip().lower()
    return _ITEM_ALIASES.get(key, key)


class ProtocolItem(BaseModel):
    """Payload of ``item.started`` / ``item.completed``."""

    model_config = ConfigDict(extra="ignore")

    type: str = ""
    text: str | None = None
    command: str | None = None
    aggregated_output: str | None = None
    exit_code: int | None = None
    status: str | None = None

    @property
    def category(self) -> str:
        return normalize_item_type(self.type)


class _EventBase(BaseModel):
    """Envelope fields shared by every protocol event."""

    model_config = ConfigDict(extra="ignore")

    thread_id: str | None = Field(default=None, description="Conversation id")
    status: str | None = Field(default=None, description="Free-form status")
    raw: str = Field(default="", exclude=True, description="Original JSON line")

    @property
    def is_empty(self) -> bool:
        return not self.type  # type: ignore[attr-defined]


class ThreadStartedEvent(_EventBase):
    """First event of a run; carries the authoritative session token."""

    type: Literal["thread.started"] = "thread.started"


class ContextCompactedEvent(_EventBase):
    type: Literal["context_compacted"] = "context_compacted"


class TurnStartedEvent(_EventBase):
    type: Literal["turn.started"] = "turn.started"


class TurnCompletedEvent(_EventBase):
    type: Literal["turn.completed"] = "turn.completed"
    usage: dict[str, Any] | None = None


class TurnFailedEvent(_EventBase):
    """The agent gave up on the current turn; the run is a failure."""

    type: Literal["turn.failed"] = "turn.failed"
    error: str | dict[str, Any] | None = None

    @property
    def message(self) -> str:
        if isinstance(self.error, dict):
            return str(self.error.get("message", "")).strip()
        return (self.error or "").strip()


class ItemStartedEvent(_EventBase):
    type: Literal["item.started"] = "item.started"
    item: ProtocolItem | None = None


class ItemCompletedEvent(_EventBase):
    type: Literal["item.completed"] = "item.completed"
    item: ProtocolItem | None = None


class UnrecognizedEvent(_EventBase):
    """A well-formed event whose type the supervisor does not act on."""

    type: str
    item: ProtocolItem | None = None


class EmptyEvent(_EventBase):
    """Placeholder for lines that are not valid events."""

    type: Literal[""] = ""


_KNOWN_TAGS = frozenset(kind.value for kind in EventKind)


def _event_discriminator(v: Any) -> str:
    """Pick the union member for raw data or a model instance."""
    event_type = v.get("type") if isinstance(v, dict) else getattr(v, "type", None)
    if not isinstance(event_type, str) or not event_type:
        return "empty"
    if event_type in _KNOWN_TAGS:
        return event_type
    return "unrecognized"


ProtocolEvent = Annotated[
    Annotated[ThreadStartedEvent, Tag("thread.started")]
    | Annotated[ContextCompactedEvent, Tag("context_compacted")]
    | Annotated[TurnStartedEvent, Tag("turn.started")]
    | Annotated[TurnCompletedEvent, Tag("turn.completed")]
    | Annotated[TurnFailedEvent, Tag("turn.failed")]
    | Annotated[ItemStartedEvent, Tag("item.started")]
    | Annotated[ItemCompletedEvent, Tag("item.completed")]
    | Annotated[UnrecognizedEvent, Tag("unrecognized")]
    | Annotated[EmptyEvent, Tag("empty")],
    Discriminator(_event_discriminator),
]
"""Discriminated union of all protocol event types."""
