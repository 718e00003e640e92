"""Agent event protocol: event models and streaming decoder."""

from warden.protocol.decoder import LineDecoder, decode_line
from warden.protocol.events import (
    ContextCompactedEvent,
    EmptyEvent,
    EventKind,
    ItemCompletedEvent,
    ItemStartedEvent,
    ProtocolEvent,
    ProtocolItem,
    ThreadStartedEvent,
    TurnCompletedEvent,
    TurnFailedEvent,
    TurnStartedEvent,
    UnrecognizedEvent,
    normalize_item_type,
)

__all__ = [
    "ContextCompactedEvent",
    "EmptyEvent",
    "EventKind",
    "ItemCompletedEvent",
    "ItemStartedEvent",
    "LineDecoder",
    "ProtocolEvent",
    "ProtocolItem",
    "ThreadStartedEvent",
    "TurnCompletedEvent",
    "TurnFailedEvent",
    "TurnStartedEvent",
    "UnrecognizedEvent",
    "decode_line",
    "normalize_item_type",
]
