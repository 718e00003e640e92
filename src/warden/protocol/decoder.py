"""Best-effort decoding of protocol events out of a byte stream."""

from __future__ import annotations

import codecs
import json
import logging

from pydantic import TypeAdapter, ValidationError

from warden.protocol.events import EmptyEvent, ProtocolEvent

logger = logging.getLogger(__name__)

_EVENT_ADAPTER: TypeAdapter[ProtocolEvent] = TypeAdapter(ProtocolEvent)


def decode_line(line: str) -> ProtocolEvent:
    """Decode one line into an event.  Never raises.

    Anything that is not a JSON object matching the event envelope comes
    back as an :class:`EmptyEvent` carrying the original text.
    """
    text = line.strip()
    if not text:
        return EmptyEvent()
    try:
        data = json.loads(text)
    except (ValueError, RecursionError):
        logger.debug("Ignoring non-JSON protocol line: %.200s", text)
        return EmptyEvent(raw=text)
    if not isinstance(data, dict):
        return EmptyEvent(raw=text)
    try:
        event = _EVENT_ADAPTER.validate_python(data)
    except ValidationError as exc:
        logger.debug("Ignoring malformed protocol event: %s", exc.errors()[:1])
        return EmptyEvent(raw=text)
    event.raw = text
    return event


class LineDecoder:
    """Turn arbitrarily split stdout chunks into protocol events.

    Bytes are decoded incrementally so a multibyte character split across
    two chunks survives.  Text after the last newline is held until more
    arrives or :meth:`finish` is called.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._finished = False

    def feed(self, data: bytes | str) -> list[ProtocolEvent]:
        """Consume *data* and return events for every complete line."""
        if self._finished:
            msg = "LineDecoder.feed() called after finish()"
            raise RuntimeError(msg)
        text = self._utf8.decode(data) if isinstance(data, bytes) else data
        if not text:
            return []
        self._buffer += text
        if "\n" not in text:
            return []
        *lines, self._buffer = self._buffer.split("\n")
        return [decode_line(line) for line in lines if line.strip()]

    def finish(self) -> list[ProtocolEvent]:
        """Flush residual text once; later calls return nothing."""
        if self._finished:
            return []
        self._finished = True
        self._buffer += self._utf8.decode(b"", final=True)
        lines = self._buffer.split("\n")
        self._buffer = ""
        return [decode_line(line) for line in lines if line.strip()]
