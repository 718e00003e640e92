"""Persist a run's transcript and feed protocol events to the supervisor."""

from __future__ import annotations

import asyncio
import codecs
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError

from warden.process.multiplexer import ChunkChannel, Stream, TranscriptChunk
from warden.protocol.decoder import LineDecoder
from warden.protocol.events import (
    ItemCompletedEvent,
    ItemStartedEvent,
    ProtocolEvent,
    TurnFailedEvent,
)
from warden.store.models import LogEntryCreate
from warden.store.repository import AgentStore

logger = logging.getLogger(__name__)

#: Characters of stderr kept for error summaries.
_STDERR_TAIL_CHARS = 4096

EventCallback = Callable[[ProtocolEvent], Awaitable[None]]


class TranscriptPersistError(Exception):
    """A transcript entry could not be written; the run counts as failed."""


class TranscriptSink:
    """Consume a :class:`ChunkChannel` until it closes.

    Every chunk becomes an ``output`` log entry.  For protocol-emitting
    agents stdout is also decoded, each non-empty event is logged, and
    ``on_event`` is awaited for it.

    The channel is always read to the end, even after a persistence error,
    so the child is never blocked on a full pipe.  The first such error is
    raised once the channel has closed.
    """

    def __init__(
        self,
        store: AgentStore,
        agent_name: str,
        agent_kind: str,
        *,
        decode_protocol: bool = False,
        on_event: EventCallback | None = None,
    ) -> None:
        self._store = store
        self._agent_name = agent_name
        self._agent_kind = agent_kind
        self._decoder = LineDecoder() if decode_protocol else None
        self._on_event = on_event
        self._text = {
            stream: codecs.getincrementaldecoder("utf-8")(errors="replace")
            for stream in Stream
        }
        self._stderr_tail = ""
        self._error: BaseException | None = None

    @property
    def stderr_tail(self) -> str:
        return self._stderr_tail

    async def drain(self, channel: ChunkChannel) -> None:
        """Persist everything from *channel*, then flush the decoder."""
        async for chunk in channel:
            await self._consume(chunk)

        for stream, decoder in self._text.items():
            rest = decoder.decode(b"", final=True)
            if rest:
                await self._persist(
                    LogEntryCreate(event_type="output", stream=stream.value, content=rest)
                )
        if self._decoder is not None:
            for event in self._decoder.finish():
                await self._handle_event(event)

        if self._error is not None:
            msg = f"Failed to persist transcript for {self._agent_name}: {self._error}"
            raise TranscriptPersistError(msg) from self._error

    async def _consume(self, chunk: TranscriptChunk) -> None:
        text = self._text[chunk.stream].decode(chunk.data)
        if text:
            await self._persist(
                LogEntryCreate(event_type="output", stream=chunk.stream.value, content=text)
            )
        if chunk.stream is Stream.STDERR:
            self._stderr_tail = (self._stderr_tail + text)[-_STDERR_TAIL_CHARS:]
        elif self._decoder is not None:
            for event in self._decoder.feed(chunk.data):
                await self._handle_event(event)

    async def _handle_event(self, event: ProtocolEvent) -> None:
        if event.is_empty:
            return
        await self._persist(_event_entry(event))
        if self._on_event is None or self._error is not None:
            return
        try:
            await self._on_event(event)
        except (SQLAlchemyError, OSError) as exc:
            logger.error("%s: handling %s failed: %s", self._agent_name, event.type, exc)
            self._error = exc

    async def _persist(self, entry: LogEntryCreate) -> None:
        if self._error is not None:
            return
        try:
            await asyncio.to_thread(
                self._store.append_log, self._agent_name, self._agent_kind, entry
            )
        except (SQLAlchemyError, OSError) as exc:
            logger.error("%s: transcript write failed: %s", self._agent_name, exc)
            self._error = exc


def _event_entry(event: ProtocolEvent) -> LogEntryCreate:
    """Map a decoded event onto a transcript entry."""
    match event:
        case ItemCompletedEvent(item=item) if item is not None:
            category = item.category
            content = item.text or ""
            if category == "command_execution":
                content = item.aggregated_output or ""
            return LogEntryCreate(
                event_type=category or event.type,
                content=content,
                command=item.command,
                exit_code=item.exit_code,
                status=item.status or event.status,
                raw_json=event.raw,
            )
        case ItemStartedEvent(item=item) if item is not None:
            return LogEntryCreate(
                event_type=event.type,
                content=item.text or "",
                command=item.command,
                status=item.status or event.status,
                raw_json=event.raw,
            )
        case TurnFailedEvent():
            return LogEntryCreate(
                event_type=event.type, content=event.message, raw_json=event.raw
            )
    return LogEntryCreate(event_type=event.type, status=event.status, raw_json=event.raw)
