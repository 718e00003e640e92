"""Merge a child's stdout and stderr into one ordered chunk sequence.

Two reader tasks pull from the child's pipes and feed a single
:class:`TranscriptMerger`.  The merger keeps one pending buffer tagged with
the stream it came from:

* bytes from the same stream accumulate, and every full ``buffer_size``
  slice is emitted as soon as it exists;
* a write from the *other* stream first flushes whatever is pending, so
  chunks come out in the order the bytes were read;
* a stream that stays quiet for ``flush_after`` seconds flushes the pending
  remainder, bounding latency;
* once both streams reach EOF the remainder is flushed and the channel is
  closed.  Closing the channel is the only end-of-transcript signal.

The channel is bounded, so a slow consumer applies backpressure to the
readers (and ultimately to the child) instead of growing memory.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import IO

from warden.constants import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_CHANNEL_CAPACITY,
    DEFAULT_FLUSH_AFTER,
)

logger = logging.getLogger(__name__)


class Stream(StrEnum):
    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True, slots=True)
class TranscriptChunk:
    """A contiguous slice of bytes read from one of the child's streams."""

    stream: Stream
    data: bytes

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")


class ChannelClosedError(RuntimeError):
    """Raised when writing to a channel that has already been closed."""


class ChunkChannel:
    """Bounded, single-consumer async channel of :class:`TranscriptChunk`.

    Iterate with ``async for``; iteration ends once the producer calls
    :meth:`close` and every queued chunk has been consumed.
    """

    def __init__(self, capacity: int = DEFAULT_CHANNEL_CAPACITY) -> None:
        self._queue: asyncio.Queue[TranscriptChunk | None] = asyncio.Queue(
            maxsize=capacity
        )
        self._closed = False
        self._drained = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def put(self, chunk: TranscriptChunk) -> None:
        if self._closed:
            msg = "cannot write to a closed chunk channel"
            raise ChannelClosedError(msg)
        await self._queue.put(chunk)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(None)

    def __aiter__(self) -> ChunkChannel:
        return self

    async def __anext__(self) -> TranscriptChunk:
        if self._drained:
            raise StopAsyncIteration
        chunk = await self._queue.get()
        if chunk is None:
            self._drained = True
            raise StopAsyncIteration
        return chunk


class TranscriptMerger:
    """Shared pending buffer that turns interleaved writes into ordered chunks.

    Usable on its own (no processes involved), which is how the chunking and
    ordering rules are tested.
    """

    def __init__(
        self,
        channel: ChunkChannel,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        if buffer_size <= 0:
            msg = f"buffer_size must be positive, got {buffer_size}"
            raise ValueError(msg)
        self._channel = channel
        self._buffer_size = buffer_size
        self._pending = bytearray()
        self._pending_stream: Stream | None = None
        self._pending_since: float | None = None
        self._lock = asyncio.Lock()

    async def write(self, stream: Stream, data: bytes) -> None:
        """Append *data* read from *stream*, emitting any completed chunks."""
        if not data:
            return
        async with self._lock:
            if self._pending and self._pending_stream is not stream:
                await self._emit_pending()
            if not self._pending:
                self._pending_since = time.monotonic()
            self._pending_stream = stream
            self._pending.extend(data)
            while len(self._pending) >= self._buffer_size:
                piece = bytes(self._pending[: self._buffer_size])
                del self._pending[: self._buffer_size]
                await self._channel.put(TranscriptChunk(stream, piece))
            if not self._pending:
                self._pending_since = None

    async def flush(self) -> None:
        """Emit whatever is pending, regardless of size."""
        async with self._lock:
            await self._emit_pending()

    async def flush_stale(self, max_age: float) -> None:
        """Emit pending bytes only if they have waited at least *max_age* seconds."""
        async with self._lock:
            if self._pending_since is None:
                return
            if time.monotonic() - self._pending_since >= max_age:
                await self._emit_pending()

    async def close(self) -> None:
        """Flush the remainder and close the channel."""
        async with self._lock:
            await self._emit_pending()
            await self._channel.close()

    async def _emit_pending(self) -> None:
        if not self._pending or self._pending_stream is None:
            return
        chunk = TranscriptChunk(self._pending_stream, bytes(self._pending))
        self._pending.clear()
        self._pending_since = None
        await self._channel.put(chunk)


class StreamMultiplexer:
    """Drive two reader tasks into one :class:`ChunkChannel` for a single run."""

    def __init__(
        self,
        *,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        flush_after: float = DEFAULT_FLUSH_AFTER,
        capacity: int = DEFAULT_CHANNEL_CAPACITY,
        echo: bool = True,
    ) -> None:
        self._buffer_size = buffer_size
        self._flush_after = flush_after
        self._capacity = capacity
        self._echo = echo
        self._tasks: set[asyncio.Task[None]] = set()
        self._closer: asyncio.Task[None] | None = None

    def attach(
        self,
        stdout: asyncio.StreamReader,
        stderr: asyncio.StreamReader,
    ) -> ChunkChannel:
        """Start reading both streams and return the channel they feed."""
        if self._closer is not None:
            msg = "multiplexer is already attached to a process"
            raise RuntimeError(msg)
        channel = ChunkChannel(self._capacity)
        merger = TranscriptMerger(channel, self._buffer_size)
        readers = [
            asyncio.create_task(self._pump(stdout, Stream.STDOUT, merger)),
            asyncio.create_task(self._pump(stderr, Stream.STDERR, merger)),
        ]
        self._tasks.update(readers)
        self._closer = asyncio.create_task(self._close_when_done(readers, merger))
        return channel

    async def wait_closed(self) -> None:
        """Wait until both readers have finished and the channel is closed."""
        if self._closer is not None:
            await self._closer

    async def _pump(
        self,
        reader: asyncio.StreamReader,
        stream: Stream,
        merger: TranscriptMerger,
    ) -> None:
        while True:
            try:
                data = await asyncio.wait_for(
                    reader.read(self._buffer_size), timeout=self._flush_after
                )
            except TimeoutError:
                await merger.flush_stale(self._flush_after)
                continue
            if not data:
                return
            if self._echo:
                _echo(stream, data)
            await merger.write(stream, data)

    async def _close_when_done(
        self,
        readers: list[asyncio.Task[None]],
        merger: TranscriptMerger,
    ) -> None:
        try:
            results = await asyncio.gather(*readers, return_exceptions=True)
            for result in results:
                if isinstance(result, BaseException) and not isinstance(
                    result, asyncio.CancelledError
                ):
                    logger.error("Transcript reader failed: %s", result)
        finally:
            await merger.close()
            self._tasks.difference_update(readers)


def _echo(stream: Stream, data: bytes) -> None:
    target: IO[str] = sys.stdout if stream is Stream.STDOUT else sys.stderr
    raw = getattr(target, "buffer", None)
    try:
        if raw is not None:
            raw.write(data)
            raw.flush()
        else:
            target.write(data.decode("utf-8", errors="replace"))
            target.flush()
    except (OSError, ValueError) as exc:
        logger.debug("Echo to %s failed: %s", stream, exc)
