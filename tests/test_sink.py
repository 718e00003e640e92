"""Tests for TranscriptSink persistence and event dispatch."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from warden.process.multiplexer import ChunkChannel, Stream, TranscriptChunk
from warden.protocol.events import ThreadStartedEvent, TurnFailedEvent
from warden.scope import Scope
from warden.store.repository import AgentStore
from warden.supervisor.sink import TranscriptPersistError, TranscriptSink


def _make_store(tmp_path: Path) -> AgentStore:
    store = AgentStore(tmp_path / "warden.db", Scope("proj", "main"))
    store.init_schema()
    return store


async def _channel_of(*chunks: tuple[Stream, bytes]) -> ChunkChannel:
    channel = ChunkChannel(capacity=len(chunks) + 1)
    for stream, data in chunks:
        await channel.put(TranscriptChunk(stream, data))
    await channel.close()
    return channel


def _jsonl(*events: dict[str, object]) -> bytes:
    return b"".join(json.dumps(e).encode() + b"\n" for e in events)


class TestPlainTranscript:
    async def test_every_chunk_becomes_an_output_entry(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        channel = await _channel_of(
            (Stream.STDOUT, b"hello\n"),
            (Stream.STDERR, b"warning: x\n"),
            (Stream.STDOUT, b"bye\n"),
        )
        sink = TranscriptSink(store, "alpha", "claude")
        await sink.drain(channel)

        entries = store.list_logs("alpha")
        assert [(e.event_type, e.stream, e.content) for e in entries] == [
            ("output", "stdout", "hello\n"),
            ("output", "stderr", "warning: x\n"),
            ("output", "stdout", "bye\n"),
        ]
        assert sink.stderr_tail == "warning: x\n"

    async def test_plain_agents_do_not_decode(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        on_event = AsyncMock()
        channel = await _channel_of((Stream.STDOUT, _jsonl({"type": "thread.started", "thread_id": "t"})))
        await TranscriptSink(store, "alpha", "claude", on_event=on_event).drain(channel)
        on_event.assert_not_awaited()
        assert [e.event_type for e in store.list_logs("alpha")] == ["output"]

    async def test_split_multibyte_text_is_kept_whole(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        data = "naïve\n".encode()
        cut = data.index("ï".encode()) + 1
        channel = await _channel_of((Stream.STDOUT, data[:cut]), (Stream.STDOUT, data[cut:]))
        await TranscriptSink(store, "alpha", "claude").drain(channel)
        assert "".join(e.content for e in store.list_logs("alpha")) == "naïve\n"


class TestProtocolTranscript:
    async def test_events_are_logged_and_dispatched(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        on_event = AsyncMock()
        payload = _jsonl(
            {"type": "thread.started", "thread_id": "th-1"},
            {
                "type": "item.completed",
                "item": {
                    "type": "exec_command",
                    "command": "pytest",
                    "aggregated_output": "1 passed",
                    "exit_code": 0,
                    "status": "completed",
                },
            },
            {"type": "item.completed", "item": {"type": "assistant_message", "text": "Done."}},
        )
        channel = await _channel_of((Stream.STDOUT, b"not json\n" + payload))
        await TranscriptSink(
            store, "alpha", "codex", decode_protocol=True, on_event=on_event
        ).drain(channel)

        entries = store.list_logs("alpha")
        assert [e.event_type for e in entries] == [
            "output",
            "thread.started",
            "command_execution",
            "agent_message",
        ]
        command = entries[2]
        assert command.command == "pytest"
        assert command.content == "1 passed"
        assert command.exit_code == 0
        assert command.status == "completed"
        assert command.raw_json is not None and "exec_command" in command.raw_json
        assert entries[3].content == "Done."

        dispatched = [call.args[0] for call in on_event.await_args_list]
        assert isinstance(dispatched[0], ThreadStartedEvent)
        assert len(dispatched) == 3

    async def test_unterminated_final_line_is_flushed(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        on_event = AsyncMock()
        channel = await _channel_of(
            (Stream.STDOUT, b'{"type":"turn.failed","error":{"message":"quota"}}')
        )
        await TranscriptSink(
            store, "alpha", "codex", decode_protocol=True, on_event=on_event
        ).drain(channel)

        event = on_event.await_args.args[0]
        assert isinstance(event, TurnFailedEvent)
        assert store.list_logs("alpha")[-1].content == "quota"

    async def test_stderr_is_not_decoded(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        on_event = AsyncMock()
        channel = await _channel_of((Stream.STDERR, _jsonl({"type": "turn.started"})))
        await TranscriptSink(
            store, "alpha", "codex", decode_protocol=True, on_event=on_event
        ).drain(channel)
        on_event.assert_not_awaited()


class TestPersistFailures:
    async def test_channel_is_drained_then_error_raised(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        channel = await _channel_of(
            (Stream.STDOUT, b"one\n"),
            (Stream.STDOUT, b"two\n"),
            (Stream.STDOUT, b"three\n"),
        )
        failure = OperationalError("INSERT", {}, Exception("disk I/O error"))
        with (
            patch.object(store, "append_log", side_effect=failure) as append,
            pytest.raises(TranscriptPersistError, match="alpha"),
        ):
            await TranscriptSink(store, "alpha", "claude").drain(channel)

        assert append.call_count == 1
        with pytest.raises(StopAsyncIteration):
            await channel.__anext__()

    async def test_callback_storage_error_fails_the_drain(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        on_event = AsyncMock(side_effect=OSError("read-only"))
        channel = await _channel_of((Stream.STDOUT, _jsonl({"type": "turn.started"})))
        with pytest.raises(TranscriptPersistError):
            await TranscriptSink(
                store, "alpha", "codex", decode_protocol=True, on_event=on_event
            ).drain(channel)
