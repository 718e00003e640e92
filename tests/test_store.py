"""Tests for AgentStore persistence, cursors, and launch-error files."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from warden.scope import Scope
from warden.store.launch_errors import launch_error_path, read_launch_error, record_launch_error
from warden.store.models import (
    AgentKind,
    AgentStatus,
    LogEntryCreate,
    MessageCreate,
    MessageFilter,
    MessageType,
)
from warden.store.repository import AgentExistsError, AgentStore, UnknownCursorError

SCOPE = Scope(project="proj", branch="main")


def _make_store(tmp_path: Path, scope: Scope = SCOPE) -> AgentStore:
    store = AgentStore(tmp_path / "warden.db", scope)
    store.init_schema()
    return store


def _create(store: AgentStore, name: str = "alpha", kind: AgentKind = AgentKind.CLAUDE) -> None:
    store.create_agent(
        name=name, kind=kind, task="do it", status=AgentStatus.BUSY, session_token="tok"
    )


class TestAgents:
    def test_create_and_get(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        _create(store)
        agent = store.require_agent("alpha")
        assert agent.kind is AgentKind.CLAUDE
        assert agent.status is AgentStatus.BUSY
        assert agent.session_token == "tok"
        assert agent.created_at.tzinfo is not None
        assert not agent.archived

    def test_duplicate_name_in_scope_rejected(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        _create(store)
        with pytest.raises(AgentExistsError):
            _create(store)

    def test_same_name_in_other_scope_allowed(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        other = _make_store(tmp_path, Scope(project="proj", branch="feature"))
        _create(store)
        _create(other)
        assert store.agent_names() == {"alpha"}
        assert other.agent_names() == {"alpha"}

    def test_guarded_update(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        _create(store)
        assert not store.update_agent(
            "alpha", expected=(AgentStatus.WAITING,), status=AgentStatus.COMPLETE
        )
        assert store.update_agent(
            "alpha", expected=(AgentStatus.BUSY,), status=AgentStatus.COMPLETE
        )
        assert store.require_agent("alpha").status is AgentStatus.COMPLETE

    def test_column_guard(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        _create(store)
        assert store.update_agent("alpha", where={"pid": None}, pid=10)
        assert not store.update_agent("alpha", where={"pid": None}, pid=20)
        assert not store.update_agent("alpha", where={"pid": 20}, pid=None)
        assert store.update_agent("alpha", where={"pid": 10}, pid=None)
        assert store.require_agent("alpha").pid is None

    def test_update_missing_agent(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        assert store.update_agent("ghost", pid=5) is False

    def test_list_agents_filters(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        _create(store, "a")
        _create(store, "b")
        store.update_agent("b", status=AgentStatus.COMPLETE, archived_at=datetime.now(tz=UTC))
        assert [a.name for a in store.list_agents()] == ["a", "b"]
        assert [a.name for a in store.list_agents(include_archived=False)] == ["a"]
        assert [a.name for a in store.list_agents(statuses=(AgentStatus.BUSY,))] == ["a"]

    def test_delete(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        _create(store)
        assert store.delete_agent("alpha")
        assert store.get_agent("alpha") is None
        assert not store.delete_agent("alpha")


class TestLogPagination:
    def test_equal_timestamps_are_ordered_by_insertion(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        fixed = datetime(2026, 1, 2, 3, 4, 5, 999_000, tzinfo=UTC)
        with patch("warden.store.repository.utc_now", return_value=fixed):
            ids = [
                store.append_log("alpha", "claude", LogEntryCreate("output", content=str(i))).id
                for i in range(5)
            ]

        entries = store.list_logs("alpha")
        assert [e.id for e in entries] == ids
        assert all(e.created_at == fixed.replace(microsecond=0) for e in entries)

        after_second = store.list_logs("alpha", since_id=ids[1])
        assert [e.content for e in after_second] == ["2", "3", "4"]
        assert store.list_logs("alpha", since_id=ids[-1]) == []

    def test_cursor_spans_timestamps(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        base = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
        times = [base, base, base + timedelta(seconds=1), base + timedelta(seconds=1)]
        ids = []
        for i, when in enumerate(times):
            with patch("warden.store.repository.utc_now", return_value=when):
                ids.append(
                    store.append_log("alpha", "claude", LogEntryCreate("output", content=str(i))).id
                )

        assert [e.content for e in store.list_logs("alpha", since_id=ids[0])] == ["1", "2", "3"]
        assert [e.content for e in store.list_logs("alpha", since_id=ids[1])] == ["2", "3"]
        assert [e.content for e in store.list_logs("alpha", since_id=ids[0], limit=1)] == ["1"]

    def test_unknown_cursor(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        with pytest.raises(UnknownCursorError):
            store.list_logs("alpha", since_id="nope")

    def test_tail_returns_last_entries_oldest_first(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        for i in range(5):
            store.append_log("alpha", "claude", LogEntryCreate("output", content=str(i)))
        assert [e.content for e in store.tail_logs("alpha", 2)] == ["3", "4"]

    def test_logs_are_per_agent(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        store.append_log("alpha", "claude", LogEntryCreate("output", content="a"))
        store.append_log("beta", "codex", LogEntryCreate("output", content="b"))
        assert [e.content for e in store.list_logs("beta")] == ["b"]

    def test_count(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        assert store.count_logs("alpha") == 0
        for i in range(3):
            store.append_log("alpha", "claude", LogEntryCreate("output", content=str(i)))
        assert store.count_logs("alpha") == 3
        assert store.count_logs("beta") == 0


class TestMessages:
    def test_post_and_filter(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        first = store.post_message(
            MessageCreate(from_agent="orchestrator", to_agent="alpha", type=MessageType.PROMPT, content="go")
        )
        store.post_message(MessageCreate(from_agent="alpha", type=MessageType.EXIT, content="done"))
        store.post_message(
            MessageCreate(from_agent="alpha", type=MessageType.QUESTION, content="why?", mentions=["bob"])
        )

        assert first.mentions == []
        assert first.read_by == []
        assert [m.content for m in store.list_messages()] == ["go", "done", "why?"]
        assert [m.content for m in store.list_messages(MessageFilter(type=MessageType.EXIT))] == ["done"]
        assert [m.content for m in store.list_messages(MessageFilter(from_agent="alpha"))] == [
            "done",
            "why?",
        ]
        assert [m.content for m in store.list_messages(MessageFilter(since_id=first.id))] == [
            "done",
            "why?",
        ]
        assert store.list_messages(MessageFilter(limit=1))[0].content == "go"
        assert store.list_messages(MessageFilter(type=MessageType.QUESTION))[0].mentions == ["bob"]

    def test_latest_prompt(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        assert store.latest_prompt("alpha") is None
        for text in ("one", "two"):
            store.post_message(
                MessageCreate(
                    from_agent="orchestrator", to_agent="alpha", type=MessageType.PROMPT, content=text
                )
            )
        latest = store.latest_prompt("alpha")
        assert latest is not None
        assert latest.content == "two"

    def test_mentions_last_and_unread(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        for i, mentions in enumerate([["bob"], [], ["bob", "eve"], []]):
            store.post_message(
                MessageCreate(from_agent="alpha", type=MessageType.SYSTEM, content=f"m{i}", mentions=mentions)
            )

        def contents(selection: MessageFilter) -> list[str]:
            return [m.content for m in store.list_messages(selection)]

        assert contents(MessageFilter(mention="bob")) == ["m0", "m2"]
        assert contents(MessageFilter(last=2)) == ["m2", "m3"]
        assert contents(MessageFilter(mention="bob", last=1)) == ["m2"]
        assert contents(MessageFilter(last=0)) == []

        first_two = store.list_messages(MessageFilter(limit=2))
        assert store.mark_messages_read([m.id for m in first_two], "bob") == 2
        assert store.mark_messages_read([m.id for m in first_two], "bob") == 0
        assert contents(MessageFilter(unread_by="bob")) == ["m2", "m3"]
        assert contents(MessageFilter(unread_by="eve")) == ["m0", "m1", "m2", "m3"]
        assert store.list_messages(MessageFilter(limit=1))[0].read_by == ["bob"]

    def test_unknown_message_cursor(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        with pytest.raises(UnknownCursorError):
            store.list_messages(MessageFilter(since_id="missing"))


class TestLaunchErrors:
    def test_path_layout(self, tmp_path: Path) -> None:
        path = launch_error_path(tmp_path, Scope("proj", "feature/x"), "alpha")
        assert path == tmp_path / "orchestrators" / "proj" / "feature-x" / "launch-errors" / "alpha.log"

    def test_record_and_read(self, tmp_path: Path) -> None:
        written = record_launch_error(tmp_path, SCOPE, "alpha", "Command not found: claude\n")
        assert written is not None and written.is_file()
        text = read_launch_error(tmp_path, SCOPE, "alpha")
        assert text is not None
        assert text.endswith("Command not found: claude\n")

    def test_missing_file(self, tmp_path: Path) -> None:
        assert read_launch_error(tmp_path, SCOPE, "nobody") is None

    def test_unwritable_location_is_logged_not_raised(self, tmp_path: Path) -> None:
        blocker = tmp_path / "orchestrators"
        blocker.write_text("not a directory")
        assert record_launch_error(tmp_path, SCOPE, "alpha", "boom") is None
