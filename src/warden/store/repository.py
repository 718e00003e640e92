"""Persistent agent, transcript, and message storage backed by SQLModel + SQLite."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from sqlalchemy import and_, event, func, or_
from sqlalchemy import delete as sa_delete
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, col, create_engine, select

from warden.scope import Scope
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
from warden.store.tables import AgentRow, LogRow, MessageRow


class AgentExistsError(Exception):
    """An agent with this name already exists in the scope."""


class AgentNotFoundError(LookupError):
    """No agent with this name exists in the scope."""


class UnknownCursorError(LookupError):
    """A ``since`` cursor does not name an entry in the requested feed."""


def utc_now() -> datetime:
    """Current UTC timestamp."""

    return datetime.now(tz=UTC)


class AgentStore:
    """Scope-bound persistence facade.

    Every query is filtered by the store's :class:`Scope`; agent names are
    only unique within one scope.
    """

    def __init__(self, db_path: Path, scope: Scope) -> None:
        self.db_path = db_path
        self.scope = scope
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(
            f"sqlite:///{db_path}", connect_args={"check_same_thread": False}
        )
        event.listen(self.engine, "connect", _configure_sqlite)

    def close(self) -> None:
        """Dispose of pooled connections."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Create tables that do not exist yet."""

        SQLModel.metadata.create_all(self.engine)

    # ------------------------------------------------------------------ #
    # Agents
    # ------------------------------------------------------------------ #

    def create_agent(
        self,
        *,
        name: str,
        kind: AgentKind,
        task: str,
        status: AgentStatus,
        session_token: str,
        owner_pid: int | None = None,
    ) -> AgentView:
        now = _to_db_datetime(utc_now())
        row = AgentRow(
            project=self.scope.project,
            branch=self.scope.branch,
            name=name,
            kind=kind.value,
            task=task,
            status=status.value,
            session_token=session_token,
            owner_pid=owner_pid,
            created_at=now,
            updated_at=now,
        )
        with Session(self.engine) as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                msg = f"Agent '{name}' already exists in {self.scope}"
                raise AgentExistsError(msg) from exc
            session.refresh(row)
            return _agent_view(row)

    def get_agent(self, name: str) -> AgentView | None:
        with Session(self.engine) as session:
            row = session.exec(self._agent_query(name)).one_or_none()
            return _agent_view(row) if row is not None else None

    def require_agent(self, name: str) -> AgentView:
        agent = self.get_agent(name)
        if agent is None:
            msg = f"Agent '{name}' not found in {self.scope}"
            raise AgentNotFoundError(msg)
        return agent

    def list_agents(
        self,
        *,
        statuses: Iterable[AgentStatus] | None = None,
        include_archived: bool = True,
    ) -> list[AgentView]:
        with Session(self.engine) as session:
            query = select(AgentRow).where(
                col(AgentRow.project) == self.scope.project,
                col(AgentRow.branch) == self.scope.branch,
            )
            if statuses is not None:
                query = query.where(col(AgentRow.status).in_([s.value for s in statuses]))
            if not include_archived:
                query = query.where(col(AgentRow.archived_at).is_(None))
            rows = session.exec(query.order_by(col(AgentRow.created_at), col(AgentRow.name)))
            return [_agent_view(row) for row in rows]

    def agent_names(self) -> set[str]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(AgentRow.name).where(
                    col(AgentRow.project) == self.scope.project,
                    col(AgentRow.branch) == self.scope.branch,
                )
            )
            return set(rows)

    def update_agent(
        self,
        name: str,
        *,
        expected: Iterable[AgentStatus] | None = None,
        where: Mapping[str, Any] | None = None,
        **values: Any,
    ) -> bool:
        """Apply *values* to one agent row in a single guarded statement.

        With *expected*, the row is only touched if its current status is one
        of those listed.  *where* adds equality guards on other columns; a
        ``None`` value requires the column to be NULL.  Returns ``True`` if
        exactly one row was updated.
        """

        values = {key: _to_db_value(value) for key, value in values.items()}
        values["updated_at"] = _to_db_datetime(utc_now())
        statement = sa_update(AgentRow).where(
            col(AgentRow.project) == self.scope.project,
            col(AgentRow.branch) == self.scope.branch,
            col(AgentRow.name) == name,
        )
        if expected is not None:
            statement = statement.where(col(AgentRow.status).in_([s.value for s in expected]))
        for column, required in (where or {}).items():
            attr = col(getattr(AgentRow, column))
            statement = statement.where(attr.is_(None) if required is None else attr == required)
        with Session(self.engine) as session:
            result = session.exec(statement.values(**values))  # type: ignore[call-overload]
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    def delete_agent(self, name: str) -> bool:
        with Session(self.engine) as session:
            result = session.exec(  # type: ignore[call-overload]
                sa_delete(AgentRow).where(
                    col(AgentRow.project) == self.scope.project,
                    col(AgentRow.branch) == self.scope.branch,
                    col(AgentRow.name) == name,
                )
            )
            session.commit()
            return result.rowcount == 1

    def _agent_query(self, name: str) -> Any:
        return select(AgentRow).where(
            col(AgentRow.project) == self.scope.project,
            col(AgentRow.branch) == self.scope.branch,
            col(AgentRow.name) == name,
        )

    # ------------------------------------------------------------------ #
    # Transcript
    # ------------------------------------------------------------------ #

    def append_log(self, agent_name: str, agent_kind: str, entry: LogEntryCreate) -> LogEntry:
        """Persist one transcript entry.  Timestamps are whole seconds."""

        row = LogRow(
            id=str(uuid4()),
            project=self.scope.project,
            branch=self.scope.branch,
            agent_name=agent_name,
            agent_kind=agent_kind,
            event_type=entry.event_type,
            stream=entry.stream,
            content=entry.content,
            command=entry.command,
            exit_code=entry.exit_code,
            status=entry.status,
            raw_json=entry.raw_json,
            created_at=_to_db_datetime(utc_now().replace(microsecond=0)),
        )
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return _log_entry(row)

    def list_logs(
        self,
        agent_name: str,
        *,
        since_id: str | None = None,
        limit: int | None = None,
    ) -> list[LogEntry]:
        """Entries in ``(created_at, seq)`` order, strictly after *since_id*.

        Raises:
            UnknownCursorError: If *since_id* is not an entry of this agent.
        """

        with Session(self.engine) as session:
            query = select(LogRow).where(*self._log_scope(agent_name))
            if since_id is not None:
                cursor = session.exec(
                    select(LogRow).where(
                        *self._log_scope(agent_name), col(LogRow.id) == since_id
                    )
                ).one_or_none()
                if cursor is None:
                    msg = f"Unknown log cursor '{since_id}' for agent '{agent_name}'"
                    raise UnknownCursorError(msg)
                query = query.where(
                    or_(
                        and_(
                            col(LogRow.created_at) == cursor.created_at,
                            col(LogRow.seq) > cursor.seq,
                        ),
                        col(LogRow.created_at) > cursor.created_at,
                    )
                )
            query = query.order_by(col(LogRow.created_at), col(LogRow.seq))
            if limit is not None:
                query = query.limit(limit)
            return [_log_entry(row) for row in session.exec(query)]

    def tail_logs(self, agent_name: str, count: int) -> list[LogEntry]:
        """The last *count* entries, oldest first."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(LogRow)
                .where(*self._log_scope(agent_name))
                .order_by(col(LogRow.created_at).desc(), col(LogRow.seq).desc())
                .limit(count)
            ).all()
            return [_log_entry(row) for row in reversed(rows)]

    def count_logs(self, agent_name: str) -> int:
        with Session(self.engine) as session:
            return session.exec(
                select(func.count()).select_from(LogRow).where(*self._log_scope(agent_name))
            ).one()

    def _log_scope(self, agent_name: str) -> tuple[Any, ...]:
        return (
            col(LogRow.project) == self.scope.project,
            col(LogRow.branch) == self.scope.branch,
            col(LogRow.agent_name) == agent_name,
        )

    # ------------------------------------------------------------------ #
    # Messages
    # ------------------------------------------------------------------ #

    def post_message(self, message: MessageCreate) -> Message:
        row = MessageRow(
            id=str(uuid4()),
            project=self.scope.project,
            branch=self.scope.branch,
            from_agent=message.from_agent,
            to_agent=message.to_agent,
            type=message.type.value,
            content=message.content,
            mentions_json=json.dumps(message.mentions),
            read_by_json="[]",
            created_at=_to_db_datetime(utc_now()),
        )
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return _message(row)

    def list_messages(self, selection: MessageFilter | None = None) -> list[Message]:
        """Messages in this scope, oldest first.

        Raises:
            UnknownCursorError: If ``selection.since_id`` names no message.
        """

        selection = selection or MessageFilter()
        with Session(self.engine) as session:
            query = select(MessageRow).where(
                col(MessageRow.project) == self.scope.project,
                col(MessageRow.branch) == self.scope.branch,
            )
            if selection.since_id is not None:
                cursor = session.exec(
                    select(MessageRow).where(col(MessageRow.id) == selection.since_id)
                ).one_or_none()
                if cursor is None:
                    msg = f"Unknown message cursor '{selection.since_id}'"
                    raise UnknownCursorError(msg)
                query = query.where(col(MessageRow.seq) > cursor.seq)
            if selection.type is not None:
                query = query.where(col(MessageRow.type) == selection.type.value)
            if selection.from_agent is not None:
                query = query.where(col(MessageRow.from_agent) == selection.from_agent)
            if selection.to_agent is not None:
                query = query.where(col(MessageRow.to_agent) == selection.to_agent)
            query = query.order_by(col(MessageRow.seq))
            messages = [_message(row) for row in session.exec(query)]
        if selection.mention is not None:
            messages = [m for m in messages if selection.mention in m.mentions]
        if selection.unread_by is not None:
            messages = [m for m in messages if selection.unread_by not in m.read_by]
        if selection.last is not None:
            messages = messages[-selection.last :] if selection.last > 0 else []
        if selection.limit is not None:
            messages = messages[: selection.limit]
        return messages

    def mark_messages_read(self, message_ids: Iterable[str], reader: str) -> int:
        """Add *reader* to the ``read_by`` list of each message.  Returns the count changed."""

        changed = 0
        with Session(self.engine) as session:
            rows = session.exec(
                select(MessageRow).where(
                    col(MessageRow.project) == self.scope.project,
                    col(MessageRow.branch) == self.scope.branch,
                    col(MessageRow.id).in_(list(message_ids)),
                )
            )
            for row in rows:
                read_by = json.loads(row.read_by_json)
                if reader in read_by:
                    continue
                read_by.append(reader)
                row.read_by_json = json.dumps(read_by)
                session.add(row)
                changed += 1
            session.commit()
        return changed

    def latest_prompt(self, agent_name: str) -> Message | None:
        """Most recent prompt addressed to *agent_name*."""

        with Session(self.engine) as session:
            row = session.exec(
                select(MessageRow)
                .where(
                    col(MessageRow.project) == self.scope.project,
                    col(MessageRow.branch) == self.scope.branch,
                    col(MessageRow.type) == MessageType.PROMPT.value,
                    col(MessageRow.to_agent) == agent_name,
                )
                .order_by(col(MessageRow.seq).desc())
                .limit(1)
            ).one_or_none()
            return _message(row) if row is not None else None


def _configure_sqlite(dbapi_connection: sqlite3.Connection, _: object) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def _to_db_datetime(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def _to_db_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return _to_db_datetime(value)
    if isinstance(value, AgentStatus):
        return value.value
    return value


def _to_utc_aware_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _required_datetime(value: datetime | None, what: str) -> datetime:
    aware = _to_utc_aware_datetime(value)
    if aware is None:
        msg = f"{what} row has no created_at/updated_at timestamp"
        raise RuntimeError(msg)
    return aware


def _required_seq(seq: int | None, what: str) -> int:
    if seq is None:
        msg = f"{what} row has not been assigned a sequence number"
        raise RuntimeError(msg)
    return seq


def _agent_view(row: AgentRow) -> AgentView:
    return AgentView(
        project=row.project,
        branch=row.branch,
        name=row.name,
        kind=AgentKind(row.kind),
        task=row.task,
        status=AgentStatus(row.status),
        session_token=row.session_token,
        pid=row.pid,
        owner_pid=row.owner_pid,
        peek_cursor=row.peek_cursor,
        completed_at=_to_utc_aware_datetime(row.completed_at),
        archived_at=_to_utc_aware_datetime(row.archived_at),
        compacted_at=_to_utc_aware_datetime(row.compacted_at),
        created_at=_required_datetime(row.created_at, "agent"),
        updated_at=_required_datetime(row.updated_at, "agent"),
    )


def _log_entry(row: LogRow) -> LogEntry:
    return LogEntry(
        id=row.id,
        seq=_required_seq(row.seq, "log"),
        agent_name=row.agent_name,
        agent_kind=row.agent_kind,
        event_type=row.event_type,
        content=row.content,
        stream=row.stream,
        command=row.command,
        exit_code=row.exit_code,
        status=row.status,
        raw_json=row.raw_json,
        created_at=_required_datetime(row.created_at, "log"),
    )


def _message(row: MessageRow) -> Message:
    return Message(
        id=row.id,
        seq=_required_seq(row.seq, "message"),
        from_agent=row.from_agent,
        to_agent=row.to_agent,
        type=MessageType(row.type),
        content=row.content,
        mentions=json.loads(row.mentions_json),
        read_by=json.loads(row.read_by_json),
        created_at=_required_datetime(row.created_at, "message"),
    )
