"""SQLModel ORM tables for agent state, transcripts, and messages."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Text
from sqlmodel import Field, SQLModel


class AgentRow(SQLModel, table=True):
    __tablename__ = "agents"  # type: ignore[assignment]

    project: str = Field(primary_key=True)
    branch: str = Field(primary_key=True)
    name: str = Field(primary_key=True)
    kind: str
    task: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    status: str = Field(index=True)
    session_token: str
    pid: int | None = None
    owner_pid: int | None = None
    peek_cursor: str | None = None
    completed_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    archived_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    compacted_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class LogRow(SQLModel, table=True):
    __tablename__ = "logs"  # type: ignore[assignment]
    __table_args__ = (
        Index("ix_logs_agent_created", "project", "branch", "agent_name", "created_at", "seq"),
    )

    seq: int | None = Field(default=None, primary_key=True)
    id: str = Field(unique=True, index=True)
    project: str
    branch: str
    agent_name: str
    agent_kind: str
    event_type: str
    stream: str | None = None
    content: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    command: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    exit_code: int | None = None
    status: str | None = None
    raw_json: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class MessageRow(SQLModel, table=True):
    __tablename__ = "messages"  # type: ignore[assignment]
    __table_args__ = (Index("ix_messages_scope_created", "project", "branch", "created_at", "seq"),)

    seq: int | None = Field(default=None, primary_key=True)
    id: str = Field(unique=True, index=True)
    project: str
    branch: str
    from_agent: str
    to_agent: str | None = None
    type: str = Field(index=True)
    content: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    mentions_json: str = "[]"
    read_by_json: str = "[]"
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
