"""Pydantic v2 models for warden.yaml configuration."""

from __future__ import annotations

import os
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

from warden.constants import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_CHANNEL_CAPACITY,
    DEFAULT_FLUSH_AFTER,
    DEFAULT_SWEEP_INTERVAL,
    HOME_ENV_VAR,
)

_BINARY_RE = re.compile(r"^[A-Za-z0-9_./~+-]+$")


class AgentCommandConfig(BaseModel):
    """How to invoke one agent CLI flavor."""

    model_config = ConfigDict(extra="forbid")

    binary: str = Field(description="Executable name or path")
    extra_args: list[str] = Field(
        default_factory=list,
        description="Arguments inserted after the flavor's own subcommand flags",
    )

    @model_validator(mode="after")
    def _validate_binary(self) -> AgentCommandConfig:
        if not _BINARY_RE.match(self.binary):
            msg = f"Invalid binary '{self.binary}' (no spaces or shell syntax)"
            raise ValueError(msg)
        return self


class TranscriptConfig(BaseModel):
    """Output capture tuning."""

    model_config = ConfigDict(extra="forbid")

    buffer_size: int = Field(
        default=DEFAULT_BUFFER_SIZE,
        ge=64,
        description="Maximum size of one transcript chunk in bytes",
    )
    channel_capacity: int = Field(
        default=DEFAULT_CHANNEL_CAPACITY,
        ge=1,
        description="Chunks buffered between capture and persistence",
    )
    flush_after: float = Field(
        default=DEFAULT_FLUSH_AFTER,
        gt=0,
        description="Seconds a quiet stream may hold pending bytes",
    )
    echo: bool = Field(
        default=True,
        description="Mirror child output onto the supervisor's own stdout/stderr",
    )


class SweepConfig(BaseModel):
    """Liveness sweep settings."""

    model_config = ConfigDict(extra="forbid")

    interval: float = Field(
        default=DEFAULT_SWEEP_INTERVAL,
        gt=0,
        description="Seconds between checks of busy agents' processes",
    )


class WardenConfig(BaseModel):
    """Top-level warden.yaml schema."""

    model_config = ConfigDict(extra="forbid")

    version: str = Field(default="1", description="Config schema version")
    data_dir: Path | None = Field(
        default=None,
        description="Where the database and launch-error files live",
    )
    claude: AgentCommandConfig = Field(
        default_factory=lambda: AgentCommandConfig(binary="claude"),
    )
    codex: AgentCommandConfig = Field(
        default_factory=lambda: AgentCommandConfig(binary="codex"),
    )
    transcript: TranscriptConfig = Field(default_factory=TranscriptConfig)
    sweep: SweepConfig = Field(default_factory=SweepConfig)

    @model_validator(mode="after")
    def _validate_version(self) -> WardenConfig:
        if self.version != "1":
            msg = f"Unsupported config version '{self.version}' (expected '1')"
            raise ValueError(msg)
        return self

    @property
    def home(self) -> Path:
        """Resolved data directory: config, then ``$WARDEN_HOME``, then ``~/.warden``."""
        if self.data_dir is not None:
            return self.data_dir.expanduser()
        env_home = os.environ.get(HOME_ENV_VAR)
        if env_home:
            return Path(env_home).expanduser()
        return Path.home() / ".warden"

    @property
    def db_path(self) -> Path:
        return self.home / "warden.db"

    def command_for(self, kind: str) -> AgentCommandConfig:
        match kind:
            case "claude":
                return self.claude
            case "codex":
                return self.codex
        msg = f"Unknown agent kind '{kind}'"
        raise ValueError(msg)
