"""Tests for warden config models and parser."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pytest
import yaml
from pydantic import ValidationError

from warden.config.models import AgentCommandConfig, TranscriptConfig, WardenConfig
from warden.config.parser import ConfigError, load_config

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict[str, Any]) -> Path:
    """Write *data* as YAML and return the file path."""
    path.write_text(yaml.dump(data), encoding="utf-8")
    return path


# ===================================================================
# Model validation tests
# ===================================================================


class TestDefaults:
    def test_empty_config(self) -> None:
        cfg = WardenConfig.model_validate({})
        assert cfg.version == "1"
        assert cfg.claude.binary == "claude"
        assert cfg.codex.binary == "codex"
        assert cfg.transcript.buffer_size == 4096
        assert cfg.transcript.channel_capacity == 16
        assert cfg.transcript.echo is True
        assert cfg.sweep.interval == 5.0

    def test_command_for(self) -> None:
        cfg = WardenConfig()
        assert cfg.command_for("codex") is cfg.codex
        with pytest.raises(ValueError, match="Unknown agent kind"):
            cfg.command_for("gemini")


class TestHome:
    def test_data_dir_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WARDEN_HOME", str(tmp_path / "env"))
        cfg = WardenConfig(data_dir=tmp_path / "cfg")
        assert cfg.home == tmp_path / "cfg"
        assert cfg.db_path == tmp_path / "cfg" / "warden.db"

    def test_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WARDEN_HOME", str(tmp_path / "env"))
        assert WardenConfig().home == tmp_path / "env"

    def test_user_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("WARDEN_HOME", raising=False)
        assert WardenConfig().home == Path.home() / ".warden"


class TestAgentCommand:
    @pytest.mark.parametrize("binary", ["claude", "/usr/local/bin/codex", "~/bin/claude-2.1"])
    def test_valid_binaries(self, binary: str) -> None:
        assert AgentCommandConfig(binary=binary).binary == binary

    @pytest.mark.parametrize("binary", ["claude --verbose", "codex;rm", "$(whoami)", ""])
    def test_invalid_binaries(self, binary: str) -> None:
        with pytest.raises(ValidationError, match="Invalid binary"):
            AgentCommandConfig(binary=binary)

    def test_extra_args(self) -> None:
        cmd = AgentCommandConfig.model_validate({"binary": "claude", "extra_args": ["--model", "opus"]})
        assert cmd.extra_args == ["--model", "opus"]


class TestTranscriptBounds:
    def test_tiny_buffer_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TranscriptConfig(buffer_size=8)

    def test_zero_capacity_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TranscriptConfig(channel_capacity=0)


class TestVersionAndExtras:
    def test_unsupported_version(self) -> None:
        with pytest.raises(ValidationError, match="Unsupported config version"):
            WardenConfig.model_validate({"version": "2"})

    def test_top_level_extra_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            WardenConfig.model_validate({"agents": {}})

    def test_nested_extra_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            WardenConfig.model_validate({"claude": {"binary": "claude", "model": "x"}})


# ===================================================================
# Parser tests
# ===================================================================


class TestLoadConfig:
    def test_from_file(self, tmp_path: Path) -> None:
        cfg_file = _write_yaml(
            tmp_path / "warden.yaml", {"version": "1", "codex": {"binary": "codex-nightly"}}
        )
        cfg = load_config(cfg_file)
        assert cfg.codex.binary == "codex-nightly"

    def test_default_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        _write_yaml(tmp_path / "warden.yaml", {"sweep": {"interval": 1.5}})
        assert load_config().sweep.interval == 1.5

    def test_missing_default_uses_defaults(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        assert load_config() == WardenConfig()

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path: Path) -> None:
        empty = tmp_path / "warden.yaml"
        empty.write_text("", encoding="utf-8")
        assert load_config(empty).version == "1"

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.yaml"
        bad.write_text("{{{{not yaml", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(bad)

    def test_yaml_not_mapping(self, tmp_path: Path) -> None:
        bad = tmp_path / "list.yaml"
        bad.write_text("- item1\n- item2\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(bad)

    def test_validation_error_messages(self, tmp_path: Path) -> None:
        cfg_file = _write_yaml(tmp_path / "bad.yaml", {"claude": {"extra_args": []}})
        with pytest.raises(ConfigError, match="validation failed") as exc_info:
            load_config(cfg_file)
        assert "claude → binary: This field is required" in str(exc_info.value)

    def test_unknown_field_message(self, tmp_path: Path) -> None:
        cfg_file = _write_yaml(tmp_path / "bad.yaml", {"agents": {}})
        with pytest.raises(ConfigError, match="agents: Unknown field"):
            load_config(cfg_file)

    def test_dotenv_beside_config_is_loaded(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("WARDEN_TEST_DOTENV", raising=False)
        (tmp_path / ".env").write_text("WARDEN_TEST_DOTENV=loaded\n", encoding="utf-8")
        cfg_file = _write_yaml(tmp_path / "warden.yaml", {"version": "1"})
        try:
            load_config(cfg_file)
            assert os.environ["WARDEN_TEST_DOTENV"] == "loaded"
        finally:
            os.environ.pop("WARDEN_TEST_DOTENV", None)
