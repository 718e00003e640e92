"""Tests for scope detection and the codex home sandbox."""

from __future__ import annotations

import shutil
import stat
import subprocess
from pathlib import Path

import pytest

from warden.scope import Scope, detect_scope
from warden.supervisor.codex_home import codex_home_sandbox, user_codex_home


class TestScope:
    def test_path_sanitizes_branch(self) -> None:
        assert Scope("proj", "feature/login").path == Path("proj") / "feature-login"

    def test_str(self) -> None:
        assert str(Scope("proj", "main")) == "proj/main"

    def test_outside_git_uses_defaults(self, tmp_path: Path) -> None:
        with pytest.MonkeyPatch.context() as mp:
            mp.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
            assert detect_scope(tmp_path) == Scope("unknown", "main")

    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    def test_inside_git_checkout(self, tmp_path: Path) -> None:
        repo = tmp_path / "myproject"
        repo.mkdir()
        subprocess.run(["git", "init", "-q"], cwd=repo, check=True)
        subprocess.run(
            ["git", "-c", "user.name=t", "-c", "user.email=t@example.com",
             "commit", "-q", "--allow-empty", "-m", "init"],
            cwd=repo,
            check=True,
        )
        subprocess.run(["git", "checkout", "-q", "-b", "topic/x"], cwd=repo, check=True)
        scope = detect_scope(repo)
        assert scope.project == "myproject"
        assert scope.branch == "topic/x"

    def test_git_missing(self, tmp_path: Path) -> None:
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("warden.scope.subprocess.run", _raise_oserror)
            assert detect_scope(tmp_path) == Scope("unknown", "main")


def _raise_oserror(*args: object, **kwargs: object) -> None:
    raise FileNotFoundError("git")


class TestCodexHome:
    def test_user_home_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CODEX_HOME", str(tmp_path))
        assert user_codex_home() == tmp_path

    def test_user_home_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CODEX_HOME", raising=False)
        assert user_codex_home() == Path.home() / ".codex"

    def test_sandbox_copies_only_auth(self, tmp_path: Path) -> None:
        source = tmp_path / "real"
        source.mkdir()
        (source / "auth.json").write_text('{"k": 1}')
        (source / "sessions").mkdir()

        with codex_home_sandbox(source) as home:
            assert home != source
            copied = home / "auth.json"
            assert copied.read_text() == '{"k": 1}'
            assert stat.S_IMODE(copied.stat().st_mode) == 0o600
            assert not (home / "sessions").exists()
        assert not home.exists()

    def test_sandbox_without_auth(self, tmp_path: Path) -> None:
        with codex_home_sandbox(tmp_path) as home:
            assert list(home.iterdir()) == []
