"""Agent naming, prompt text, and per-flavor command lines."""

from __future__ import annotations

import re
from collections.abc import Container

from warden.config.models import WardenConfig
from warden.constants import MAX_AGENT_NAME_LENGTH
from warden.store.models import AgentKind

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NON_NAME = re.compile(r"[^a-z0-9-]")
_HYPHENS = re.compile(r"-+")

_INSTRUCTIONS = """\
When you need input from the orchestrator, run:
  {bin} ask --id {name} "<your question>"
and stop; you will be resumed with the answer.

When the task is finished, run:
  {bin} complete --id {name} "<short summary of what you did>"
"""


def generate_name(task: str, taken: Container[str]) -> str:
    """Derive a unique agent name from *task*.

    Lower-case alphanumerics only, at most 16 characters, ``agent`` when
    nothing is left; collisions get ``-2``, ``-3``, ...
    """
    slug = _NON_ALNUM.sub("", task.lower())[:MAX_AGENT_NAME_LENGTH] or "agent"
    return _first_free(slug, taken)


def clean_name(name: str) -> str:
    """Normalize a user-supplied name: lower-case, alphanumerics and single hyphens."""
    slug = _HYPHENS.sub("-", _NON_NAME.sub("", name.lower())).strip("-")
    return slug or "agent"


def _first_free(base: str, taken: Container[str]) -> str:
    candidate = base
    counter = 2
    while candidate in taken:
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate


def build_spawn_prompt(
    name: str,
    task: str,
    *,
    files: str = "",
    context: str = "",
    warden_bin: str = "warden",
) -> str:
    lines = [f"You are an agent working on: {task}", "", f"Your agent ID: {name}"]
    if files:
        lines.append(f"Relevant files: {files}")
    if context:
        lines.append(f"Additional context: {context}")
    lines.append("")
    lines.append(_INSTRUCTIONS.format(bin=warden_bin, name=name))
    return "\n".join(lines)


def spawn_argv(config: WardenConfig, kind: AgentKind, prompt: str, session_token: str) -> list[str]:
    """Command line for a fresh run."""
    command = config.command_for(kind.value)
    if kind is AgentKind.CLAUDE:
        return [command.binary, *command.extra_args, "-p", prompt, "--session-id", session_token]
    return [
        command.binary,
        "exec",
        "--json",
        "--skip-git-repo-check",
        "-s",
        "danger-full-access",
        *command.extra_args,
        prompt,
    ]


def resume_argv(config: WardenConfig, kind: AgentKind, message: str, session_token: str) -> list[str]:
    """Command line that continues an existing conversation."""
    command = config.command_for(kind.value)
    if kind is AgentKind.CLAUDE:
        return [command.binary, *command.extra_args, "--resume", session_token, "-p", message]
    return [
        command.binary,
        "exec",
        "--json",
        "--skip-git-repo-check",
        "-s",
        "danger-full-access",
        *command.extra_args,
        "resume",
        session_token,
        message,
    ]


def summarize(text: str, limit: int = 200) -> str:
    """First line of *text*, truncated, for the message feed."""
    first = text.strip().splitlines()[0] if text.strip() else ""
    if len(first) > limit:
        return first[: limit - 3] + "..."
    return first
