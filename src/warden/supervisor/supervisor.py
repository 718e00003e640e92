"""AgentSupervisor: the command surface over launch, capture, and lifecycle."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from collections.abc import Awaitable, Callable, Sequence
from contextlib import ExitStack
from dataclasses import dataclass
from functools import partial
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from warden.config.models import WardenConfig
from warden.constants import (
    HOME_ENV_VAR,
    MSG_DIED,
    MSG_EXIT_FAILED,
    MSG_EXIT_SUCCESS,
    MSG_INTERRUPTED,
    MSG_KILLED,
    ORCHESTRATOR_SENDER,
)
from warden.process.launcher import LaunchError, LaunchMode, ProcessLauncher
from warden.process.liveness import is_process_running, send_signal
from warden.process.multiplexer import ChunkChannel
from warden.protocol.events import (
    ContextCompactedEvent,
    ProtocolEvent,
    ThreadStartedEvent,
    TurnFailedEvent,
)
from warden.store.launch_errors import record_launch_error
from warden.store.models import (
    AgentKind,
    AgentStatus,
    AgentView,
    LogEntryCreate,
    MessageCreate,
    MessageType,
)
from warden.store.repository import AgentExistsError, AgentStore
from warden.supervisor.codex_home import codex_home_sandbox
from warden.supervisor.lifecycle import AgentLifecycle, InvalidTransitionError
from warden.supervisor.prompts import (
    build_spawn_prompt,
    clean_name,
    generate_name,
    resume_argv,
    spawn_argv,
)
from warden.supervisor.sink import TranscriptSink

logger = logging.getLogger(__name__)

#: Attempts at claiming an auto-generated name before giving up.
_NAME_ATTEMPTS = 20


class AgentRunError(Exception):
    """A run ended in failure (non-zero exit or a failed turn)."""

    def __init__(self, name: str, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.name = name
        self.exit_code = exit_code


@dataclass(frozen=True)
class SpawnOptions:
    """Per-invocation spawn settings."""

    name: str | None = None
    files: str = ""
    context: str = ""
    detach: bool = False
    cwd: Path | None = None


@dataclass
class _RunState:
    turn_failure: str | None = None


def format_stderr_preview(stderr_text: str, max_lines: int = 5) -> str:
    """Extract and format the last N non-empty lines from stderr output."""
    lines = [line for line in stderr_text.split("\n") if line.strip()]
    return "\n  ".join(lines[-max_lines:])


class AgentSupervisor:
    """Spawn, resume, signal, and reconcile agents in one scope.

    Foreground runs (:meth:`spawn`, :meth:`prompt`, :meth:`worker_spawn`)
    return once the child has exited and its transcript is fully persisted.
    Failures are raised after the agent's state has been recorded.
    """

    def __init__(
        self,
        config: WardenConfig,
        store: AgentStore,
        *,
        launcher: ProcessLauncher | None = None,
        worker_argv: Sequence[str] | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._lifecycle = AgentLifecycle(store)
        self._launcher = launcher or ProcessLauncher(config.transcript)
        self._worker_argv = list(worker_argv or [sys.executable, "-m", "warden"])

    @property
    def config(self) -> WardenConfig:
        return self._config

    @property
    def store(self) -> AgentStore:
        return self._store

    @property
    def lifecycle(self) -> AgentLifecycle:
        return self._lifecycle

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    async def spawn(
        self,
        kind: AgentKind,
        task: str,
        options: SpawnOptions | None = None,
    ) -> str:
        """Create an agent for *task* and run it.  Returns the agent name.

        With ``options.detach`` the run happens in a background
        ``worker-spawn`` process and this returns as soon as it has started.
        """
        options = options or SpawnOptions()
        agent = self._create_agent(kind, task, options.name)
        prompt = build_spawn_prompt(
            agent.name, task, files=options.files, context=options.context
        )
        self._post(
            MessageCreate(
                from_agent=ORCHESTRATOR_SENDER,
                to_agent=agent.name,
                type=MessageType.PROMPT,
                content=prompt,
            )
        )
        if options.detach:
            await self._start_worker(agent, options.cwd)
        else:
            argv = spawn_argv(self._config, kind, prompt, agent.session_token)
            await self._run(agent, argv, prompt, cwd=options.cwd)
        return agent.name

    async def worker_spawn(self, name: str, *, cwd: Path | None = None) -> None:
        """Run an agent's most recent prompt in the foreground (detached worker body)."""
        agent = self._store.require_agent(name)
        message = self._store.latest_prompt(name)
        if message is None:
            text = f"no prompt recorded for agent '{name}'"
            self._fail(agent, text)
            raise AgentRunError(name, text)
        argv = spawn_argv(self._config, agent.kind, message.content, agent.session_token)
        await self._run(agent, argv, message.content, cwd=cwd)

    async def prompt(self, name: str, text: str, *, cwd: Path | None = None) -> None:
        """Send a follow-up message, resuming the agent's conversation."""
        agent = self._lifecycle.resume(name)
        self._post(
            MessageCreate(
                from_agent=ORCHESTRATOR_SENDER,
                to_agent=name,
                type=MessageType.PROMPT,
                content=text,
            )
        )
        argv = resume_argv(self._config, agent.kind, text, agent.session_token)
        await self._run(agent, argv, text, cwd=cwd)

    def kill(self, name: str) -> bool:
        """SIGTERM the agent's process (if any) and delete the agent.

        Returns ``True`` if a live process was signalled.
        """
        agent = self._store.require_agent(name)
        signalled = False
        if agent.pid is not None and is_process_running(agent.pid):
            signalled = send_signal(agent.pid, signal.SIGTERM)
        self._post(MessageCreate(from_agent=name, type=MessageType.EXIT, content=MSG_KILLED))
        self._lifecycle.remove(name)
        logger.info("Killed agent %s (signalled=%s)", name, signalled)
        return signalled

    def interrupt(self, name: str) -> AgentView:
        """SIGINT the agent's process and park it in ``waiting``."""
        agent = self._store.require_agent(name)
        if agent.pid is None or not is_process_running(agent.pid):
            raise InvalidTransitionError(agent, "interrupt")
        send_signal(agent.pid, signal.SIGINT)
        updated = self._lifecycle.interrupt(name)
        self._post(
            MessageCreate(from_agent=name, type=MessageType.SYSTEM, content=MSG_INTERRUPTED)
        )
        return updated

    def ask(self, name: str, question: str) -> AgentView:
        """The agent needs input: ``busy`` → ``waiting`` plus a question message."""
        updated = self._lifecycle.mark_waiting(name)
        self._post(MessageCreate(from_agent=name, type=MessageType.QUESTION, content=question))
        return updated

    def complete(self, name: str, summary: str = "") -> AgentView:
        """The agent reports it is done."""
        updated = self._lifecycle.complete(name)
        self._post(
            MessageCreate(
                from_agent=name, type=MessageType.COMPLETE, content=summary or "task complete"
            )
        )
        return updated

    def archive(self, name: str) -> AgentView:
        return self._lifecycle.archive(name)

    def unarchive(self, name: str) -> AgentView:
        return self._lifecycle.unarchive(name)

    def sweep(self) -> list[str]:
        """Fail ``busy`` agents with neither a live child nor a live owning supervisor.

        Returns the names of agents this call finalized.
        """
        finalized: list[str] = []
        for agent in self._store.list_agents(statuses=(AgentStatus.BUSY,)):
            if agent.pid is not None and is_process_running(agent.pid):
                continue
            if agent.owner_pid is not None and is_process_running(agent.owner_pid):
                continue
            if self._fail(agent, MSG_DIED):
                finalized.append(agent.name)
        if finalized:
            logger.warning("Liveness sweep failed dead agents: %s", ", ".join(finalized))
        return finalized

    # ------------------------------------------------------------------ #
    # Internal
    # ------------------------------------------------------------------ #

    def _create_agent(self, kind: AgentKind, task: str, name: str | None) -> AgentView:
        if name is not None:
            return self._lifecycle.create(clean_name(name), kind, task)
        for _ in range(_NAME_ATTEMPTS):
            candidate = generate_name(task, self._store.agent_names())
            try:
                return self._lifecycle.create(candidate, kind, task)
            except AgentExistsError:
                logger.debug("Name %s was taken concurrently; retrying", candidate)
        msg = f"Could not allocate a unique agent name for task {task!r}"
        raise AgentExistsError(msg)

    async def _start_worker(self, agent: AgentView, cwd: Path | None) -> None:
        env = dict(os.environ)
        env[HOME_ENV_VAR] = str(self._config.home)
        argv = [*self._worker_argv, "worker-spawn", agent.name]
        try:
            handle = await self._launcher.launch(
                argv[0], argv[1:], env=env, mode=LaunchMode.START_DETACHED, cwd=cwd
            )
        except LaunchError as exc:
            self._fail(agent, str(exc))
            raise
        # The worker owns the run until it records the child's own pid.
        self._lifecycle.claim_pid(agent.name, handle.pid, owner_pid=handle.pid)

    async def _run(
        self,
        agent: AgentView,
        argv: list[str],
        input_text: str,
        *,
        cwd: Path | None = None,
    ) -> None:
        with ExitStack() as stack:
            env: dict[str, str] | None = None
            if agent.kind is AgentKind.CODEX:
                home = stack.enter_context(codex_home_sandbox())
                env = dict(os.environ)
                env["CODEX_HOME"] = str(home)
            self._store.append_log(
                agent.name, agent.kind.value, LogEntryCreate(event_type="input", content=input_text)
            )
            await self._capture(agent, argv, env, cwd)

    async def _capture(
        self,
        agent: AgentView,
        argv: list[str],
        env: dict[str, str] | None,
        cwd: Path | None,
    ) -> None:
        try:
            handle = await self._launcher.launch(
                argv[0], argv[1:], env=env, mode=LaunchMode.CAPTURE, cwd=cwd
            )
        except LaunchError as exc:
            self._fail(agent, str(exc))
            raise
        if handle.output is None or handle.wait is None:
            text = f"{argv[0]}: launcher returned no output stream for a captured run"
            self._fail(agent, text)
            raise LaunchError(argv[0], text)
        owner_pid = os.getpid()
        self._lifecycle.set_pid(agent.name, handle.pid, owner_pid=owner_pid)
        try:
            await self._reconcile(agent, handle.pid, handle.output, handle.wait)
        finally:
            try:
                self._lifecycle.release_owner(agent.name, owner_pid)
            except SQLAlchemyError:
                logger.exception("%s: could not release run ownership", agent.name)

    async def _reconcile(
        self,
        agent: AgentView,
        pid: int,
        output: ChunkChannel,
        wait: Callable[[], Awaitable[int]],
    ) -> None:
        state = _RunState()
        sink = TranscriptSink(
            self._store,
            agent.name,
            agent.kind.value,
            decode_protocol=agent.kind.emits_protocol,
            on_event=partial(self._on_event, agent.name, state),
        )
        drain = asyncio.create_task(sink.drain(output))
        try:
            returncode = await wait()
            # pid is only set while the child is alive, whatever the status.
            self._lifecycle.release_pid(agent.name, pid)
            # Exit is only reconciled after every chunk and event is stored.
            await asyncio.wait({drain})
        finally:
            if not drain.done():
                drain.cancel()
        persist_error = drain.exception()

        if persist_error is not None:
            try:
                self._fail(agent, str(persist_error))
            except (SQLAlchemyError, OSError):
                logger.exception("%s: could not record persistence failure", agent.name)
            raise persist_error

        if returncode != 0:
            text = f"{MSG_EXIT_FAILED}: exit status {returncode}"
            preview = format_stderr_preview(sink.stderr_tail)
            if preview:
                text += f"\n  {preview}"
            self._fail(agent, text)
            raise AgentRunError(agent.name, text, exit_code=returncode)

        if state.turn_failure is not None:
            raise AgentRunError(agent.name, state.turn_failure, exit_code=0)

        if self._lifecycle.finalize(agent.name, AgentStatus.COMPLETE):
            self._post(
                MessageCreate(from_agent=agent.name, type=MessageType.EXIT, content=MSG_EXIT_SUCCESS)
            )

    async def _on_event(self, name: str, state: _RunState, event: ProtocolEvent) -> None:
        match event:
            case ThreadStartedEvent(thread_id=thread_id) if thread_id:
                await asyncio.to_thread(self._lifecycle.adopt_session_token, name, thread_id)
            case ContextCompactedEvent():
                await asyncio.to_thread(self._lifecycle.mark_compacted, name)
            case TurnFailedEvent():
                reason = event.message or "turn failed"
                state.turn_failure = f"{MSG_EXIT_FAILED}: {reason}"
                won = await asyncio.to_thread(self._lifecycle.finalize, name, AgentStatus.FAILED)
                if won:
                    await asyncio.to_thread(
                        self._post,
                        MessageCreate(
                            from_agent=name, type=MessageType.EXIT, content=state.turn_failure
                        ),
                    )

    def _fail(self, agent: AgentView, error_text: str) -> bool:
        """Record *error_text* and finalize the agent as failed.

        The error file is always written; the exit message is only posted by
        the call that wins finalization.
        """
        record_launch_error(self._config.home, self._store.scope, agent.name, error_text)
        won = self._lifecycle.finalize(agent.name, AgentStatus.FAILED)
        if won:
            self._post(MessageCreate(from_agent=agent.name, type=MessageType.EXIT, content=error_text))
        return won

    def _post(self, message: MessageCreate) -> None:
        self._store.post_message(message)
