"""Start child processes in one of four modes and hand back a handle."""

from __future__ import annotations

import asyncio
import logging
import subprocess
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from warden.config.models import TranscriptConfig
from warden.process.multiplexer import ChunkChannel, StreamMultiplexer

logger = logging.getLogger(__name__)


class LaunchMode(StrEnum):
    #: Inherit the terminal and block until the child exits.
    RUN = "run"
    #: Inherit the terminal; return immediately with a wait handle.
    START = "start"
    #: New session, stdio to /dev/null; nothing to wait on.
    START_DETACHED = "start_detached"
    #: Pipe stdout/stderr into a transcript channel.
    CAPTURE = "capture"


class LaunchError(Exception):
    """The child could not be started at all."""

    def __init__(self, command: str, message: str, *, not_found: bool = False) -> None:
        super().__init__(message)
        self.command = command
        self.not_found = not_found


@dataclass(frozen=True)
class LaunchHandle:
    """What a caller gets back from :meth:`ProcessLauncher.launch`.

    ``output`` is only set for :attr:`LaunchMode.CAPTURE`; ``wait`` is
    ``None`` for :attr:`LaunchMode.START_DETACHED`.
    """

    pid: int
    mode: LaunchMode
    output: ChunkChannel | None = None
    wait: Callable[[], Awaitable[int]] | None = None


class ProcessLauncher:
    """Spawn external commands.

    ``env``, when given, *replaces* the inherited environment entirely;
    callers wanting to extend it start from ``os.environ`` themselves.
    """

    def __init__(self, transcript: TranscriptConfig | None = None) -> None:
        self._transcript = transcript or TranscriptConfig()

    async def launch(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        env: Mapping[str, str] | None = None,
        mode: LaunchMode = LaunchMode.CAPTURE,
        cwd: Path | None = None,
    ) -> LaunchHandle:
        """Start *command* with *args*.

        Raises:
            LaunchError: If the executable is missing or the process (or its
                pipes) cannot be created.  After a successful start, only
                the handle's ``wait`` reports the child's outcome.
        """
        argv = [command, *args]
        child_env = dict(env) if env is not None else None
        logger.debug("Launching %s (mode=%s)", argv, mode)

        try:
            match mode:
                case LaunchMode.START_DETACHED:
                    return self._start_detached(argv, child_env, cwd)
                case LaunchMode.CAPTURE:
                    return await self._start_captured(argv, child_env, cwd)
                case LaunchMode.RUN | LaunchMode.START:
                    proc = await asyncio.create_subprocess_exec(
                        *argv, env=child_env, cwd=cwd
                    )
        except FileNotFoundError as exc:
            msg = f"Command not found: {command}"
            raise LaunchError(command, msg, not_found=True) from exc
        except OSError as exc:
            msg = f"Failed to start {command}: {exc}"
            raise LaunchError(command, msg) from exc

        if mode is LaunchMode.RUN:
            returncode = await proc.wait()

            async def _finished() -> int:
                return returncode

            return LaunchHandle(pid=proc.pid, mode=mode, wait=_finished)
        return LaunchHandle(pid=proc.pid, mode=mode, wait=proc.wait)

    async def _start_captured(
        self,
        argv: list[str],
        env: dict[str, str] | None,
        cwd: Path | None,
    ) -> LaunchHandle:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
            cwd=cwd,
            start_new_session=True,
        )
        if proc.stdout is None or proc.stderr is None:
            msg = f"Failed to open output pipes for {argv[0]}"
            raise LaunchError(argv[0], msg)
        multiplexer = StreamMultiplexer(
            buffer_size=self._transcript.buffer_size,
            flush_after=self._transcript.flush_after,
            capacity=self._transcript.channel_capacity,
            echo=self._transcript.echo,
        )
        channel = multiplexer.attach(proc.stdout, proc.stderr)
        return LaunchHandle(
            pid=proc.pid,
            mode=LaunchMode.CAPTURE,
            output=channel,
            wait=proc.wait,
        )

    def _start_detached(
        self,
        argv: list[str],
        env: dict[str, str] | None,
        cwd: Path | None,
    ) -> LaunchHandle:
        # Not tied to the event loop so the child outlives this process.
        proc = subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            env=env,
            cwd=cwd,
            start_new_session=True,
        )
        return LaunchHandle(pid=proc.pid, mode=LaunchMode.START_DETACHED)
