"""Child process launching, output capture, and liveness."""

from warden.process.launcher import LaunchError, LaunchHandle, LaunchMode, ProcessLauncher
from warden.process.liveness import is_process_running, send_signal
from warden.process.multiplexer import (
    ChunkChannel,
    Stream,
    StreamMultiplexer,
    TranscriptChunk,
    TranscriptMerger,
)

__all__ = [
    "ChunkChannel",
    "LaunchError",
    "LaunchHandle",
    "LaunchMode",
    "ProcessLauncher",
    "Stream",
    "StreamMultiplexer",
    "TranscriptChunk",
    "TranscriptMerger",
    "is_process_running",
    "send_signal",
]
