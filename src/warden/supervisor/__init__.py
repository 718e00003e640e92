"""Agent lifecycle, transcript persistence, and the supervisor command surface."""

from warden.supervisor.lifecycle import AgentLifecycle, InvalidTransitionError
from warden.supervisor.sink import TranscriptPersistError, TranscriptSink
from warden.supervisor.supervisor import AgentRunError, AgentSupervisor, SpawnOptions
from warden.supervisor.sweep import LivenessSweep

__all__ = [
    "AgentLifecycle",
    "AgentRunError",
    "AgentSupervisor",
    "InvalidTransitionError",
    "LivenessSweep",
    "SpawnOptions",
    "TranscriptPersistError",
    "TranscriptSink",
]
