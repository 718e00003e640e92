"""Configuration models and parser for warden.yaml."""

from warden.config.models import (
    AgentCommandConfig,
    SweepConfig,
    TranscriptConfig,
    WardenConfig,
)
from warden.config.parser import ConfigError, load_config

__all__ = [
    "AgentCommandConfig",
    "ConfigError",
    "SweepConfig",
    "TranscriptConfig",
    "WardenConfig",
    "load_config",
]
