"""Periodic detection of agents whose process died without reporting."""

from __future__ import annotations

import asyncio
import logging

from warden.background_loop import BackgroundLoop
from warden.supervisor.supervisor import AgentSupervisor

logger = logging.getLogger(__name__)


class LivenessSweep(BackgroundLoop):
    """Every *interval* seconds, fail ``busy`` agents whose processes are gone."""

    def __init__(
        self,
        supervisor: AgentSupervisor,
        shutdown_event: asyncio.Event,
        interval: float,
    ) -> None:
        super().__init__(shutdown_event, interval)
        self._supervisor = supervisor
        self.finalized: list[str] = []

    async def _tick(self) -> None:
        names = await asyncio.to_thread(self._supervisor.sweep)
        if names:
            logger.info("Marked %d dead agent(s) failed", len(names))
            self.finalized.extend(names)
