"""Agent lifecycle state machine.

All agent-row mutations go through :class:`AgentLifecycle`.  Terminal
finalization is a single guarded update that only succeeds while the agent
is ``busy``, so whichever of "protocol said it failed" and "process exited"
lands first decides the outcome and later signals are no-ops.
"""

from __future__ import annotations

import logging
import os
from uuid import uuid4

from warden.store.models import AgentKind, AgentStatus, AgentView
from warden.store.repository import AgentStore, utc_now

logger = logging.getLogger(__name__)

#: States from which a new prompt may restart the agent.
RESUMABLE = (AgentStatus.WAITING, AgentStatus.COMPLETE, AgentStatus.FAILED)


class InvalidTransitionError(Exception):
    """The requested transition is not allowed from the agent's current state."""

    def __init__(self, agent: AgentView, action: str) -> None:
        self.agent = agent
        self.action = action
        super().__init__(
            f"Cannot {action} agent '{agent.name}' while it is {agent.display_status}"
        )


class AgentLifecycle:
    """Guarded state transitions over an :class:`AgentStore`."""

    def __init__(self, store: AgentStore) -> None:
        self._store = store

    # ------------------------------------------------------------------ #
    # Creation and bookkeeping
    # ------------------------------------------------------------------ #

    def create(self, name: str, kind: AgentKind, task: str) -> AgentView:
        """Insert a new ``busy`` agent owned by this process."""
        return self._store.create_agent(
            name=name,
            kind=kind,
            task=task,
            status=AgentStatus.BUSY,
            session_token=str(uuid4()),
            owner_pid=os.getpid(),
        )

    def set_pid(self, name: str, pid: int, owner_pid: int) -> bool:
        """Record the live child and the supervisor process that owns the run."""
        return self._store.update_agent(name, pid=pid, owner_pid=owner_pid)

    def claim_pid(self, name: str, pid: int, owner_pid: int) -> bool:
        """Like :meth:`set_pid`, but only for a ``busy`` agent with no pid yet."""
        return self._store.update_agent(
            name,
            expected=(AgentStatus.BUSY,),
            where={"pid": None},
            pid=pid,
            owner_pid=owner_pid,
        )

    def release_pid(self, name: str, pid: int) -> bool:
        """Forget *pid* once it has exited, unless a newer run replaced it."""
        return self._store.update_agent(name, where={"pid": pid}, pid=None)

    def release_owner(self, name: str, owner_pid: int) -> bool:
        """Drop *owner_pid* once its run no longer holds a child."""
        return self._store.update_agent(
            name, where={"owner_pid": owner_pid, "pid": None}, owner_pid=None
        )

    def adopt_session_token(self, name: str, token: str) -> bool:
        """Replace the placeholder token with the one the agent reported."""
        if not token:
            return False
        return self._store.update_agent(name, session_token=token)

    def mark_compacted(self, name: str) -> bool:
        return self._store.update_agent(name, compacted_at=utc_now())

    def advance_peek_cursor(self, name: str, entry_id: str) -> bool:
        """Remember the last transcript entry shown by ``warden peek``."""
        return self._store.update_agent(name, peek_cursor=entry_id)

    # ------------------------------------------------------------------ #
    # Terminal transitions
    # ------------------------------------------------------------------ #

    def finalize(self, name: str, outcome: AgentStatus) -> bool:
        """Move a ``busy`` agent to *outcome*.  First writer wins.

        Returns ``True`` only for the call that actually made the transition.
        """
        if not outcome.is_terminal:
            msg = f"finalize() needs a terminal status, got {outcome}"
            raise ValueError(msg)
        won = self._store.update_agent(
            name,
            expected=(AgentStatus.BUSY,),
            status=outcome,
            completed_at=utc_now(),
            pid=None,
            owner_pid=None,
        )
        if won:
            logger.info("Agent %s finalized as %s", name, outcome)
        else:
            logger.debug("Agent %s already finalized; ignoring %s", name, outcome)
        return won

    def complete(self, name: str) -> AgentView:
        """Agent-reported completion (``warden complete``)."""
        agent = self._store.require_agent(name)
        won = self._store.update_agent(
            name,
            expected=(AgentStatus.BUSY, AgentStatus.WAITING),
            status=AgentStatus.COMPLETE,
            completed_at=utc_now(),
        )
        if not won:
            raise InvalidTransitionError(agent, "complete")
        return self._store.require_agent(name)

    # ------------------------------------------------------------------ #
    # Non-terminal transitions
    # ------------------------------------------------------------------ #

    def mark_waiting(self, name: str) -> AgentView:
        """``busy`` → ``waiting`` (the agent asked a question)."""
        agent = self._store.require_agent(name)
        if not self._store.update_agent(
            name, expected=(AgentStatus.BUSY,), status=AgentStatus.WAITING
        ):
            raise InvalidTransitionError(agent, "mark waiting")
        return self._store.require_agent(name)

    def interrupt(self, name: str) -> AgentView:
        """Park an interrupted agent in ``waiting`` and forget its pid."""
        self._store.require_agent(name)
        self._store.update_agent(name, status=AgentStatus.WAITING, pid=None, owner_pid=None)
        return self._store.require_agent(name)

    def resume(self, name: str) -> AgentView:
        """Restart a finished, waiting, or archived agent: back to ``busy``.

        Clears ``completed_at`` and the archived flag and records this process
        as the owner.  Rejected while the agent is already ``busy``.
        """
        agent = self._store.require_agent(name)
        won = self._store.update_agent(
            name,
            expected=RESUMABLE,
            status=AgentStatus.BUSY,
            completed_at=None,
            archived_at=None,
            pid=None,
            owner_pid=os.getpid(),
        )
        if not won:
            raise InvalidTransitionError(agent, "resume")
        return self._store.require_agent(name)

    def archive(self, name: str) -> AgentView:
        """Hide a finished agent.  Archiving an archived agent is a no-op."""
        agent = self._store.require_agent(name)
        if agent.archived:
            return agent
        won = self._store.update_agent(
            name,
            expected=(AgentStatus.COMPLETE, AgentStatus.FAILED),
            archived_at=utc_now(),
        )
        if not won:
            raise InvalidTransitionError(agent, "archive")
        return self._store.require_agent(name)

    def unarchive(self, name: str) -> AgentView:
        agent = self._store.require_agent(name)
        if not agent.archived:
            return agent
        self._store.update_agent(name, archived_at=None)
        return self._store.require_agent(name)

    def remove(self, name: str) -> bool:
        return self._store.delete_agent(name)
