"""
Session lifecycle state machine.

Tracks whether a workflow run is absent, starting, resuming, active or
ending, and decides whether an outgoing message starts a new run or is sent
as a follow-up to the current one.
"""

from enum import Enum
from typing import Optional

from workchat.errors import NoActiveRun
from workchat.logger import get_logger
from workchat.session.store import SessionStore

logger = get_logger(__name__)


class SessionState(str, Enum):
    ABSENT = "absent"
    STARTING = "starting"
    RESUMING = "resuming"
    ACTIVE = "active"
    ENDING = "ending"


class Route(str, Enum):
    START = "start"
    FOLLOW_UP = "follow-up"


def route(has_run_id: bool) -> Route:
    """Start a new run when no run id is known, otherwise follow up."""
    return Route.FOLLOW_UP if has_run_id else Route.START


class SessionStateMachine:
    """Owns the run id and its persisted copy."""

    def __init__(self, store: SessionStore):
        self.store = store
        self._state = SessionState.ABSENT
        self._run_id: Optional[str] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def run_id(self) -> Optional[str]:
        return self._run_id

    def next_route(self) -> Route:
        return route(self._run_id is not None)

    def initialize(self) -> Optional[str]:
        """
        Pick up a run persisted by a previous process.

        Returns the run id to reconnect to, or None when there is nothing to
        resume.
        """
        stored = self.store.get()
        if not stored:
            return None
        self._run_id = stored
        self._transition(SessionState.RESUMING)
        return stored

    def begin_start(self) -> None:
        self._transition(SessionState.STARTING)

    def abort_start(self) -> None:
        if self._state is SessionState.STARTING:
            self._transition(SessionState.ABSENT)

    def confirm_started(self, run_id: str) -> None:
        """A start response yielded a run id: persist it and go active."""
        self._run_id = run_id
        self.store.set(run_id)
        self._transition(SessionState.ACTIVE)
        logger.info(f"Workflow run {run_id} started")

    def confirm_resumed(self) -> None:
        if self._state is SessionState.RESUMING:
            self._transition(SessionState.ACTIVE)

    def reconnect_run_id(self) -> str:
        """
        Run id for a reconnect request, read fresh from the store.

        Raises:
            NoActiveRun: nothing is persisted anymore; the machine falls
                back to ABSENT.
        """
        stored = self.store.get()
        if not stored:
            self._run_id = None
            self._transition(SessionState.ABSENT)
            raise NoActiveRun()
        if stored != self._run_id:
            logger.info(f"Persisted run id changed from {self._run_id} to {stored}")
            self._run_id = stored
        return stored

    def begin_end(self) -> None:
        if self._run_id is not None:
            self._transition(SessionState.ENDING)

    def end(self) -> None:
        """Forget the run locally and in durable storage."""
        if self._run_id is not None:
            logger.info(f"Workflow run {self._run_id} ended")
        self._run_id = None
        self.store.clear()
        self._transition(SessionState.ABSENT)

    def _transition(self, new_state: SessionState) -> None:
        if new_state is not self._state:
            logger.debug(f"Session state {self._state.value} -> {new_state.value}")
        self._state = new_state
