from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from .errors import PreconditionFailed


class SessionStatus(str, Enum):
    INITIAL = "initial"
    GENERATING = "generating"
    READY = "ready"
    MODIFYING = "modifying"
    UPDATED = "updated"


SUBMIT_PROMPT = "submit_prompt"
SUBMIT_MODIFICATION = "submit_modification"
STREAM_COMPLETE = "stream_complete"

# Session lifecycle keyed by (current status, event). There is no terminal
# state: a session cycles between READY/UPDATED and MODIFYING for its lifetime.
SESSION_TRANSITIONS: Dict[Tuple[SessionStatus, str], SessionStatus] = {
    (SessionStatus.INITIAL, SUBMIT_PROMPT): SessionStatus.GENERATING,
    (SessionStatus.GENERATING, STREAM_COMPLETE): SessionStatus.READY,
    (SessionStatus.READY, SUBMIT_MODIFICATION): SessionStatus.MODIFYING,
    (SessionStatus.UPDATED, SUBMIT_MODIFICATION): SessionStatus.MODIFYING,
    (SessionStatus.MODIFYING, STREAM_COMPLETE): SessionStatus.UPDATED,
}

BUSY_STATES: FrozenSet[SessionStatus] = frozenset({SessionStatus.GENERATING, SessionStatus.MODIFYING})
ACCEPTING_STATES: FrozenSet[SessionStatus] = frozenset({SessionStatus.READY, SessionStatus.UPDATED})


def next_status(current: SessionStatus, event: str) -> Optional[SessionStatus]:
    return SESSION_TRANSITIONS.get((current, event))


def is_valid_transition(current: SessionStatus, event: str) -> bool:
    return (current, event) in SESSION_TRANSITIONS


class SessionStateMachine:
    """Gatekeeper for which session operations are legal right now.

    Entering a busy state remembers the idle state it came from so that a
    failed request can be rolled back with :meth:`abort`.
    """

    def __init__(self, status: SessionStatus = SessionStatus.INITIAL) -> None:
        self._status = status
        self._resume: Optional[SessionStatus] = None

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def busy(self) -> bool:
        return self._status in BUSY_STATES

    @property
    def accepts_modifications(self) -> bool:
        return self._status in ACCEPTING_STATES

    def can_publish(self, assistant_turns: int) -> bool:
        return not self.busy and assistant_turns > 0

    def fire(self, event: str) -> SessionStatus:
        target = next_status(self._status, event)
        if target is None:
            raise PreconditionFailed(event, self._status.value)
        if target in BUSY_STATES:
            self._resume = self._status
        else:
            self._resume = None
        self._status = target
        return target

    def abort(self) -> SessionStatus:
        """Return from a busy state to the idle state it was entered from."""
        if not self.busy or self._resume is None:
            raise PreconditionFailed("abort", self._status.value, "no request in flight")
        self._status, self._resume = self._resume, None
        return self._status
