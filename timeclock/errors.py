from __future__ import annotations

from .models import SessionState


class StateTransitionError(Exception):
    """A transition was requested from a state that does not allow it."""

    def __init__(self, message: str, state: SessionState) -> None:
        super().__init__(message)
        self.state = state


class AlreadyCheckedIn(StateTransitionError):
    pass


class NotCheckedIn(StateTransitionError):
    pass


class InvalidState(StateTransitionError):
    pass


class NoActiveBreak(StateTransitionError):
    pass


class PersistenceError(Exception):
    """Stored data could not be decrypted or deserialized."""
