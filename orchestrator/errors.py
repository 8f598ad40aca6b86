"""CodaMentor: orchestrator error taxonomy."""

from __future__ import annotations


class CodaError(Exception):
    """Base class for errors surfaced by the orchestrators."""


class NotFoundError(CodaError):
    """A mentor record, AI-student or session does not exist."""


class SessionNotFound(NotFoundError):
    """No student or active session matches the request."""


class InvalidStateError(CodaError):
    """The operation is not allowed from the current state."""


class InvalidMentorState(InvalidStateError):
    """The per-mentor state machine forbids the requested transition."""
