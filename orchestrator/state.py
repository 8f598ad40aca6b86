"""CodaMentor: per-mentor state machine.

Tracks where each mentor stands in the teaching lifecycle and enforces
valid phase transitions::

    no_student -> student_created -> session_active -> session_closed
                                          ^                  |
                                          +------------------+

Any phase other than ``no_student`` may terminate back to ``no_student``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from config import get_logger
from orchestrator.errors import InvalidMentorState

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Phase enum & transitions
# ---------------------------------------------------------------------------
class MentorPhase(str, Enum):
    """Lifecycle phases of one mentor's teaching."""

    NO_STUDENT = "no_student"
    STUDENT_CREATED = "student_created"
    SESSION_ACTIVE = "session_active"
    SESSION_CLOSED = "session_closed"


# Valid transitions: current_phase -> set of reachable next phases
_TRANSITIONS: dict[MentorPhase, set[MentorPhase]] = {
    MentorPhase.NO_STUDENT:      {MentorPhase.STUDENT_CREATED},
    MentorPhase.STUDENT_CREATED: {MentorPhase.SESSION_ACTIVE, MentorPhase.NO_STUDENT},
    MentorPhase.SESSION_ACTIVE:  {MentorPhase.SESSION_CLOSED, MentorPhase.NO_STUDENT},
    MentorPhase.SESSION_CLOSED:  {MentorPhase.SESSION_ACTIVE, MentorPhase.NO_STUDENT},
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# State model
# ---------------------------------------------------------------------------
class MentorState(BaseModel):
    """Lifecycle state of one mentor."""

    mentor_id: str
    current_phase: MentorPhase = MentorPhase.NO_STUDENT
    active_session_id: str | None = None
    sessions_completed: int = 0
    updated_at: datetime = Field(default_factory=_utcnow)

    def can_advance(self, target: MentorPhase) -> tuple[bool, str]:
        """Check whether transitioning to *target* is valid.

        Returns ``(ok, reason)``; *reason* explains the failure when *ok*
        is ``False``.
        """
        allowed = _TRANSITIONS.get(self.current_phase, set())
        if target not in allowed:
            return False, (
                f"Cannot go from {self.current_phase.value} to {target.value}. "
                f"Allowed: {sorted(p.value for p in allowed)}"
            )
        return True, ""

    def advance_phase(self, target: MentorPhase) -> None:
        """Transition to *target*, raising :class:`InvalidMentorState` if invalid."""
        ok, reason = self.can_advance(target)
        if not ok:
            raise InvalidMentorState(f"mentor {self.mentor_id}: {reason}")

        old = self.current_phase
        self.current_phase = target
        self.updated_at = _utcnow()

        if target == MentorPhase.SESSION_CLOSED:
            self.sessions_completed += 1
            self.active_session_id = None
        elif target == MentorPhase.NO_STUDENT:
            self.active_session_id = None

        logger.info(
            "Phase transition: %s -> %s  (mentor=%s, sessions=%d)",
            old.value, target.value, self.mentor_id, self.sessions_completed,
        )

    @property
    def has_student(self) -> bool:
        return self.current_phase != MentorPhase.NO_STUDENT

    def summary(self) -> str:
        return (
            f"[{self.mentor_id}] phase={self.current_phase.value} | "
            f"active={self.active_session_id or '-'} | sessions={self.sessions_completed}"
        )
