"""CodaMentor: session record store.

Holds one mentor record (AI-student + closed teaching sessions) per mentor
id.  The orchestrator only depends on the :class:`SessionRecordStore`
protocol; :class:`InMemorySessionStore` is the reference implementation
used by the demo and the test-suite.

Active (still open) sessions are not persisted here: they live in an
:class:`ActiveSessionArena` injected into the session orchestrator.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterator, Protocol

from config import get_settings, get_logger
from models.session import ActiveTeachingSession, TeachingSession
from models.student import AIStudentState

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------
@dataclass
class MentorRecord:
    """Everything the store keeps for one mentor."""

    mentor_id: str
    student: AIStudentState
    sessions: list[TeachingSession] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    last_activity: datetime = field(default_factory=_utcnow)

    def touch(self, now: datetime | None = None) -> None:
        self.last_activity = now or _utcnow()


@dataclass
class StoreStatistics:
    """Totals across every mentor record in a store."""

    total_mentors: int = 0
    total_sessions: int = 0
    average_effectiveness: float = 0.0
    mood_distribution: dict[str, int] = field(default_factory=dict)
    popular_concepts: list[str] = field(default_factory=list)


class SessionRecordStore(Protocol):
    """Operations the session orchestrator needs from a record store."""

    async def create(self, mentor_id: str, student: AIStudentState) -> MentorRecord: ...

    async def get(self, mentor_id: str) -> MentorRecord | None: ...

    async def update_student(self, mentor_id: str, student: AIStudentState) -> None: ...

    async def append(self, mentor_id: str, session: TeachingSession) -> None: ...

    async def terminate(self, mentor_id: str) -> bool: ...

    async def list_sessions(self, mentor_id: str) -> list[TeachingSession]: ...

    async def statistics(self) -> StoreStatistics: ...


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------
class InMemorySessionStore:
    """Dict-backed :class:`SessionRecordStore`.

    Parameters
    ----------
    timeout_minutes:
        Idle time after which :meth:`cleanup_expired` drops a record.
        Defaults to ``Settings.session_timeout_minutes``.
    """

    def __init__(self, timeout_minutes: int | None = None) -> None:
        settings = get_settings()
        self._timeout = timedelta(minutes=timeout_minutes or settings.session_timeout_minutes)
        self._records: dict[str, MentorRecord] = {}
        self._lock = asyncio.Lock()
        logger.debug("InMemorySessionStore initialised (timeout=%s)", self._timeout)

    # ------------------------------------------------------------------
    # Record lifecycle
    # ------------------------------------------------------------------
    async def create(self, mentor_id: str, student: AIStudentState) -> MentorRecord:
        """Create the record for *mentor_id*.

        Raises ``ValueError`` if the mentor already has a record.
        """
        async with self._lock:
            if mentor_id in self._records:
                raise ValueError(f"Mentor {mentor_id!r} already has a record")
            record = MentorRecord(mentor_id=mentor_id, student=student)
            self._records[mentor_id] = record
        logger.info("Created record for mentor=%s (student=%s)", mentor_id, student.name)
        return record

    async def get(self, mentor_id: str) -> MentorRecord | None:
        return self._records.get(mentor_id)

    async def update_student(self, mentor_id: str, student: AIStudentState) -> None:
        """Replace the stored AI-student state; ``KeyError`` if unknown."""
        async with self._lock:
            record = self._records[mentor_id]
            record.student = student
            record.touch()

    async def append(self, mentor_id: str, session: TeachingSession) -> None:
        """Append a closed session; ``KeyError`` if unknown."""
        async with self._lock:
            record = self._records[mentor_id]
            record.sessions.append(session)
            record.touch()
        logger.info(
            "Stored session %s for mentor=%s (%d total)",
            session.session_id, mentor_id, len(record.sessions),
        )

    async def terminate(self, mentor_id: str) -> bool:
        async with self._lock:
            removed = self._records.pop(mentor_id, None) is not None
        if removed:
            logger.info("Terminated record for mentor=%s", mentor_id)
        return removed

    async def list_sessions(self, mentor_id: str) -> list[TeachingSession]:
        """Closed sessions for *mentor_id*, oldest first (empty if unknown)."""
        record = self._records.get(mentor_id)
        return list(record.sessions) if record else []

    async def cleanup_expired(self, now: datetime | None = None) -> list[str]:
        """Drop records idle for longer than the timeout; return their ids."""
        now = now or _utcnow()
        async with self._lock:
            expired = [
                mentor_id
                for mentor_id, record in self._records.items()
                if now - record.last_activity > self._timeout
            ]
            for mentor_id in expired:
                del self._records[mentor_id]
        if expired:
            logger.info("Expired %d idle mentor records", len(expired))
        return expired

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    async def statistics(self) -> StoreStatistics:
        records = list(self._records.values())
        sessions = [s for r in records for s in r.sessions]
        moods = Counter(r.student.mood.value for r in records)
        concepts = Counter(c for s in sessions for c in s.concepts)

        average = 0.0
        if sessions:
            average = sum(s.metrics.teaching_effectiveness for s in sessions) / len(sessions)

        return StoreStatistics(
            total_mentors=len(records),
            total_sessions=len(sessions),
            average_effectiveness=average,
            mood_distribution=dict(moods),
            popular_concepts=[c for c, _ in concepts.most_common(5)],
        )

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, mentor_id: str) -> bool:
        return mentor_id in self._records


# ---------------------------------------------------------------------------
# Active sessions
# ---------------------------------------------------------------------------
class ActiveSessionArena:
    """Open teaching sessions, at most one per mentor id."""

    def __init__(self) -> None:
        self._sessions: dict[str, ActiveTeachingSession] = {}

    def get(self, mentor_id: str) -> ActiveTeachingSession | None:
        return self._sessions.get(mentor_id)

    def put(self, session: ActiveTeachingSession) -> None:
        self._sessions[session.mentor_id] = session

    def pop(self, mentor_id: str) -> ActiveTeachingSession | None:
        return self._sessions.pop(mentor_id, None)

    def clear(self) -> None:
        self._sessions.clear()

    def __contains__(self, mentor_id: str) -> bool:
        return mentor_id in self._sessions

    def __iter__(self) -> Iterator[ActiveTeachingSession]:
        return iter(list(self._sessions.values()))

    def __len__(self) -> int:
        return len(self._sessions)
