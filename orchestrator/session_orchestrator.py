"""CodaMentor: teaching-session orchestrator.

Owns the active-session lifecycle of every mentor::

    create_student -> start_session -> teach_concept* -> end_session
                           ^                                  |
                           +----------------------------------+

The orchestrator is the only component that mutates AI-student state.
Operations for one mentor are serialised through a per-mentor
``asyncio.Lock``; different mentors never contend.  Collaborator failures
(store, simulator) propagate unchanged.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator

from config import get_settings, get_logger
from engines.stats import clamp01, mean, unique
from integrations.session_store import (
    ActiveSessionArena,
    InMemorySessionStore,
    MentorRecord,
    SessionRecordStore,
)
from integrations.simulator import LearningSimulator, RandomLearningSimulator
from models.concept_graph import ConceptGraph
from models.session import (
    ActiveTeachingSession,
    MentorCompetencies,
    MentorEvaluation,
    SessionAnalysis,
    SessionMetrics,
    SessionReactions,
    TeachingInteraction,
    TeachingSession,
)
from models.student import (
    AIMood,
    AIStudentState,
    CECRL_ORDER,
    PrimaryEmotion,
    StudentPersonality,
    StudentStatus,
    emotion_from_comprehension,
    mood_from_emotion,
    normalize_cultural_environment,
    normalize_personality,
)
from orchestrator.errors import InvalidMentorState, SessionNotFound
from orchestrator.state import MentorPhase, MentorState

logger = get_logger(__name__)

MASTERED_THRESHOLD = 0.7
REVIEW_THRESHOLD = 0.5
PROGRESS_PER_SESSION = 0.1

_PERSONALITY_METHODS: dict[StudentPersonality, str] = {
    StudentPersonality.CURIOUS_STUDENT: "interactive_exploration",
    StudentPersonality.SHY_LEARNER: "gentle_demonstration",
    StudentPersonality.ENERGETIC_PUPIL: "dynamic_practice",
    StudentPersonality.PATIENT_APPRENTICE: "step_by_step_guidance",
}
DEFAULT_METHOD = "visual_demonstration"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass
class TeachingResult:
    """Outcome of teaching one concept."""

    reaction: str
    comprehension: float
    needs_help: bool
    emotion: PrimaryEmotion
    mood: AIMood


@dataclass
class SessionSummary:
    """A closed session together with the mentor's evaluation for it."""

    session: TeachingSession
    evaluation: MentorEvaluation
    student: StudentStatus


@dataclass
class GlobalStatistics:
    total_mentors: int = 0
    active_sessions: int = 0
    total_sessions: int = 0
    average_effectiveness: float = 0.0
    mood_distribution: dict[str, int] = field(default_factory=dict)
    popular_concepts: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------
class SessionOrchestrator:
    """Drives teaching sessions between mentors and their AI-students.

    Parameters
    ----------
    store:
        Session record store (defaults to :class:`InMemorySessionStore`).
    simulator:
        Learning simulator producing comprehension and reactions
        (defaults to :class:`RandomLearningSimulator`).
    arena:
        Holder of the open sessions, keyed by mentor id.
    concept_graph:
        Topic -> concept lookup used when ``start_session`` gets no concepts.
    """

    def __init__(
        self,
        store: SessionRecordStore | None = None,
        simulator: LearningSimulator | None = None,
        arena: ActiveSessionArena | None = None,
        concept_graph: ConceptGraph | None = None,
    ) -> None:
        self._settings = get_settings()
        self._store = store if store is not None else InMemorySessionStore()
        self._simulator = simulator if simulator is not None else RandomLearningSimulator()
        self._arena = arena if arena is not None else ActiveSessionArena()
        self._graph = concept_graph or ConceptGraph.default()
        self._states: dict[str, MentorState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        # Callers holding or waiting on each mentor's lock
        self._lock_users: dict[str, int] = {}
        logger.debug("SessionOrchestrator initialised (%r)", self._graph)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def store(self) -> SessionRecordStore:
        return self._store

    def get_state(self, mentor_id: str) -> MentorState:
        """Return (creating if needed) the lifecycle state of *mentor_id*."""
        if mentor_id not in self._states:
            self._states[mentor_id] = MentorState(mentor_id=mentor_id)
        return self._states[mentor_id]

    @asynccontextmanager
    async def _mentor_lock(self, mentor_id: str) -> AsyncIterator[None]:
        """Serialise operations on *mentor_id*.

        The lock is dropped once no caller holds or waits on it, so the
        table only ever contains mentors with operations in flight.
        """
        lock = self._locks.setdefault(mentor_id, asyncio.Lock())
        self._lock_users[mentor_id] = self._lock_users.get(mentor_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[mentor_id] -= 1
            if not self._lock_users[mentor_id]:
                del self._lock_users[mentor_id]
                del self._locks[mentor_id]

    async def _require_record(self, mentor_id: str) -> MentorRecord:
        record = await self._store.get(mentor_id)
        if record is None:
            raise SessionNotFound(f"No AI-student for mentor {mentor_id!r}")
        return record

    def _require_active(self, mentor_id: str, session_id: str) -> ActiveTeachingSession:
        session = self._arena.get(mentor_id)
        if session is None or session.session_id != session_id:
            raise SessionNotFound(
                f"No active session {session_id!r} for mentor {mentor_id!r}"
            )
        return session

    # ------------------------------------------------------------------
    # Student lifecycle
    # ------------------------------------------------------------------
    async def create_student(
        self,
        mentor_id: str,
        name: str | None = None,
        personality: str | StudentPersonality | None = None,
        cultural_context: str | None = None,
        recreate: bool = False,
    ) -> StudentStatus:
        """Create the mentor's AI-student and return its status.

        Raises :class:`InvalidMentorState` if a student already exists and
        *recreate* is ``False``.
        """
        async with self._mentor_lock(mentor_id):
            state = self.get_state(mentor_id)
            existing = await self._store.get(mentor_id)

            if existing is not None or state.has_student:
                if not recreate:
                    raise InvalidMentorState(
                        f"Mentor {mentor_id!r} already has an AI-student"
                    )
                await self._terminate_locked(mentor_id)
                state = self.get_state(mentor_id)

            student = AIStudentState(
                name=name or self._settings.default_student_name,
                personality=normalize_personality(
                    personality, normalize_personality(self._settings.default_personality)
                ),
                cultural_context=normalize_cultural_environment(
                    cultural_context,
                    normalize_cultural_environment(self._settings.default_cultural_environment),
                ),
            )
            await self._store.create(mentor_id, student)
            state.advance_phase(MentorPhase.STUDENT_CREATED)

        logger.info(
            "Created AI-student %s (%s, %s) for mentor=%s",
            student.name, student.personality.value, student.cultural_context.value, mentor_id,
        )
        return student.to_status()

    async def get_student_status(self, mentor_id: str) -> StudentStatus | None:
        record = await self._store.get(mentor_id)
        return record.student.to_status() if record else None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    async def start_session(
        self,
        mentor_id: str,
        topic: str,
        concepts: list[str] | None = None,
        method: str | None = None,
    ) -> str:
        """Open a teaching session and return its id.

        Concepts default to the topic's prerequisite-ordered concepts; the
        method defaults to the one suited to the AI-student's personality.
        """
        async with self._mentor_lock(mentor_id):
            record = await self._require_record(mentor_id)
            state = self.get_state(mentor_id)
            if not state.has_student:
                # Record created directly in a shared store
                state.advance_phase(MentorPhase.STUDENT_CREATED)

            student = record.student
            session = ActiveTeachingSession(
                mentor_id=mentor_id,
                student_id=student.id,
                topic=topic,
                concepts=list(concepts) if concepts else self._graph.concepts_for(topic),
                teaching_method=method or _PERSONALITY_METHODS.get(student.personality, DEFAULT_METHOD),
                target_level=student.current_level,
            )
            state.advance_phase(MentorPhase.SESSION_ACTIVE)
            state.active_session_id = session.session_id
            self._arena.put(session)

        logger.info(
            "Started session %s for mentor=%s: topic=%s concepts=%s method=%s",
            session.session_id, mentor_id, topic, session.concepts, session.teaching_method,
        )
        return session.session_id

    async def teach_concept(
        self,
        mentor_id: str,
        session_id: str,
        concept: str,
        explanation: str,
    ) -> TeachingResult:
        """Teach *concept* in the active session and record the reaction.

        The AI-student's mood and comprehension rate are persisted before
        the call returns.
        """
        async with self._mentor_lock(mentor_id):
            session = self._require_active(mentor_id, session_id)
            record = await self._require_record(mentor_id)
            student = record.student.model_copy(deep=True)

            simulated = await self._simulator.simulate_learning(
                student, concept, explanation, session.teaching_method
            )
            comprehension = clamp01(simulated.comprehension)
            emotion = emotion_from_comprehension(comprehension)
            needs_help = comprehension < 0.5

            session.interactions.append(TeachingInteraction(
                concept=concept,
                explanation=explanation,
                comprehension=comprehension,
                needs_help=needs_help,
                emotion=emotion,
                reaction=simulated.reaction,
                engagement=clamp01(simulated.engagement),
                questions=tuple(simulated.questions),
                errors=tuple(simulated.errors),
            ))

            student.mood = mood_from_emotion(emotion)
            student.comprehension_rate = comprehension
            student.last_learned = concept
            await self._store.update_student(mentor_id, student)

        logger.info(
            "Taught %s in %s: comprehension=%.2f emotion=%s needs_help=%s",
            concept, session_id, comprehension, emotion.value, needs_help,
        )
        return TeachingResult(
            reaction=simulated.reaction,
            comprehension=comprehension,
            needs_help=needs_help,
            emotion=emotion,
            mood=student.mood,
        )

    async def end_session(self, mentor_id: str, session_id: str) -> SessionSummary:
        """Close the active session, persist its summary and evaluate the mentor."""
        async with self._mentor_lock(mentor_id):
            active = self._require_active(mentor_id, session_id)
            record = await self._require_record(mentor_id)
            previous = record.student
            student = previous.model_copy(deep=True)

            end_time = _utcnow()
            closed = self._summarise(active, student, end_time)
            evaluation = self._evaluate(active, closed)
            self._apply_progress(student, closed)

            # The session stays open until both writes succeed
            await self._store.update_student(mentor_id, student)
            try:
                await self._store.append(mentor_id, closed)
            except Exception:
                logger.error("Could not store session %s, restoring student state", session_id)
                await self._store.update_student(mentor_id, previous)
                raise
            self._arena.pop(mentor_id)
            self.get_state(mentor_id).advance_phase(MentorPhase.SESSION_CLOSED)

        logger.info(
            "Ended session %s for mentor=%s: success=%.2f effectiveness=%.2f mastered=%d",
            session_id, mentor_id, closed.metrics.success_score,
            closed.metrics.teaching_effectiveness, len(closed.metrics.concepts_mastered),
        )
        return SessionSummary(session=closed, evaluation=evaluation, student=student.to_status())

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------
    async def terminate(self, mentor_id: str) -> bool:
        """Drop the mentor's record and any active session."""
        async with self._mentor_lock(mentor_id):
            return await self._terminate_locked(mentor_id)

    async def _terminate_locked(self, mentor_id: str) -> bool:
        self._arena.pop(mentor_id)
        removed = await self._store.terminate(mentor_id)
        state = self._states.pop(mentor_id, None)
        if state is not None and state.has_student:
            state.advance_phase(MentorPhase.NO_STUDENT)
        return removed

    async def get_global_statistics(self) -> GlobalStatistics:
        stats = await self._store.statistics()
        return GlobalStatistics(
            total_mentors=stats.total_mentors,
            active_sessions=len(self._arena),
            total_sessions=stats.total_sessions,
            average_effectiveness=stats.average_effectiveness,
            mood_distribution=stats.mood_distribution,
            popular_concepts=stats.popular_concepts,
        )

    async def close(self) -> None:
        """Clear every in-memory active session."""
        count = len(self._arena)
        for session in self._arena:
            state = self.get_state(session.mentor_id)
            if state.current_phase == MentorPhase.SESSION_ACTIVE:
                state.current_phase = MentorPhase.STUDENT_CREATED
                state.active_session_id = None
        self._arena.clear()
        logger.info("SessionOrchestrator closed (%d active sessions dropped)", count)

    # ------------------------------------------------------------------
    # Closing computations
    # ------------------------------------------------------------------
    @staticmethod
    def _effectiveness(interactions: list[TeachingInteraction]) -> float:
        if not interactions:
            return 0.0
        delta = 0.0
        if len(interactions) > 1:
            delta = interactions[-1].comprehension - interactions[0].comprehension
        return clamp01(0.5 + delta)

    def _summarise(
        self,
        active: ActiveTeachingSession,
        student: AIStudentState,
        end_time: datetime,
    ) -> TeachingSession:
        interactions = active.interactions
        average = mean([i.comprehension for i in interactions])
        minutes = (end_time - active.start_time).total_seconds() / 60

        return TeachingSession(
            session_id=active.session_id,
            mentor_id=active.mentor_id,
            student_id=active.student_id,
            topic=active.topic,
            teaching_method=active.teaching_method,
            target_level=active.target_level,
            concepts=tuple(active.concepts),
            start_time=active.start_time,
            end_time=end_time,
            interactions=tuple(interactions),
            reactions=SessionReactions(
                comprehension=average,
                textual_reactions=tuple(i.reaction for i in interactions if i.reaction),
                questions=tuple(q for i in interactions for q in i.questions),
                errors=tuple(e for i in interactions for e in i.errors),
                emotion=student.mood,
                engagement_evolution=tuple(i.engagement for i in interactions),
                struggling_moments=tuple(i.timestamp for i in interactions if i.needs_help),
            ),
            metrics=SessionMetrics(
                actual_duration_minutes=max(0.0, minutes),
                participation_rate=mean([i.engagement for i in interactions]),
                teacher_interventions=len(interactions),
                success_score=average,
                concepts_mastered=tuple(unique(
                    i.concept for i in interactions if i.comprehension > MASTERED_THRESHOLD
                )),
                concepts_to_review=tuple(unique(
                    i.concept for i in interactions if i.comprehension < REVIEW_THRESHOLD
                )),
                teaching_effectiveness=self._effectiveness(interactions),
            ),
        )

    @staticmethod
    def _evaluate(active: ActiveTeachingSession, closed: TeachingSession) -> MentorEvaluation:
        average = closed.metrics.success_score
        tips: tuple[str, ...] = ()
        if any(i.needs_help for i in active.interactions):
            tips = ("Adapt the pace to the AI-student's difficulties",)

        return MentorEvaluation(
            overall_score=average,
            competencies=MentorCompetencies(
                explanation=average,
                patience=0.8,
                adaptation=0.7,
                encouragement=0.8,
                cultural_sensitivity=0.7,
            ),
            improvement_tips=tips,
            strength_areas=("Clear explanations", "Structured progression"),
            session_analysis=SessionAnalysis(
                total_sessions=1,
                average_session_minutes=closed.metrics.actual_duration_minutes,
                student_progress_rate=average,
                teaching_consistency=0.8,
            ),
            personality_match=0.8,
            cultural_adaptation=0.7,
        )

    @staticmethod
    def _apply_progress(student: AIStudentState, closed: TeachingSession) -> None:
        student.concepts_learned = unique([*student.concepts_learned, *closed.metrics.concepts_mastered])
        student.total_learning_minutes += closed.metrics.actual_duration_minutes

        progress = student.progress + PROGRESS_PER_SESSION * closed.metrics.success_score
        if progress >= 1.0:
            idx = CECRL_ORDER.index(student.current_level)
            if idx + 1 < len(CECRL_ORDER):
                logger.info(
                    "%s levelled up: %s -> %s",
                    student.name, student.current_level.value, CECRL_ORDER[idx + 1].value,
                )
                student.current_level = CECRL_ORDER[idx + 1]
                progress = 0.0
        student.progress = min(1.0, progress)
