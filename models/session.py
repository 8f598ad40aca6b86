"""CodaMentor: teaching-session models.

A :class:`TeachingSession` is opened by the session orchestrator, grows one
:class:`TeachingInteraction` per taught concept while active, and is frozen
into a closed record (reactions + metrics) when the session ends.  The
engines never read sessions directly: they consume the flat, immutable
:class:`SessionSnapshot` produced by :func:`harmonize`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from models.student import AIMood, CECRLLevel, PrimaryEmotion

# Base duration (minutes) used to estimate a session's effective length
BASE_SESSION_MINUTES = 30


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    return f"teach_{uuid4().hex[:16]}"


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------
class TeachingInteraction(BaseModel):
    """One taught concept and the AI-student's reaction to it."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=_utcnow)
    concept: str
    explanation: str = ""
    comprehension: float = Field(ge=0.0, le=1.0)
    needs_help: bool = False
    emotion: PrimaryEmotion = PrimaryEmotion.CURIOSITY
    reaction: str = ""
    engagement: float = Field(default=0.8, ge=0.0, le=1.0)
    questions: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()


class ActiveTeachingSession(BaseModel):
    """Mutable record of a session that is still open."""

    session_id: str = Field(default_factory=new_session_id)
    mentor_id: str
    student_id: str
    topic: str
    concepts: list[str] = Field(default_factory=list)
    teaching_method: str = "visual_demonstration"
    target_level: CECRLLevel = CECRLLevel.A1
    start_time: datetime = Field(default_factory=_utcnow)
    interactions: list[TeachingInteraction] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Closed session
# ---------------------------------------------------------------------------
class SessionReactions(BaseModel):
    """Aggregate AI-student reactions over a closed session."""

    model_config = ConfigDict(frozen=True)

    comprehension: float = Field(default=0.0, ge=0.0, le=1.0)
    textual_reactions: tuple[str, ...] = ()
    questions: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()
    emotion: AIMood = AIMood.NEUTRAL
    engagement_evolution: tuple[float, ...] = ()
    struggling_moments: tuple[datetime, ...] = ()


class SessionMetrics(BaseModel):
    """Closing metrics of a teaching session."""

    model_config = ConfigDict(frozen=True)

    actual_duration_minutes: float = Field(default=0.0, ge=0.0)
    participation_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    teacher_interventions: int = Field(default=0, ge=0)
    success_score: float = Field(default=0.0, ge=0.0, le=1.0)
    concepts_mastered: tuple[str, ...] = ()
    concepts_to_review: tuple[str, ...] = ()
    teaching_effectiveness: float = Field(default=0.0, ge=0.0, le=1.0)


class TeachingSession(BaseModel):
    """Immutable record of a closed teaching session."""

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(default_factory=new_session_id)
    mentor_id: str
    student_id: str = ""
    topic: str = "general"
    teaching_method: str = "visual_demonstration"
    target_level: CECRLLevel = CECRLLevel.A1
    concepts: tuple[str, ...] = ()
    start_time: datetime = Field(default_factory=_utcnow)
    end_time: datetime | None = None
    interactions: tuple[TeachingInteraction, ...] = ()
    reactions: SessionReactions = Field(default_factory=SessionReactions)
    metrics: SessionMetrics = Field(default_factory=SessionMetrics)
    teacher_notes: str = ""


# ---------------------------------------------------------------------------
# Mentor evaluation
# ---------------------------------------------------------------------------
class MentorCompetencies(BaseModel):
    model_config = ConfigDict(frozen=True)

    explanation: float = Field(default=0.5, ge=0.0, le=1.0)
    patience: float = Field(default=0.5, ge=0.0, le=1.0)
    adaptation: float = Field(default=0.5, ge=0.0, le=1.0)
    encouragement: float = Field(default=0.5, ge=0.0, le=1.0)
    cultural_sensitivity: float = Field(default=0.5, ge=0.0, le=1.0)


class SessionAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_sessions: int = 0
    average_session_minutes: float = 0.0
    student_progress_rate: float = 0.0
    teaching_consistency: float = 0.5


class MentorEvaluation(BaseModel):
    """How well a mentor taught, over one or several sessions."""

    model_config = ConfigDict(frozen=True)

    overall_score: float = Field(default=0.5, ge=0.0, le=1.0)
    competencies: MentorCompetencies = Field(default_factory=MentorCompetencies)
    improvement_tips: tuple[str, ...] = ()
    strength_areas: tuple[str, ...] = ()
    session_analysis: SessionAnalysis = Field(default_factory=SessionAnalysis)
    personality_match: float = Field(default=0.5, ge=0.0, le=1.0)
    cultural_adaptation: float = Field(default=0.5, ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Harmonised read-only view consumed by the engines
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SessionSnapshot:
    """Flat, immutable view of a closed session."""

    session_id: str
    mentor_id: str
    student_id: str
    topic: str
    teaching_method: str
    target_level: CECRLLevel
    start_time: datetime
    end_time: datetime
    duration: int
    comprehension: float
    success_score: float
    participation_rate: float
    teaching_effectiveness: float
    engagement_level: float
    teacher_interventions: int
    actual_duration_minutes: float
    emotion: AIMood
    engagement_evolution: tuple[float, ...] = ()
    concepts_mastered: tuple[str, ...] = ()
    concepts_to_review: tuple[str, ...] = ()
    questions: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()
    struggling_moments: int = 0

    @classmethod
    def from_session(cls, session: TeachingSession) -> SessionSnapshot:
        metrics = session.metrics
        reactions = session.reactions
        duration = round(
            BASE_SESSION_MINUTES
            * (metrics.participation_rate + metrics.teaching_effectiveness)
            / 2
        )
        return cls(
            session_id=session.session_id,
            mentor_id=session.mentor_id,
            student_id=session.student_id or session.mentor_id,
            topic=session.topic or "general",
            teaching_method=session.teaching_method,
            target_level=session.target_level,
            start_time=session.start_time,
            end_time=session.end_time or session.start_time,
            duration=duration,
            comprehension=reactions.comprehension,
            success_score=metrics.success_score,
            participation_rate=metrics.participation_rate,
            teaching_effectiveness=metrics.teaching_effectiveness,
            engagement_level=reactions.comprehension,
            teacher_interventions=metrics.teacher_interventions,
            actual_duration_minutes=metrics.actual_duration_minutes,
            emotion=reactions.emotion,
            engagement_evolution=tuple(reactions.engagement_evolution),
            concepts_mastered=tuple(metrics.concepts_mastered),
            concepts_to_review=tuple(metrics.concepts_to_review),
            questions=tuple(reactions.questions),
            errors=tuple(reactions.errors),
            struggling_moments=len(reactions.struggling_moments),
        )


def harmonize(
    sessions: Iterable[TeachingSession | SessionSnapshot],
) -> tuple[SessionSnapshot, ...]:
    """Convert sessions to snapshots; snapshots pass through unchanged."""
    return tuple(
        s if isinstance(s, SessionSnapshot) else SessionSnapshot.from_session(s)
        for s in sessions
    )
