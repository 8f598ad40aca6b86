"""CodaMentor: AI-student models.

Defines the closed enumerations describing the simulated learner
(personality, proficiency level, mood, cultural environment, emotion)
and the mutable AI-student state owned by the session orchestrator,
together with the frozen status view handed out to callers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class CECRLLevel(str, Enum):
    """Six-point CECRL proficiency scale (beginner → mastery)."""

    A1 = "A1"
    A2 = "A2"
    B1 = "B1"
    B2 = "B2"
    C1 = "C1"
    C2 = "C2"


CECRL_ORDER: tuple[CECRLLevel, ...] = tuple(CECRLLevel)

# Label used once the top of the scale is reached
BEYOND_TOP_LEVEL = "C2+"


class AIMood(str, Enum):
    """Mood shown by the AI-student after an interaction."""

    HAPPY = "happy"
    CONFUSED = "confused"
    FRUSTRATED = "frustrated"
    EXCITED = "excited"
    NEUTRAL = "neutral"


class StudentPersonality(str, Enum):
    """Personality variants of the simulated learner."""

    CURIOUS_STUDENT = "curious_student"
    SHY_LEARNER = "shy_learner"
    ENERGETIC_PUPIL = "energetic_pupil"
    PATIENT_APPRENTICE = "patient_apprentice"
    ANALYTICAL_LEARNER = "analytical_learner"
    CREATIVE_THINKER = "creative_thinker"

    @property
    def is_analytical(self) -> bool:
        return "analytical" in self.value

    @property
    def is_creative(self) -> bool:
        return "creative" in self.value


class CulturalEnvironment(str, Enum):
    """Cultural environment the learner (or a mentor) comes from."""

    DEAF_FAMILY_HOME = "deaf_family_home"
    MIXED_HEARING_FAMILY = "mixed_hearing_family"
    SCHOOL_ENVIRONMENT = "school_environment"
    COMMUNITY_CENTER = "community_center"
    ONLINE_LEARNING = "online_learning"


class PrimaryEmotion(str, Enum):
    """Fine-grained emotion derived from a comprehension score."""

    JOY = "joy"
    SADNESS = "sadness"
    ANGER = "anger"
    FEAR = "fear"
    SURPRISE = "surprise"
    DISGUST = "disgust"
    TRUST = "trust"
    ANTICIPATION = "anticipation"
    CONFUSION = "confusion"
    EXCITEMENT = "excitement"
    CURIOSITY = "curiosity"
    FRUSTRATION = "frustration"
    SATISFACTION = "satisfaction"
    BOREDOM = "boredom"
    ENGAGEMENT = "engagement"


_EMOTION_TO_MOOD: dict[PrimaryEmotion, AIMood] = {
    PrimaryEmotion.JOY: AIMood.HAPPY,
    PrimaryEmotion.TRUST: AIMood.HAPPY,
    PrimaryEmotion.SATISFACTION: AIMood.HAPPY,
    PrimaryEmotion.SURPRISE: AIMood.EXCITED,
    PrimaryEmotion.ANTICIPATION: AIMood.EXCITED,
    PrimaryEmotion.EXCITEMENT: AIMood.EXCITED,
    PrimaryEmotion.ENGAGEMENT: AIMood.EXCITED,
    PrimaryEmotion.FEAR: AIMood.CONFUSED,
    PrimaryEmotion.CONFUSION: AIMood.CONFUSED,
    PrimaryEmotion.ANGER: AIMood.FRUSTRATED,
    PrimaryEmotion.DISGUST: AIMood.FRUSTRATED,
    PrimaryEmotion.FRUSTRATION: AIMood.FRUSTRATED,
    PrimaryEmotion.SADNESS: AIMood.NEUTRAL,
    PrimaryEmotion.CURIOSITY: AIMood.NEUTRAL,
    PrimaryEmotion.BOREDOM: AIMood.NEUTRAL,
}

# Loose spellings seen in legacy payloads
_PERSONALITY_ALIASES: dict[str, StudentPersonality] = {
    "curious": StudentPersonality.CURIOUS_STUDENT,
    "shy": StudentPersonality.SHY_LEARNER,
    "energetic": StudentPersonality.ENERGETIC_PUPIL,
    "patient": StudentPersonality.PATIENT_APPRENTICE,
    "analytical": StudentPersonality.ANALYTICAL_LEARNER,
    "creative": StudentPersonality.CREATIVE_THINKER,
}

_ENVIRONMENT_ALIASES: dict[str, CulturalEnvironment] = {
    "deaf_school": CulturalEnvironment.SCHOOL_ENVIRONMENT,
    "deaf_community_center": CulturalEnvironment.COMMUNITY_CENTER,
    "deaf_workplace": CulturalEnvironment.COMMUNITY_CENTER,
}


# ---------------------------------------------------------------------------
# Normalisation helpers (applied once, at ingestion)
# ---------------------------------------------------------------------------
def normalize_personality(
    value: str | StudentPersonality | None,
    default: StudentPersonality = StudentPersonality.CURIOUS_STUDENT,
) -> StudentPersonality:
    """Map a free-form personality string onto :class:`StudentPersonality`.

    Unknown or missing values fall back to *default*.
    """
    if isinstance(value, StudentPersonality):
        return value
    if not value:
        return default
    key = str(value).strip().lower().replace("-", "_")
    try:
        return StudentPersonality(key)
    except ValueError:
        return _PERSONALITY_ALIASES.get(key, default)


def normalize_cultural_environment(
    value: str | CulturalEnvironment | None,
    default: CulturalEnvironment = CulturalEnvironment.DEAF_FAMILY_HOME,
) -> CulturalEnvironment:
    """Map a free-form environment string onto :class:`CulturalEnvironment`."""
    if isinstance(value, CulturalEnvironment):
        return value
    if not value:
        return default
    key = str(value).strip().lower().replace("-", "_")
    try:
        return CulturalEnvironment(key)
    except ValueError:
        return _ENVIRONMENT_ALIASES.get(key, default)


def normalize_level(
    value: str | CECRLLevel | None,
    default: CECRLLevel = CECRLLevel.A1,
) -> CECRLLevel:
    if isinstance(value, CECRLLevel):
        return value
    try:
        return CECRLLevel(str(value).strip().upper())
    except ValueError:
        return default


def normalize_mood(value: str | AIMood | None) -> AIMood:
    if isinstance(value, AIMood):
        return value
    try:
        return AIMood(str(value).strip().lower())
    except ValueError:
        return AIMood.NEUTRAL


def emotion_from_comprehension(comprehension: float) -> PrimaryEmotion:
    """Bucket a comprehension score into a primary emotion.

    Thresholds are fixed: >0.8 joy, >0.6 satisfaction, >0.4 curiosity,
    >0.2 confusion, otherwise frustration.
    """
    if comprehension > 0.8:
        return PrimaryEmotion.JOY
    if comprehension > 0.6:
        return PrimaryEmotion.SATISFACTION
    if comprehension > 0.4:
        return PrimaryEmotion.CURIOSITY
    if comprehension > 0.2:
        return PrimaryEmotion.CONFUSION
    return PrimaryEmotion.FRUSTRATION


def mood_from_emotion(emotion: PrimaryEmotion) -> AIMood:
    return _EMOTION_TO_MOOD.get(emotion, AIMood.NEUTRAL)


def next_level(level: CECRLLevel) -> str:
    """Return the level after *level*, or ``"C2+"`` at the top of the scale."""
    idx = CECRL_ORDER.index(level)
    if idx + 1 < len(CECRL_ORDER):
        return CECRL_ORDER[idx + 1].value
    return BEYOND_TOP_LEVEL


# ---------------------------------------------------------------------------
# AI-student state (internal, mutated by the session orchestrator only)
# ---------------------------------------------------------------------------
class AIStudentState(BaseModel):
    """Complete state of the simulated learner."""

    id: str = Field(default_factory=lambda: f"ai_{uuid4().hex[:12]}")
    name: str = Field(description="AI-student display name")
    personality: StudentPersonality = StudentPersonality.CURIOUS_STUDENT
    current_level: CECRLLevel = CECRLLevel.A1
    mood: AIMood = AIMood.NEUTRAL
    cultural_context: CulturalEnvironment = CulturalEnvironment.DEAF_FAMILY_HOME

    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    concepts_learned: list[str] = Field(default_factory=list)
    last_learned: str | None = None

    progress: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Progress through the current level (0-1)",
    )
    comprehension_rate: float = Field(default=0.5, ge=0.0, le=1.0)
    attention_span: int = Field(default=30, ge=1, description="Attention span in minutes")
    motivation: float = Field(default=0.5, ge=0.0, le=1.0)
    total_learning_minutes: float = Field(default=0.0, ge=0.0)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_status(self) -> StudentStatus:
        """Return the externally visible, read-only view of this state."""
        return StudentStatus.model_validate(self.model_dump())


class StudentStatus(BaseModel):
    """Read-only AI-student status returned to callers."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    personality: StudentPersonality
    current_level: CECRLLevel
    mood: AIMood
    cultural_context: CulturalEnvironment
    strengths: tuple[str, ...] = ()
    weaknesses: tuple[str, ...] = ()
    concepts_learned: tuple[str, ...] = ()
    last_learned: str | None = None
    progress: float = 0.0
    comprehension_rate: float = 0.5
    attention_span: int = 30

    @property
    def summary(self) -> str:
        return (
            f"{self.name} ({self.personality.value}) | level={self.current_level.value} | "
            f"progress={self.progress:.0%} | mood={self.mood.value}"
        )
