"""CodaMentor: mentor profile model."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.student import CulturalEnvironment, normalize_cultural_environment


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class MentorPersonality(str, Enum):
    """Personality variants a mentor profile may declare."""

    ANALYTICAL_LOGICAL = "analytical-logical"
    CREATIVE_INTUITIVE = "creative-intuitive"
    EMPATHETIC_SOCIAL = "empathetic-social"
    METHODICAL_STRUCTURED = "methodical-structured"
    ADAPTIVE_FLEXIBLE = "adaptive-flexible"


class TeachingStyle(str, Enum):
    """Teaching style a mentor favours."""

    DIRECTIVE = "directive"
    COLLABORATIVE = "collaborative"
    SUPPORTIVE = "supportive"
    DELEGATIVE = "delegative"
    ADAPTIVE = "adaptive"
    METHODICAL_STRUCTURED = "methodical-structured"


def normalize_mentor_personality(
    value: str | MentorPersonality | None,
    default: MentorPersonality = MentorPersonality.ADAPTIVE_FLEXIBLE,
) -> MentorPersonality:
    if isinstance(value, MentorPersonality):
        return value
    if not value:
        return default
    key = str(value).strip().lower().replace("_", "-")
    try:
        return MentorPersonality(key)
    except ValueError:
        return default


def normalize_teaching_style(
    value: str | TeachingStyle | None,
    default: TeachingStyle = TeachingStyle.COLLABORATIVE,
) -> TeachingStyle:
    if isinstance(value, TeachingStyle):
        return value
    if not value:
        return default
    key = str(value).strip().lower().replace("_", "-")
    if key == "methodical":
        return TeachingStyle.METHODICAL_STRUCTURED
    try:
        return TeachingStyle(key)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Mentor profile
# ---------------------------------------------------------------------------
class MentorProfile(BaseModel):
    """Immutable description of a human mentor, owned by the profile store."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    name: str = ""
    personality: MentorPersonality = MentorPersonality.ADAPTIVE_FLEXIBLE
    teaching_style: TeachingStyle = TeachingStyle.COLLABORATIVE
    cultural_background: CulturalEnvironment = CulturalEnvironment.DEAF_FAMILY_HOME
    adaptability_score: float = Field(default=0.7, ge=0.0, le=1.0)
    experience: float = Field(default=0.0, ge=0.0, description="Years of teaching experience")
    preferred_methods: tuple[str, ...] = ()
    specializations: tuple[str, ...] = ()

    @field_validator("personality", mode="before")
    @classmethod
    def _coerce_personality(cls, value: object) -> MentorPersonality:
        return normalize_mentor_personality(value)  # type: ignore[arg-type]

    @field_validator("teaching_style", mode="before")
    @classmethod
    def _coerce_style(cls, value: object) -> TeachingStyle:
        return normalize_teaching_style(value)  # type: ignore[arg-type]

    @field_validator("cultural_background", mode="before")
    @classmethod
    def _coerce_background(cls, value: object) -> CulturalEnvironment:
        return normalize_cultural_environment(value)  # type: ignore[arg-type]
