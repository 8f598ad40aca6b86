"""CodaMentor models package."""

from models.student import (
    AIMood,
    AIStudentState,
    CECRLLevel,
    CulturalEnvironment,
    PrimaryEmotion,
    StudentPersonality,
    StudentStatus,
)
from models.mentor import MentorPersonality, MentorProfile, TeachingStyle
from models.session import (
    ActiveTeachingSession,
    MentorEvaluation,
    SessionSnapshot,
    TeachingInteraction,
    TeachingSession,
    harmonize,
)
from models.concept_graph import ConceptGraph

__all__ = [
    "AIMood",
    "AIStudentState",
    "ActiveTeachingSession",
    "CECRLLevel",
    "ConceptGraph",
    "CulturalEnvironment",
    "MentorEvaluation",
    "MentorPersonality",
    "MentorProfile",
    "PrimaryEmotion",
    "SessionSnapshot",
    "StudentPersonality",
    "StudentStatus",
    "TeachingInteraction",
    "TeachingSession",
    "TeachingStyle",
    "harmonize",
]
