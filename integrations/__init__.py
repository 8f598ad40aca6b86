"""CodaMentor integrations package."""

from integrations.evaluator import CECRLEvaluator
from integrations.payloads import (
    PayloadError,
    parse_mentor_profile,
    parse_student_state,
    parse_teaching_session,
)
from integrations.profile_store import InMemoryProfileStore, ProfileStore
from integrations.session_store import (
    ActiveSessionArena,
    InMemorySessionStore,
    MentorRecord,
    SessionRecordStore,
    StoreStatistics,
)
from integrations.simulator import LearningSimulator, RandomLearningSimulator, SimulatedReaction

__all__ = [
    "ActiveSessionArena",
    "CECRLEvaluator",
    "InMemoryProfileStore",
    "InMemorySessionStore",
    "LearningSimulator",
    "MentorRecord",
    "PayloadError",
    "ProfileStore",
    "RandomLearningSimulator",
    "SessionRecordStore",
    "SimulatedReaction",
    "StoreStatistics",
    "parse_mentor_profile",
    "parse_student_state",
    "parse_teaching_session",
]
