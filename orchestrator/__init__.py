"""CodaMentor orchestrator package."""

from orchestrator.business_logic import BusinessLogicOrchestrator, InsightBundle
from orchestrator.cache import InsightsCache
from orchestrator.errors import (
    CodaError,
    InvalidMentorState,
    InvalidStateError,
    NotFoundError,
    SessionNotFound,
)
from orchestrator.session_orchestrator import SessionOrchestrator
from orchestrator.state import MentorPhase, MentorState

__all__ = [
    "BusinessLogicOrchestrator",
    "CodaError",
    "InsightBundle",
    "InsightsCache",
    "InvalidMentorState",
    "InvalidStateError",
    "MentorPhase",
    "MentorState",
    "NotFoundError",
    "SessionNotFound",
    "SessionOrchestrator",
]
