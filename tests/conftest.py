"""Shared fixtures for the CodaMentor test-suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from config import Settings
from integrations.session_store import InMemorySessionStore
from integrations.simulator import SimulatedReaction
from models.mentor import MentorProfile
from models.session import SessionSnapshot
from models.student import AIMood, AIStudentState, CECRLLevel
from orchestrator.session_orchestrator import SessionOrchestrator

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class FixedSimulator:
    """Deterministic simulator: returns queued comprehension values in order.

    Once the queue is exhausted the last value repeats.
    """

    def __init__(self, *values: float, engagement: float = 0.8) -> None:
        self.values = list(values) or [0.7]
        self.engagement = engagement
        self.calls: list[tuple[str, str, str]] = []

    async def simulate_learning(
        self, student: AIStudentState, concept: str, explanation: str, method: str
    ) -> SimulatedReaction:
        self.calls.append((student.name, concept, method))
        value = self.values.pop(0) if len(self.values) > 1 else self.values[0]
        return SimulatedReaction(
            comprehension=value,
            reaction=f"reaction to {concept}",
            engagement=self.engagement,
        )


def make_snapshot(index: int = 0, **overrides) -> SessionSnapshot:
    start = T0 + timedelta(days=index)
    fields = dict(
        session_id=f"teach_{index:04d}",
        mentor_id="mentor_1",
        student_id="ai_1",
        topic="basic_greetings",
        teaching_method="visual_demonstration",
        target_level=CECRLLevel.A1,
        start_time=start,
        end_time=start + timedelta(minutes=30),
        duration=25,
        comprehension=0.75,
        success_score=0.75,
        participation_rate=0.8,
        teaching_effectiveness=0.8,
        engagement_level=0.75,
        teacher_interventions=3,
        actual_duration_minutes=30.0,
        emotion=AIMood.HAPPY,
        engagement_evolution=(0.8, 0.8, 0.8),
    )
    fields.update(overrides)
    return SessionSnapshot(**fields)


@pytest.fixture
def snapshot_factory() -> Callable[..., SessionSnapshot]:
    return make_snapshot


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def student() -> AIStudentState:
    return AIStudentState(id="ai_1", name="Lumi", personality="analytical_learner")


@pytest.fixture
def mentor() -> MentorProfile:
    return MentorProfile(
        id="mentor_1",
        name="Camille",
        personality="methodical-structured",
        teaching_style="methodical-structured",
        cultural_background="deaf_family_home",
        adaptability_score=0.8,
        experience=4,
        preferred_methods=("visual_demonstration",),
    )


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore(timeout_minutes=60)


@pytest.fixture
def simulator() -> FixedSimulator:
    return FixedSimulator(0.7)


@pytest.fixture
def orchestrator(store: InMemorySessionStore, simulator: FixedSimulator) -> SessionOrchestrator:
    return SessionOrchestrator(store=store, simulator=simulator)
