"""Session orchestrator: lifecycle, state machine, student updates."""

from __future__ import annotations

import asyncio

import pytest

from integrations.session_store import InMemorySessionStore
from integrations.simulator import SimulatedReaction
from models.student import (
    AIMood,
    CECRLLevel,
    CulturalEnvironment,
    PrimaryEmotion,
    StudentPersonality,
    mood_from_emotion,
)
from orchestrator.errors import InvalidMentorState, NotFoundError, SessionNotFound
from orchestrator.session_orchestrator import SessionOrchestrator
from orchestrator.state import MentorPhase
from tests.conftest import FixedSimulator


# ---------------------------------------------------------------------------
# create_student
# ---------------------------------------------------------------------------
async def test_create_student_uses_defaults(orchestrator):
    status = await orchestrator.create_student("m1")
    assert status.name == "IA-Eleve"
    assert status.personality is StudentPersonality.CURIOUS_STUDENT
    assert status.cultural_context is CulturalEnvironment.DEAF_FAMILY_HOME
    assert status.current_level is CECRLLevel.A1
    assert orchestrator.get_state("m1").current_phase is MentorPhase.STUDENT_CREATED


async def test_create_student_normalises_inputs(orchestrator):
    status = await orchestrator.create_student(
        "m1", name="Lumi", personality="shy", cultural_context="deaf_school"
    )
    assert status.personality is StudentPersonality.SHY_LEARNER
    assert status.cultural_context is CulturalEnvironment.SCHOOL_ENVIRONMENT


async def test_second_student_requires_recreate(orchestrator):
    first = await orchestrator.create_student("m1", name="Lumi")
    with pytest.raises(InvalidMentorState):
        await orchestrator.create_student("m1", name="Nova")

    second = await orchestrator.create_student("m1", name="Nova", recreate=True)
    assert second.id != first.id
    assert (await orchestrator.get_student_status("m1")).name == "Nova"


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------
async def test_start_session_without_student_fails(orchestrator):
    with pytest.raises(SessionNotFound):
        await orchestrator.start_session("m1", "numbers")


async def test_start_session_derives_concepts_and_method(orchestrator, simulator):
    await orchestrator.create_student("m1", personality="energetic_pupil")
    session_id = await orchestrator.start_session("m1", "numbers")
    assert session_id.startswith("teach_")

    await orchestrator.teach_concept("m1", session_id, "tens", "Tap twice")
    assert simulator.calls == [("IA-Eleve", "tens", "dynamic_practice")]

    summary = await orchestrator.end_session("m1", session_id)
    assert summary.session.concepts == ("counting_1_10", "tens", "hundreds")
    assert summary.session.teaching_method == "dynamic_practice"


async def test_teach_before_start_fails(orchestrator):
    await orchestrator.create_student("m1")
    with pytest.raises(SessionNotFound):
        await orchestrator.teach_concept("m1", "teach_missing", "hello", "Wave")


async def test_teach_with_wrong_session_id_fails(orchestrator):
    await orchestrator.create_student("m1")
    await orchestrator.start_session("m1", "colors")
    with pytest.raises(SessionNotFound):
        await orchestrator.teach_concept("m1", "teach_other", "hello", "Wave")


async def test_second_concurrent_session_is_rejected(orchestrator):
    await orchestrator.create_student("m1")
    await orchestrator.start_session("m1", "colors")
    with pytest.raises(InvalidMentorState):
        await orchestrator.start_session("m1", "family")


async def test_high_comprehension_brings_joy(store):
    orchestrator = SessionOrchestrator(store=store, simulator=FixedSimulator(0.85))
    await orchestrator.create_student("m1")
    session_id = await orchestrator.start_session("m1", "basic_greetings")

    result = await orchestrator.teach_concept("m1", session_id, "hello", "Open hand at the temple")

    assert result.emotion is PrimaryEmotion.JOY
    assert result.needs_help is False
    assert result.mood is AIMood.HAPPY
    record = await store.get("m1")
    assert record.student.mood is AIMood.HAPPY
    assert record.student.comprehension_rate == pytest.approx(0.85)
    assert record.student.last_learned == "hello"


async def test_low_comprehension_needs_help(store):
    orchestrator = SessionOrchestrator(store=store, simulator=FixedSimulator(0.3))
    await orchestrator.create_student("m1")
    session_id = await orchestrator.start_session("m1", "colors")
    result = await orchestrator.teach_concept("m1", session_id, "primary_colors", "Point")
    assert result.needs_help is True
    assert result.emotion is PrimaryEmotion.CONFUSION


async def test_end_session_metrics_and_evaluation(store):
    orchestrator = SessionOrchestrator(store=store, simulator=FixedSimulator(0.4, 0.6, 0.9))
    await orchestrator.create_student("m1")
    session_id = await orchestrator.start_session("m1", "numbers")
    for concept in ("counting_1_10", "tens", "hundreds"):
        await orchestrator.teach_concept("m1", session_id, concept, "Show it")

    summary = await orchestrator.end_session("m1", session_id)
    metrics = summary.session.metrics

    assert metrics.success_score == pytest.approx(19 / 30)
    assert metrics.concepts_mastered == ("hundreds",)
    assert metrics.concepts_to_review == ("counting_1_10",)
    assert metrics.teaching_effectiveness == pytest.approx(1.0)
    assert metrics.teacher_interventions == 3
    assert metrics.participation_rate == pytest.approx(0.8)
    assert len(summary.session.reactions.struggling_moments) == 1

    evaluation = summary.evaluation
    assert evaluation.overall_score == pytest.approx(19 / 30)
    assert evaluation.competencies.patience == pytest.approx(0.8)
    assert evaluation.improvement_tips == ("Adapt the pace to the AI-student's difficulties",)

    assert summary.student.progress == pytest.approx(0.1 * 19 / 30)
    assert summary.student.concepts_learned == ("hundreds",)
    assert orchestrator.get_state("m1").current_phase is MentorPhase.SESSION_CLOSED
    assert await store.list_sessions("m1") == [summary.session]


async def test_end_session_twice_fails(orchestrator):
    await orchestrator.create_student("m1")
    session_id = await orchestrator.start_session("m1", "family")
    await orchestrator.end_session("m1", session_id)
    with pytest.raises(SessionNotFound):
        await orchestrator.end_session("m1", session_id)


async def test_empty_session_scores_zero(orchestrator):
    await orchestrator.create_student("m1")
    session_id = await orchestrator.start_session("m1", "family")
    summary = await orchestrator.end_session("m1", session_id)
    assert summary.session.metrics.success_score == 0.0
    assert summary.session.metrics.teaching_effectiveness == 0.0
    assert summary.evaluation.improvement_tips == ()


async def test_new_session_after_close(orchestrator):
    await orchestrator.create_student("m1")
    first = await orchestrator.end_session("m1", await orchestrator.start_session("m1", "colors"))
    second_id = await orchestrator.start_session("m1", "family")
    assert second_id != first.session.session_id
    assert orchestrator.get_state("m1").sessions_completed == 1


async def test_level_up_when_progress_completes(store):
    orchestrator = SessionOrchestrator(store=store, simulator=FixedSimulator(1.0))
    await orchestrator.create_student("m1")
    record = await store.get("m1")
    record.student.progress = 0.95

    session_id = await orchestrator.start_session("m1", "hello_world")
    await orchestrator.teach_concept("m1", session_id, "hello_world", "Wave")
    summary = await orchestrator.end_session("m1", session_id)

    assert summary.student.current_level is CECRLLevel.A2
    assert summary.student.progress == 0.0


async def test_errors_share_a_taxonomy():
    assert issubclass(SessionNotFound, NotFoundError)
    assert issubclass(InvalidMentorState, Exception)


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------
class SlowSimulator:
    """Simulator that yields to the event loop for a varying time per call."""

    def __init__(self, *delays: float) -> None:
        self.delays = delays
        self.order: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def simulate_learning(self, student, concept, explanation, method):
        index = len(self.order)
        self.order.append(concept)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(self.delays[index % len(self.delays)])
        self.in_flight -= 1
        return SimulatedReaction(comprehension=0.1 + 0.08 * index, reaction=f"reaction to {concept}")


class FlakyStore(InMemorySessionStore):
    """Store whose first ``append`` fails."""

    def __init__(self) -> None:
        super().__init__(timeout_minutes=60)
        self.failures = 1

    async def append(self, mentor_id, session):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("disk full")
        await super().append(mentor_id, session)


async def test_concurrent_teaching_is_serialised(store):
    simulator = SlowSimulator(0.005, 0.001, 0.003)
    orchestrator = SessionOrchestrator(store=store, simulator=simulator)
    await orchestrator.create_student("m1")
    session_id = await orchestrator.start_session("m1", "basic_greetings")

    concepts = [f"sign_{i}" for i in range(10)]
    await asyncio.gather(*(
        orchestrator.teach_concept("m1", session_id, c, "Show it") for c in concepts
    ))

    assert simulator.max_in_flight == 1
    student = (await store.get("m1")).student
    summary = await orchestrator.end_session("m1", session_id)
    interactions = summary.session.interactions
    assert [i.concept for i in interactions] == simulator.order
    assert student.comprehension_rate == pytest.approx(interactions[-1].comprehension)
    assert student.mood is mood_from_emotion(interactions[-1].emotion)
    assert student.last_learned == interactions[-1].concept


async def test_failed_close_leaves_session_open():
    store = FlakyStore()
    orchestrator = SessionOrchestrator(store=store, simulator=FixedSimulator(0.9))
    await orchestrator.create_student("m1")
    session_id = await orchestrator.start_session("m1", "colors")
    await orchestrator.teach_concept("m1", session_id, "primary_colors", "Point")

    with pytest.raises(RuntimeError, match="disk full"):
        await orchestrator.end_session("m1", session_id)

    record = await store.get("m1")
    assert record.student.progress == 0.0
    assert record.student.concepts_learned == []
    assert await store.list_sessions("m1") == []
    assert orchestrator.get_state("m1").current_phase is MentorPhase.SESSION_ACTIVE

    summary = await orchestrator.end_session("m1", session_id)
    assert await store.list_sessions("m1") == [summary.session]
    assert summary.student.progress == pytest.approx(0.09)
    assert summary.student.concepts_learned == ("primary_colors",)


async def test_bookkeeping_is_released(orchestrator):
    await orchestrator.create_student("m1")
    await orchestrator.create_student("m2")
    session_id = await orchestrator.start_session("m1", "colors")
    await asyncio.gather(
        orchestrator.teach_concept("m1", session_id, "primary_colors", "Point"),
        orchestrator.teach_concept("m1", session_id, "secondary_colors", "Mix"),
    )
    assert orchestrator._locks == {}
    assert orchestrator._lock_users == {}

    await orchestrator.terminate("m2")
    assert "m2" not in orchestrator._states
    assert "m1" in orchestrator._states
    assert orchestrator._locks == {}


async def test_mentors_are_independent(orchestrator):
    await orchestrator.create_student("m1")
    await orchestrator.create_student("m2")
    s1 = await orchestrator.start_session("m1", "colors")
    s2 = await orchestrator.start_session("m2", "colors")
    with pytest.raises(SessionNotFound):
        await orchestrator.teach_concept("m1", s2, "primary_colors", "Point")
    await orchestrator.teach_concept("m1", s1, "primary_colors", "Point")


# ---------------------------------------------------------------------------
# Housekeeping
# ---------------------------------------------------------------------------
async def test_terminate_and_statistics(orchestrator):
    await orchestrator.create_student("m1")
    await orchestrator.create_student("m2")
    session_id = await orchestrator.start_session("m1", "colors")
    await orchestrator.teach_concept("m1", session_id, "primary_colors", "Point")
    await orchestrator.end_session("m1", session_id)
    await orchestrator.start_session("m2", "family")

    stats = await orchestrator.get_global_statistics()
    assert stats.total_mentors == 2
    assert stats.active_sessions == 1
    assert stats.total_sessions == 1
    assert stats.popular_concepts[0] == "primary_colors"

    assert await orchestrator.terminate("m2") is True
    assert await orchestrator.terminate("m2") is False
    assert await orchestrator.get_student_status("m2") is None
    assert orchestrator.get_state("m2").current_phase is MentorPhase.NO_STUDENT
    assert (await orchestrator.get_global_statistics()).active_sessions == 0


async def test_close_drops_active_sessions(orchestrator):
    await orchestrator.create_student("m1")
    session_id = await orchestrator.start_session("m1", "colors")
    await orchestrator.close()
    with pytest.raises(SessionNotFound):
        await orchestrator.teach_concept("m1", session_id, "primary_colors", "Point")
    assert orchestrator.get_state("m1").current_phase is MentorPhase.STUDENT_CREATED
