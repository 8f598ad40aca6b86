"""Integration layer: record store, profiles, payloads, simulator, evaluator."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from integrations.evaluator import CECRLEvaluator
from integrations.payloads import (
    PayloadError,
    parse_mentor_profile,
    parse_student_state,
    parse_teaching_session,
)
from integrations.profile_store import InMemoryProfileStore
from integrations.session_store import ActiveSessionArena, InMemorySessionStore
from integrations.simulator import RandomLearningSimulator
from models.mentor import MentorPersonality, TeachingStyle
from models.session import ActiveTeachingSession, MentorEvaluation, SessionMetrics, TeachingSession
from models.student import (
    AIMood,
    AIStudentState,
    CECRLLevel,
    CulturalEnvironment,
    StudentPersonality,
)
from tests.conftest import make_snapshot


# ---------------------------------------------------------------------------
# Session record store
# ---------------------------------------------------------------------------
async def test_store_record_lifecycle(store, student):
    record = await store.create("m1", student)
    assert record.student is student
    assert "m1" in store and len(store) == 1

    with pytest.raises(ValueError):
        await store.create("m1", student)

    session = TeachingSession(mentor_id="m1", concepts=("hello",))
    await store.append("m1", session)
    assert await store.list_sessions("m1") == [session]

    assert await store.terminate("m1") is True
    assert await store.terminate("m1") is False
    assert await store.get("m1") is None


async def test_store_unknown_mentor(store, student):
    assert await store.list_sessions("ghost") == []
    with pytest.raises(KeyError):
        await store.update_student("ghost", student)
    with pytest.raises(KeyError):
        await store.append("ghost", TeachingSession(mentor_id="ghost"))


async def test_list_sessions_returns_a_copy(store, student):
    await store.create("m1", student)
    listed = await store.list_sessions("m1")
    listed.append(TeachingSession(mentor_id="m1"))
    assert await store.list_sessions("m1") == []


async def test_cleanup_expired_uses_idle_time(store, student):
    await store.create("m1", student)
    now = datetime.now(timezone.utc)
    assert await store.cleanup_expired(now + timedelta(minutes=30)) == []
    assert await store.cleanup_expired(now + timedelta(minutes=90)) == ["m1"]
    assert "m1" not in store


async def test_store_statistics(store):
    await store.create("m1", AIStudentState(name="A", mood=AIMood.HAPPY))
    await store.create("m2", AIStudentState(name="B", mood=AIMood.CONFUSED))
    for effectiveness in (0.4, 0.8):
        await store.append("m1", TeachingSession(
            mentor_id="m1",
            concepts=("hello", "goodbye"),
            metrics=SessionMetrics(teaching_effectiveness=effectiveness),
        ))

    stats = await store.statistics()
    assert stats.total_mentors == 2
    assert stats.total_sessions == 2
    assert stats.average_effectiveness == pytest.approx(0.6)
    assert stats.mood_distribution == {"happy": 1, "confused": 1}
    assert stats.popular_concepts == ["hello", "goodbye"]


def test_arena_holds_one_session_per_mentor():
    arena = ActiveSessionArena()
    first = ActiveTeachingSession(mentor_id="m1", student_id="ai_1", topic="colors")
    second = ActiveTeachingSession(mentor_id="m1", student_id="ai_1", topic="family")
    arena.put(first)
    arena.put(second)

    assert len(arena) == 1
    assert arena.get("m1") is second
    assert list(arena) == [second]
    assert arena.pop("m1") is second
    assert arena.pop("m1") is None
    assert "m1" not in arena


# ---------------------------------------------------------------------------
# Profile store
# ---------------------------------------------------------------------------
async def test_profile_update_revalidates(mentor):
    profiles = InMemoryProfileStore([mentor])
    updated = await profiles.update("mentor_1", teaching_style="supportive", experience=6)

    assert updated.teaching_style is TeachingStyle.SUPPORTIVE
    assert updated.experience == 6
    assert (await profiles.get("mentor_1")) is updated
    assert mentor.teaching_style is TeachingStyle.METHODICAL_STRUCTURED

    with pytest.raises(ValidationError):
        await profiles.update("mentor_1", adaptability_score=2.0)
    with pytest.raises(KeyError):
        await profiles.update("ghost", experience=1)


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------
def test_parse_legacy_session_payload():
    session = parse_teaching_session({
        "sessionId": "teach_legacy",
        "mentorId": "m1",
        "aiStudentId": "ai_9",
        "timestamp": "2026-01-05T09:00:00+00:00",
        "content": {"topic": "numbers", "targetLevel": "a2", "teachingMethod": "visual"},
        "aiReactions": {"comprehension": 0.7, "emotion": "HAPPY", "engagementEvolution": [0.6, 0.8]},
        "metrics": {"actualDuration": 1_500_000, "successScore": 0.7, "participationRate": 0.9},
    })

    assert session.session_id == "teach_legacy"
    assert session.student_id == "ai_9"
    assert session.topic == "numbers"
    assert session.target_level is CECRLLevel.A2
    assert session.teaching_method == "visual"
    assert session.start_time == datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
    assert session.reactions.emotion is AIMood.HAPPY
    assert session.reactions.engagement_evolution == (0.6, 0.8)
    assert session.metrics.actual_duration_minutes == pytest.approx(25.0)


def test_legacy_duration_is_converted_from_milliseconds():
    legacy = parse_teaching_session({
        "sessionId": "x",
        "mentorId": "m",
        "metrics": {"actualDuration": 1_800_000, "successScore": 0.8},
    })
    assert legacy.metrics.actual_duration_minutes == pytest.approx(30.0)

    # Durations already in minutes are kept as they are
    current = parse_teaching_session({
        "sessionId": "y",
        "mentorId": "m",
        "metrics": {"actualDurationMinutes": 30, "successScore": 0.8},
    })
    assert current.metrics.actual_duration_minutes == pytest.approx(30.0)


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "a", "mapping"],
        {"sessionId": "x"},
        {"mentorId": "m1", "metrics": {"successScore": 2}},
        {"mentorId": "m1", "content": "numbers"},
    ],
)
def test_malformed_session_payloads(payload):
    with pytest.raises(PayloadError):
        parse_teaching_session(payload)


def test_parse_mentor_profile_payload():
    profile = parse_mentor_profile({
        "id": "m1",
        "personality": "Analytical_Logical",
        "teachingStyle": "methodical",
        "culturalContext": "deaf_school",
        "adaptability": 0.9,
        "teachingExperience": 3,
    })
    assert profile.personality is MentorPersonality.ANALYTICAL_LOGICAL
    assert profile.teaching_style is TeachingStyle.METHODICAL_STRUCTURED
    assert profile.cultural_background is CulturalEnvironment.SCHOOL_ENVIRONMENT
    assert profile.adaptability_score == pytest.approx(0.9)
    assert profile.experience == 3


def test_parse_student_payload_normalises_enums():
    student = parse_student_state({
        "name": "Nova",
        "personality": "energetic",
        "culturalContext": "online_learning",
        "currentLevel": "b1",
        "mood": "sleepy",
    })
    assert student.personality is StudentPersonality.ENERGETIC_PUPIL
    assert student.cultural_context is CulturalEnvironment.ONLINE_LEARNING
    assert student.current_level is CECRLLevel.B1
    assert student.mood is AIMood.NEUTRAL

    fallback = parse_student_state({})
    assert fallback.name == "IA-Eleve"
    assert fallback.personality is StudentPersonality.CURIOUS_STUDENT

    with pytest.raises(PayloadError):
        parse_student_state({"name": "Nova", "progress": -1})


# ---------------------------------------------------------------------------
# Simulator
# ---------------------------------------------------------------------------
async def test_simulator_without_noise_is_deterministic():
    simulator = RandomLearningSimulator(noise=0.0, seed=1)
    student = AIStudentState(name="Lumi")

    reaction = await simulator.simulate_learning(student, "hello", "Show it", "interactive_exploration")

    # 0.5 base + 0.05 curious + 0.1 matching method + 0.01 for two words
    assert reaction.comprehension == pytest.approx(0.66)
    assert reaction.engagement == pytest.approx(0.4 + 0.66 * 0.5 + 0.05)
    assert "let me try it" in reaction.reaction
    assert reaction.questions == []
    assert reaction.errors == []


async def test_simulator_struggling_student():
    simulator = RandomLearningSimulator(noise=0.0)
    student = AIStudentState(name="Lumi", personality="shy_learner", comprehension_rate=0.2)

    reaction = await simulator.simulate_learning(student, "tens", "Show it", "dynamic_practice")

    assert reaction.comprehension == pytest.approx(0.16)
    assert reaction.questions and "tens" in reaction.questions[0]
    assert reaction.errors == ["handshape_tens"]
    assert "don't understand" in reaction.reaction


async def test_simulator_seed_reproduces_runs():
    student = AIStudentState(name="Lumi")
    a = RandomLearningSimulator(noise=0.2, seed=42)
    b = RandomLearningSimulator(noise=0.2, seed=42)
    first = [await a.simulate_learning(student, c, "x", "m") for c in ("a", "b", "c")]
    second = [await b.simulate_learning(student, c, "x", "m") for c in ("a", "b", "c")]
    assert [r.comprehension for r in first] == [r.comprehension for r in second]
    assert all(0.0 <= r.comprehension <= 1.0 for r in first)


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------
async def test_evaluator_without_sessions():
    assert await CECRLEvaluator().evaluate("m1", []) == MentorEvaluation()


async def test_evaluator_scores_competencies():
    sessions = [
        make_snapshot(
            i,
            comprehension=0.5,
            teaching_effectiveness=0.9,
            participation_rate=0.7,
            struggling_moments=5,
        )
        for i in range(3)
    ]
    evaluation = await CECRLEvaluator().evaluate("m1", sessions)

    assert evaluation.overall_score == pytest.approx(0.75)
    assert evaluation.competencies.explanation == pytest.approx(0.5)
    assert evaluation.competencies.patience == pytest.approx(0.5)
    assert evaluation.competencies.cultural_sensitivity == pytest.approx(0.86)
    assert evaluation.improvement_tips == ("Work on explanation", "Work on patience")
    assert evaluation.strength_areas == ("adaptation", "cultural_sensitivity")
    assert evaluation.session_analysis.total_sessions == 3
    assert evaluation.session_analysis.average_session_minutes == pytest.approx(25.0)
    assert evaluation.session_analysis.teaching_consistency == pytest.approx(1.0)
