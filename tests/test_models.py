"""Domain models: enum normalisation, emotion bands, concept graph, snapshots."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from models.concept_graph import ConceptGraph
from models.mentor import MentorPersonality, MentorProfile, TeachingStyle
from models.session import SessionMetrics, SessionReactions, SessionSnapshot, TeachingSession, harmonize
from models.student import (
    AIMood,
    AIStudentState,
    CECRLLevel,
    CulturalEnvironment,
    PrimaryEmotion,
    StudentPersonality,
    emotion_from_comprehension,
    mood_from_emotion,
    next_level,
    normalize_cultural_environment,
    normalize_level,
    normalize_personality,
)


# ---------------------------------------------------------------------------
# Emotions
# ---------------------------------------------------------------------------
@pytest.mark.parametrize(
    "comprehension, emotion",
    [
        (0.85, PrimaryEmotion.JOY),
        (0.8, PrimaryEmotion.SATISFACTION),
        (0.61, PrimaryEmotion.SATISFACTION),
        (0.5, PrimaryEmotion.CURIOSITY),
        (0.3, PrimaryEmotion.CONFUSION),
        (0.2, PrimaryEmotion.FRUSTRATION),
        (0.0, PrimaryEmotion.FRUSTRATION),
    ],
)
def test_emotion_bands(comprehension, emotion):
    assert emotion_from_comprehension(comprehension) is emotion


def test_mood_from_emotion():
    assert mood_from_emotion(PrimaryEmotion.JOY) is AIMood.HAPPY
    assert mood_from_emotion(PrimaryEmotion.CURIOSITY) is AIMood.NEUTRAL
    assert mood_from_emotion(PrimaryEmotion.CONFUSION) is AIMood.CONFUSED
    assert mood_from_emotion(PrimaryEmotion.FRUSTRATION) is AIMood.FRUSTRATED
    assert mood_from_emotion(PrimaryEmotion.ENGAGEMENT) is AIMood.EXCITED


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------
def test_normalize_personality_accepts_aliases_and_defaults():
    assert normalize_personality("analytical") is StudentPersonality.ANALYTICAL_LEARNER
    assert normalize_personality("Shy-Learner") is StudentPersonality.SHY_LEARNER
    assert normalize_personality("grumpy") is StudentPersonality.CURIOUS_STUDENT
    assert normalize_personality(None, StudentPersonality.PATIENT_APPRENTICE) is (
        StudentPersonality.PATIENT_APPRENTICE
    )


def test_normalize_environment_and_level():
    assert normalize_cultural_environment("deaf_school") is CulturalEnvironment.SCHOOL_ENVIRONMENT
    assert normalize_cultural_environment("mars") is CulturalEnvironment.DEAF_FAMILY_HOME
    assert normalize_level("b2") is CECRLLevel.B2
    assert normalize_level("Z9") is CECRLLevel.A1


def test_next_level_walks_the_scale():
    assert next_level(CECRLLevel.A1) == "A2"
    assert next_level(CECRLLevel.C1) == "C2"
    assert next_level(CECRLLevel.C2) == "C2+"


def test_mentor_profile_normalises_free_strings():
    profile = MentorProfile(
        personality="methodical_structured",
        teaching_style="methodical",
        cultural_background="deaf_community_center",
    )
    assert profile.personality is MentorPersonality.METHODICAL_STRUCTURED
    assert profile.teaching_style is TeachingStyle.METHODICAL_STRUCTURED
    assert profile.cultural_background is CulturalEnvironment.COMMUNITY_CENTER

    fallback = MentorProfile(personality="stoic", teaching_style="laissez-faire")
    assert fallback.personality is MentorPersonality.ADAPTIVE_FLEXIBLE
    assert fallback.teaching_style is TeachingStyle.COLLABORATIVE


# ---------------------------------------------------------------------------
# Student state
# ---------------------------------------------------------------------------
def test_student_status_is_read_only_view():
    student = AIStudentState(name="Lumi", strengths=["memory"])
    status = student.to_status()
    assert status.name == "Lumi"
    assert status.strengths == ("memory",)
    assert "level=A1" in status.summary
    with pytest.raises(ValidationError):
        status.name = "Other"


def test_student_progress_is_bounded():
    with pytest.raises(ValidationError):
        AIStudentState(name="Lumi", progress=1.5)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------
def test_snapshot_from_closed_session():
    session = TeachingSession(
        mentor_id="m1",
        student_id="ai_1",
        reactions=SessionReactions(comprehension=0.6, engagement_evolution=(0.7, 0.9)),
        metrics=SessionMetrics(participation_rate=0.8, teaching_effectiveness=0.6, success_score=0.6),
    )
    (snap,) = harmonize([session])
    assert isinstance(snap, SessionSnapshot)
    assert snap.duration == 21  # round(30 * (0.8 + 0.6) / 2)
    assert snap.engagement_level == snap.comprehension == 0.6
    assert snap.end_time == session.start_time
    assert harmonize([snap]) == (snap,)


# ---------------------------------------------------------------------------
# Concept graph
# ---------------------------------------------------------------------------
def test_default_graph_orders_topic_concepts():
    graph = ConceptGraph.default()
    assert graph.concepts_for("basic_greetings") == ["hello", "goodbye", "thank_you", "please"]
    assert graph.concepts_for("numbers") == ["counting_1_10", "tens", "hundreds"]
    assert graph.concepts_for("weather") == ["weather"]
    assert "spatial_grammar" in graph.topics
    assert graph.prerequisites("thank_you") == ["goodbye", "hello"]


def test_graph_rejects_cycles():
    graph = ConceptGraph()
    graph.add_topic("t", ["a", "b", "c"])
    with pytest.raises(ValueError):
        graph.add_dependency("c", "a")
    assert graph.num_dependencies == 2
    assert len(graph) == 3
