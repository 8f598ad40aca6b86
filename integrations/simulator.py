"""CodaMentor: learning simulator.

Stands in for the exercise/simulation service: given the AI-student's
state and a taught concept, it produces a comprehension score and the
student's textual reaction.  The default simulator is a seeded random
model around the student's comprehension rate, so runs are reproducible.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Protocol

from config import get_settings, get_logger
from engines.stats import clamp01
from models.student import AIStudentState, StudentPersonality

logger = get_logger(__name__)


@dataclass
class SimulatedReaction:
    """What the AI-student does after being taught one concept."""

    comprehension: float
    reaction: str
    engagement: float = 0.8
    questions: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class LearningSimulator(Protocol):
    async def simulate_learning(
        self,
        student: AIStudentState,
        concept: str,
        explanation: str,
        method: str,
    ) -> SimulatedReaction: ...


# Personality shifts applied to the base comprehension rate
_PERSONALITY_MODIFIERS: dict[StudentPersonality, float] = {
    StudentPersonality.CURIOUS_STUDENT: 0.05,
    StudentPersonality.SHY_LEARNER: -0.05,
    StudentPersonality.ENERGETIC_PUPIL: 0.0,
    StudentPersonality.PATIENT_APPRENTICE: 0.05,
    StudentPersonality.ANALYTICAL_LEARNER: 0.05,
    StudentPersonality.CREATIVE_THINKER: 0.0,
}

# Methods matched to a personality earn a small bonus
_METHOD_AFFINITY: dict[StudentPersonality, str] = {
    StudentPersonality.CURIOUS_STUDENT: "interactive_exploration",
    StudentPersonality.SHY_LEARNER: "gentle_demonstration",
    StudentPersonality.ENERGETIC_PUPIL: "dynamic_practice",
    StudentPersonality.PATIENT_APPRENTICE: "step_by_step_guidance",
}


class RandomLearningSimulator:
    """Seeded random :class:`LearningSimulator`.

    Parameters
    ----------
    noise:
        Amplitude of the uniform noise added to comprehension.  Defaults to
        ``Settings.simulator_noise``.
    seed:
        Seed for the private random generator.
    """

    def __init__(self, noise: float | None = None, seed: int | None = None) -> None:
        self._noise = get_settings().simulator_noise if noise is None else noise
        self._rng = random.Random(seed)
        logger.debug("RandomLearningSimulator initialised (noise=%.2f, seed=%s)", self._noise, seed)

    async def simulate_learning(
        self,
        student: AIStudentState,
        concept: str,
        explanation: str,
        method: str,
    ) -> SimulatedReaction:
        base = student.comprehension_rate + _PERSONALITY_MODIFIERS.get(student.personality, 0.0)
        if _METHOD_AFFINITY.get(student.personality) == method:
            base += 0.1
        # Longer explanations help a little, up to +0.1
        base += min(0.1, len(explanation.split()) / 200)
        comprehension = clamp01(base + self._rng.uniform(-self._noise, self._noise))

        reaction = SimulatedReaction(
            comprehension=round(comprehension, 3),
            reaction=self._reaction_text(concept, comprehension),
            engagement=clamp01(0.4 + comprehension * 0.5 + student.motivation * 0.1),
        )
        if comprehension < 0.6:
            reaction.questions.append(f"Can you show me '{concept}' again, more slowly?")
        if comprehension < 0.4:
            reaction.errors.append(f"handshape_{concept}")
        logger.debug("Simulated %s on %s: comprehension=%.2f", student.name, concept, comprehension)
        return reaction

    @staticmethod
    def _reaction_text(concept: str, comprehension: float) -> str:
        if comprehension > 0.8:
            return f"I understand '{concept}' perfectly, thank you!"
        if comprehension > 0.6:
            return f"I think I get '{concept}', let me try it."
        if comprehension > 0.4:
            return f"'{concept}' is interesting, but I need another example."
        if comprehension > 0.2:
            return f"I am confused about '{concept}'."
        return f"I really don't understand '{concept}'."
