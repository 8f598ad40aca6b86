"""CodaMentor: base CECRL evaluator.

Produces the baseline :class:`MentorEvaluation` from a mentor's closed
sessions.  The business logic orchestrator enriches it with predictions,
cultural analysis and recommendations.
"""

from __future__ import annotations

from typing import Iterable

from config import get_logger
from engines.stats import clamp01, mean, variance
from models.session import (
    MentorCompetencies,
    MentorEvaluation,
    SessionAnalysis,
    SessionSnapshot,
    TeachingSession,
    harmonize,
)

logger = get_logger(__name__)


class CECRLEvaluator:
    """Score a mentor's teaching from session outcomes."""

    async def evaluate(
        self,
        mentor_id: str,
        sessions: Iterable[TeachingSession | SessionSnapshot],
    ) -> MentorEvaluation:
        snaps = harmonize(sessions)
        if not snaps:
            logger.warning("No sessions to evaluate for mentor=%s, using defaults", mentor_id)
            return MentorEvaluation()

        success = [s.success_score for s in snaps]
        effectiveness = [s.teaching_effectiveness for s in snaps]
        participation = [s.participation_rate for s in snaps]
        struggling = mean([float(s.struggling_moments) for s in snaps])

        competencies = MentorCompetencies(
            explanation=clamp01(mean([s.comprehension for s in snaps])),
            patience=clamp01(1 - struggling / 10),
            adaptation=clamp01(mean(effectiveness)),
            encouragement=clamp01(mean(participation)),
            cultural_sensitivity=clamp01(0.5 + mean(effectiveness) * 0.4),
        )

        tips: list[str] = []
        strengths: list[str] = []
        for name, score in competencies.model_dump().items():
            if score < 0.6:
                tips.append(f"Work on {name.replace('_', ' ')}")
            elif score > 0.8:
                strengths.append(name)

        evaluation = MentorEvaluation(
            overall_score=clamp01(mean(success)),
            competencies=competencies,
            improvement_tips=tuple(tips),
            strength_areas=tuple(strengths),
            session_analysis=SessionAnalysis(
                total_sessions=len(snaps),
                average_session_minutes=mean([float(s.duration) for s in snaps]),
                student_progress_rate=mean(success),
                teaching_consistency=max(0.0, 1 - variance(success)),
            ),
            personality_match=clamp01(mean(participation)),
            cultural_adaptation=competencies.cultural_sensitivity,
        )
        logger.info(
            "Base evaluation mentor=%s: overall=%.2f over %d sessions",
            mentor_id, evaluation.overall_score, len(snaps),
        )
        return evaluation
