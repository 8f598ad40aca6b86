"""CodaMentor: Predictive Engine.

Closed-form forecasts over recent teaching history: probability of
reaching the next CECRL level, risk of a learning plateau, the optimal
weekly session cadence and the areas to focus on next.  Below the
minimum history (``Settings.min_sessions_for_prediction``) every
forecast falls back to a documented default flagged ``is_default``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable

from config import get_settings, get_logger
from engines.stats import clamp01, mean, unique, variance
from models.session import SessionSnapshot, TeachingSession, harmonize
from models.student import AIMood, AIStudentState, CECRLLevel, next_level

logger = get_logger(__name__)

TREND_THRESHOLD = 0.1
TREND_WINDOW = 3
RECENT_WINDOW = 5
BASE_WEEKLY_SESSIONS = 3

_LEVEL_FREQUENCY_MULTIPLIER: dict[CECRLLevel, float] = {
    CECRLLevel.A1: 1.2,
    CECRLLevel.A2: 1.0,
}
_LEVEL_WEEKLY_SESSIONS: dict[CECRLLevel, int] = {
    CECRLLevel.A1: 4,
    CECRLLevel.A2: 3,
}

_NEGATIVE_MOODS = {AIMood.FRUSTRATED, AIMood.CONFUSED}


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------
@dataclass
class PredictiveInsights:
    """Headline forecasts for one mentor/AI-student pair."""

    next_level_probability: float = 0.6
    plateau_risk: float = 0.3
    optimal_session_frequency: int = 3
    recommended_focus_areas: list[str] = field(default_factory=lambda: ["basic_concepts"])
    cultural_adaptation_needs: list[str] = field(default_factory=lambda: ["cultural_basics"])
    is_default: bool = False


@dataclass
class NextLevelAnalysis:
    current_level: CECRLLevel = CECRLLevel.A1
    next_level: str = CECRLLevel.A2.value
    probability: float = 0.6
    estimated_weeks: int = 8
    required_sessions: int = 24
    confidence: float = 0.5
    blockers: list[str] = field(default_factory=list)
    accelerators: list[str] = field(default_factory=list)
    is_default: bool = False


@dataclass
class PlateauRiskAnalysis:
    risk_level: float = 0.3
    indicators: list[str] = field(default_factory=list)
    mitigation_strategies: list[str] = field(default_factory=list)
    early_warning_signals: list[str] = field(default_factory=list)
    recovery_weeks: int = 2
    is_default: bool = False


@dataclass
class AdaptationRecommendations:
    cultural: list[str] = field(default_factory=list)
    pedagogical: list[str] = field(default_factory=list)
    technical: list[str] = field(default_factory=list)
    emotional: list[str] = field(default_factory=list)
    priority: str = "medium"  # high | medium | low
    is_default: bool = False

    @property
    def total(self) -> int:
        return len(self.cultural) + len(self.pedagogical) + len(self.technical) + len(self.emotional)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
class PredictiveEngine:
    """Stateless forecaster over teaching-session history.

    Parameters
    ----------
    min_sessions:
        Minimum history for non-default forecasts.  Defaults to
        ``Settings.min_sessions_for_prediction``.
    """

    def __init__(self, min_sessions: int | None = None) -> None:
        self._min_sessions = min_sessions or get_settings().min_sessions_for_prediction
        logger.debug("PredictiveEngine initialised (min_sessions=%d)", self._min_sessions)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def generate_predictive_insights(
        self,
        mentor_id: str,
        student: AIStudentState,
        sessions: Iterable[TeachingSession | SessionSnapshot],
    ) -> PredictiveInsights:
        """Forecast next-level probability, plateau risk, cadence and focus."""
        snaps = harmonize(sessions)
        logger.info(
            "Predictive insights for mentor=%s student=%s level=%s (%d sessions)",
            mentor_id, student.name, student.current_level.value, len(snaps),
        )
        if len(snaps) < self._min_sessions:
            logger.warning(
                "Only %d sessions (need %d), returning default predictions",
                len(snaps), self._min_sessions,
            )
            return PredictiveInsights(is_default=True)

        insights = PredictiveInsights(
            next_level_probability=self._next_level_probability(student, snaps),
            plateau_risk=self.plateau_risk(snaps),
            optimal_session_frequency=self.optimal_session_frequency(student, snaps),
            recommended_focus_areas=self._focus_areas(student, snaps),
            cultural_adaptation_needs=self._cultural_needs(snaps),
        )
        logger.info(
            "Predictions: next_level=%.2f plateau=%.2f frequency=%d/week",
            insights.next_level_probability, insights.plateau_risk,
            insights.optimal_session_frequency,
        )
        return insights

    def analyze_next_level_progression(
        self,
        student: AIStudentState,
        sessions: Iterable[TeachingSession | SessionSnapshot],
    ) -> NextLevelAnalysis:
        """Estimate when, and how likely, the student reaches the next level."""
        snaps = harmonize(sessions)
        if len(snaps) < self._min_sessions:
            logger.warning("Too few sessions for next-level analysis, using defaults")
            return NextLevelAnalysis(current_level=student.current_level, is_default=True)

        probability = clamp01(
            self._next_level_probability(student, snaps) + self._consistency_bonus(snaps)
        )
        weeks = self._estimated_weeks(student, snaps)
        weekly = _LEVEL_WEEKLY_SESSIONS.get(student.current_level, 2)
        scores = [s.success_score for s in snaps]

        analysis = NextLevelAnalysis(
            current_level=student.current_level,
            next_level=next_level(student.current_level),
            probability=probability,
            estimated_weeks=weeks,
            required_sessions=max(10, weeks * weekly),
            confidence=(min(1.0, len(snaps) / 10) + (1 - variance(scores))) / 2,
            blockers=self._blockers(student, snaps),
            accelerators=self._accelerators(student, snaps),
        )
        logger.info(
            "Next level %s: p=%.2f in ~%d weeks (%d sessions)",
            analysis.next_level, analysis.probability, analysis.estimated_weeks,
            analysis.required_sessions,
        )
        return analysis

    def analyze_plateau_risk(
        self, sessions: Iterable[TeachingSession | SessionSnapshot]
    ) -> PlateauRiskAnalysis:
        """Explain the plateau risk with indicators, mitigations and warnings."""
        snaps = harmonize(sessions)
        if not snaps:
            logger.warning("No sessions for plateau analysis, using defaults")
            return PlateauRiskAnalysis(is_default=True)

        risk = self.plateau_risk(snaps)
        indicators = self._plateau_indicators(snaps)
        return PlateauRiskAnalysis(
            risk_level=risk,
            indicators=indicators,
            mitigation_strategies=self._mitigations(risk, indicators),
            early_warning_signals=self._early_warnings(snaps),
            recovery_weeks=4 if risk > 0.8 else 2 if risk > 0.6 else 1,
        )

    def generate_adaptation_recommendations(
        self,
        student: AIStudentState,
        sessions: Iterable[TeachingSession | SessionSnapshot],
    ) -> AdaptationRecommendations:
        """Group adaptation advice by concern and rank its urgency."""
        snaps = harmonize(sessions)
        recs = AdaptationRecommendations(
            cultural=self._cultural_recommendations(snaps),
            pedagogical=self._pedagogical_recommendations(snaps),
            technical=self._technical_recommendations(snaps),
            emotional=self._emotional_recommendations(snaps),
        )
        if len(recs.emotional) > 2 or len(recs.technical) > 2 or recs.total > 6:
            recs.priority = "high"
        elif recs.total > 3:
            recs.priority = "medium"
        else:
            recs.priority = "low"
        logger.info(
            "Adaptation recommendations for %s: %d items, priority=%s",
            student.name, recs.total, recs.priority,
        )
        return recs

    # ------------------------------------------------------------------
    # Core heuristics
    # ------------------------------------------------------------------
    @staticmethod
    def progression_trend(snaps: tuple[SessionSnapshot, ...]) -> str:
        """Mean success of the last 3 sessions against the 3 before, ±0.1."""
        if len(snaps) < 2:
            return "stable"
        recent_avg = mean([s.success_score for s in snaps[-TREND_WINDOW:]])
        older_avg = mean(
            [s.success_score for s in snaps[-2 * TREND_WINDOW:-TREND_WINDOW]],
            default=recent_avg,
        )
        if recent_avg > older_avg + TREND_THRESHOLD:
            return "improving"
        if recent_avg < older_avg - TREND_THRESHOLD:
            return "declining"
        return "stable"

    def plateau_risk(self, snaps: tuple[SessionSnapshot, ...]) -> float:
        if len(snaps) < 3:
            return 0.3
        recent_variance = variance([s.success_score for s in snaps[-RECENT_WINDOW:]])
        trend = self.progression_trend(snaps)
        if recent_variance < 0.05 and trend == "stable":
            return 0.8
        if trend == "declining":
            return 0.9
        return min(recent_variance * 2, 0.6)

    @staticmethod
    def optimal_session_frequency(
        student: AIStudentState, snaps: tuple[SessionSnapshot, ...]
    ) -> int:
        level_multiplier = _LEVEL_FREQUENCY_MULTIPLIER.get(student.current_level, 0.8)
        recent = mean([s.success_score for s in snaps[-TREND_WINDOW:]], default=0.5)
        if recent > 0.8:
            performance_multiplier = 0.9
        elif recent < 0.5:
            performance_multiplier = 1.3
        else:
            performance_multiplier = 1.0
        frequency = round(BASE_WEEKLY_SESSIONS * level_multiplier * performance_multiplier)
        return max(2, min(5, frequency))

    def _next_level_probability(
        self, student: AIStudentState, snaps: tuple[SessionSnapshot, ...]
    ) -> float:
        trend = self.progression_trend(snaps)
        trend_bonus = 0.2 if trend == "improving" else -0.1 if trend == "declining" else 0.0
        pattern_bonus = 0.1 if mean([s.comprehension for s in snaps]) > 0.7 else 0.0
        return clamp01(min(1.0, student.progress + 0.3) + trend_bonus + pattern_bonus)

    @staticmethod
    def _consistency_bonus(snaps: tuple[SessionSnapshot, ...]) -> float:
        if len(snaps) < 3:
            return 0.0
        recent_variance = variance([s.success_score for s in snaps[-RECENT_WINDOW:]])
        if recent_variance < 0.1:
            return 0.1
        if recent_variance > 0.3:
            return -0.1
        return 0.0

    def _estimated_weeks(
        self, student: AIStudentState, snaps: tuple[SessionSnapshot, ...]
    ) -> int:
        remaining = 1 - student.progress
        per_session = mean([s.success_score for s in snaps[-RECENT_WINDOW:]], default=0.5) * 0.1
        sessions_needed = math.ceil(remaining / max(per_session, 0.01))
        return math.ceil(sessions_needed / self.optimal_session_frequency(student, snaps))

    # ------------------------------------------------------------------
    # Focus areas / cultural needs
    # ------------------------------------------------------------------
    @staticmethod
    def _focus_areas(student: AIStudentState, snaps: tuple[SessionSnapshot, ...]) -> list[str]:
        areas = list(student.weaknesses)
        if mean([s.comprehension for s in snaps[-TREND_WINDOW:]], default=1.0) < 0.6:
            areas.append("comprehension_reinforcement")
        to_review = unique(c for s in snaps for c in s.concepts_to_review)
        areas.extend(to_review[:2])
        return areas[:3]

    @staticmethod
    def _cultural_needs(snaps: tuple[SessionSnapshot, ...]) -> list[str]:
        needs: list[str] = []
        if mean([s.teaching_effectiveness for s in snaps], default=1.0) < 0.7:
            needs.append("cultural_immersion")
        if any(
            "cultural" in e.lower() or "context" in e.lower()
            for s in snaps for e in s.errors
        ):
            needs.append("cultural_context_training")
        return needs

    # ------------------------------------------------------------------
    # Blockers / accelerators
    # ------------------------------------------------------------------
    @staticmethod
    def _blockers(student: AIStudentState, snaps: tuple[SessionSnapshot, ...]) -> list[str]:
        blockers = list(student.weaknesses[:2])
        if mean([s.participation_rate for s in snaps], default=1.0) < 0.6:
            blockers.append("low_engagement")
        if sum(s.struggling_moments for s in snaps) > len(snaps) * 2:
            blockers.append("frequent_confusion")
        return blockers

    @staticmethod
    def _accelerators(student: AIStudentState, snaps: tuple[SessionSnapshot, ...]) -> list[str]:
        accelerators = list(student.strengths[:2])
        if mean([s.comprehension for s in snaps]) > 0.8:
            accelerators.append("high_comprehension")
        if mean([len(s.questions) for s in snaps]) > 3:
            accelerators.append("active_questioning")
        return accelerators

    # ------------------------------------------------------------------
    # Plateau details
    # ------------------------------------------------------------------
    def _plateau_indicators(self, snaps: tuple[SessionSnapshot, ...]) -> list[str]:
        indicators: list[str] = []
        if self.progression_trend(snaps) == "stable":
            indicators.append("stagnating_progression")
        if variance([s.success_score for s in snaps[-TREND_WINDOW:]]) < 0.05:
            indicators.append("low_score_variability")
        if len(snaps) > 2:
            recent_errors = [",".join(s.errors) for s in snaps[-TREND_WINDOW:] if s.errors]
            if len(recent_errors) - len(set(recent_errors)) > 1:
                indicators.append("repeated_errors")
        return indicators

    @staticmethod
    def _mitigations(risk: float, indicators: list[str]) -> list[str]:
        strategies: list[str] = []
        if risk > 0.7:
            strategies += ["Introduce new challenges", "Change the teaching approach"]
        if "stagnating_progression" in indicators:
            strategies.append("Revisit the learning objectives")
        if "repeated_errors" in indicators:
            strategies.append("Analyse the recurring errors in depth")
        if "low_score_variability" in indicators:
            strategies.append("Diversify exercise types")
        return strategies

    @staticmethod
    def _last_engagement(snap: SessionSnapshot) -> float:
        return snap.engagement_evolution[-1] if snap.engagement_evolution else 0.5

    def _early_warnings(self, snaps: tuple[SessionSnapshot, ...]) -> list[str]:
        recent = snaps[-TREND_WINDOW:]
        signals: list[str] = []
        if mean([self._last_engagement(s) for s in recent]) < 0.5:
            signals.append("declining_engagement")
        if mean([len(s.questions) for s in recent]) < 1:
            signals.append("reduced_curiosity")
        return signals

    # ------------------------------------------------------------------
    # Adaptation recommendations
    # ------------------------------------------------------------------
    @staticmethod
    def _cultural_recommendations(snaps: tuple[SessionSnapshot, ...]) -> list[str]:
        recs = ["Integrate regional sign variants"]
        if any("cultural" in e.lower() for s in snaps for e in s.errors):
            recs.append("Reinforce cultural-context training")
        return recs

    @staticmethod
    def _pedagogical_recommendations(snaps: tuple[SessionSnapshot, ...]) -> list[str]:
        recs = ["Adapt the learning pace"]
        if not snaps:
            return recs
        avg_minutes = mean([s.actual_duration_minutes for s in snaps])
        if avg_minutes < 20:
            recs.append("Lengthen teaching sessions")
        elif avg_minutes > 45:
            recs.append("Split sessions into shorter modules")
        if mean([s.teacher_interventions for s in snaps]) > 10:
            recs.append("Reduce teaching interruptions")
        return recs

    @staticmethod
    def _technical_recommendations(snaps: tuple[SessionSnapshot, ...]) -> list[str]:
        recs = ["Optimise the user interface"]
        if not snaps:
            return recs
        if mean([s.participation_rate for s in snaps]) < 0.7:
            recs.append("Improve system interactivity")
        frustrated = sum(1 for s in snaps if s.emotion == AIMood.FRUSTRATED)
        if frustrated > len(snaps) * 0.3:
            recs.append("Improve system responsiveness")
        return recs

    def _emotional_recommendations(self, snaps: tuple[SessionSnapshot, ...]) -> list[str]:
        recs = ["Strengthen encouragement"]
        if not snaps:
            return recs
        negative = sum(1 for s in snaps if s.emotion in _NEGATIVE_MOODS)
        if negative > len(snaps) * 0.4:
            recs += ["Emotional-regulation strategies", "Pause for motivational recovery"]
        if mean([self._last_engagement(s) for s in snaps]) < 0.6:
            recs.append("Personalised motivation techniques")
        return recs
