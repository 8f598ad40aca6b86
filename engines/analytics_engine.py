"""CodaMentor: Analytics Engine.

Aggregates a sequence of closed teaching sessions into engagement and
efficiency metrics, classifies behavioural patterns (engagement trend,
recurring error patterns, strength areas) and measures progression
(velocity, acceleration, plateau risk).  Every operation is pure: sparse
or empty history yields a documented default flagged ``is_default``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable

from config import get_logger
from engines.stats import mean, trend_slope, variance
from models.session import SessionSnapshot, TeachingSession, harmonize

logger = get_logger(__name__)

HIGH_ENGAGEMENT = 0.8
HIGH_VARIANCE = 0.3
TREND_THRESHOLD = 0.1
TREND_WINDOW = 3


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------
@dataclass
class AdvancedMetrics:
    """Aggregate quality metrics over a session history."""

    overall_engagement: float = 0.7
    learning_efficiency: float = 0.6
    cultural_adaptation: float = 0.8
    emotional_stability: float = 0.7
    progress_consistency: float = 0.6
    mentor_compatibility: float = 0.8
    is_default: bool = False


@dataclass
class ComprehensionPattern:
    average: float = 0.7
    variance: float = 0.1
    trend: float = 0.05


@dataclass
class BehavioralAnalysis:
    """Behavioural classification of a session history."""

    engagement_trend: str = "stable"  # increasing | stable | decreasing
    comprehension_pattern: ComprehensionPattern = field(default_factory=ComprehensionPattern)
    participation_consistency: float = 0.7
    error_patterns: list[str] = field(default_factory=list)
    strength_areas: list[str] = field(default_factory=list)
    is_default: bool = False


@dataclass
class ProgressAnalysis:
    """Progression of success scores across sessions."""

    trend: str = "stable"  # improving | stable | declining
    velocity: float = 0.0
    acceleration: float = 0.0
    plateau_risk: float = 0.3
    next_milestone_eta: int = -1  # sessions; -1 when not estimable
    is_default: bool = False


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
class AnalyticsEngine:
    """Stateless aggregator over teaching-session history."""

    def __init__(self) -> None:
        logger.debug("AnalyticsEngine initialised")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def calculate_advanced_metrics(
        self, sessions: Iterable[TeachingSession | SessionSnapshot]
    ) -> AdvancedMetrics:
        """Compute engagement, efficiency, stability and consistency metrics.

        Returns the default :class:`AdvancedMetrics` for an empty history.
        """
        snaps = harmonize(sessions)
        if not snaps:
            logger.warning("No sessions to analyse, returning default metrics")
            return AdvancedMetrics(is_default=True)

        metrics = AdvancedMetrics(
            overall_engagement=mean([s.participation_rate for s in snaps]),
            learning_efficiency=mean([s.comprehension for s in snaps]),
            cultural_adaptation=mean([
                s.teaching_effectiveness * 0.8 + s.participation_rate * 0.2 for s in snaps
            ]),
            emotional_stability=self._emotional_stability(snaps),
            progress_consistency=self._progress_consistency(snaps),
            mentor_compatibility=mean([s.teaching_effectiveness for s in snaps]),
        )
        logger.info(
            "Advanced metrics over %d sessions: engagement=%.2f efficiency=%.2f",
            len(snaps), metrics.overall_engagement, metrics.learning_efficiency,
        )
        return metrics

    def analyze_behavioral_patterns(
        self, sessions: Iterable[TeachingSession | SessionSnapshot]
    ) -> BehavioralAnalysis:
        """Classify the engagement trend and detect error and strength patterns."""
        snaps = harmonize(sessions)
        if not snaps:
            logger.warning("No sessions to analyse, returning default behavioural analysis")
            return BehavioralAnalysis(is_default=True)

        comprehension = [s.comprehension for s in snaps]
        participation = [s.participation_rate for s in snaps]

        result = BehavioralAnalysis(
            engagement_trend=self.engagement_trend(snaps),
            comprehension_pattern=ComprehensionPattern(
                average=mean(comprehension),
                variance=variance(comprehension),
                trend=trend_slope(comprehension),
            ),
            participation_consistency=max(0.0, 1 - variance(participation)),
            error_patterns=self._error_patterns(snaps),
            strength_areas=self._strength_areas(snaps),
        )
        logger.info(
            "Behavioural analysis: trend=%s errors=%s strengths=%s",
            result.engagement_trend, result.error_patterns, result.strength_areas,
        )
        return result

    def analyze_progression_trends(
        self, sessions: Iterable[TeachingSession | SessionSnapshot]
    ) -> ProgressAnalysis:
        """Measure success-score progression; needs at least two sessions."""
        snaps = harmonize(sessions)
        if len(snaps) < 2:
            logger.warning(
                "Progression analysis needs 2 sessions, got %d; using defaults", len(snaps)
            )
            return ProgressAnalysis(is_default=True)

        scores = [s.success_score for s in snaps]
        velocity = trend_slope(scores)

        if velocity > TREND_THRESHOLD:
            trend = "improving"
        elif velocity < -TREND_THRESHOLD:
            trend = "declining"
        else:
            trend = "stable"

        analysis = ProgressAnalysis(
            trend=trend,
            velocity=velocity,
            acceleration=self._acceleration(scores),
            plateau_risk=self._plateau_risk(scores),
            next_milestone_eta=self._next_milestone_eta(scores[-1], velocity),
        )
        logger.info(
            "Progression: trend=%s velocity=%.3f plateau_risk=%.2f eta=%d",
            analysis.trend, analysis.velocity, analysis.plateau_risk,
            analysis.next_milestone_eta,
        )
        return analysis

    # ------------------------------------------------------------------
    # Trend helpers
    # ------------------------------------------------------------------
    @staticmethod
    def engagement_trend(snaps: tuple[SessionSnapshot, ...]) -> str:
        """Compare mean participation of the last 3 sessions with the 3 before."""
        if len(snaps) < TREND_WINDOW:
            return "stable"
        recent = [s.participation_rate for s in snaps[-TREND_WINDOW:]]
        older = [s.participation_rate for s in snaps[-2 * TREND_WINDOW:-TREND_WINDOW]]
        recent_avg = mean(recent)
        older_avg = mean(older, default=recent_avg)

        if recent_avg > older_avg + TREND_THRESHOLD:
            return "increasing"
        if recent_avg < older_avg - TREND_THRESHOLD:
            return "decreasing"
        return "stable"

    @staticmethod
    def _emotional_stability(snaps: tuple[SessionSnapshot, ...]) -> float:
        samples = [e for s in snaps for e in s.engagement_evolution]
        if not samples:
            return 0.7
        return max(0.0, 1 - variance(samples))

    @staticmethod
    def _progress_consistency(snaps: tuple[SessionSnapshot, ...]) -> float:
        return max(0.0, 1 - variance([s.success_score for s in snaps]))

    # ------------------------------------------------------------------
    # Pattern detection
    # ------------------------------------------------------------------
    @staticmethod
    def _error_patterns(snaps: tuple[SessionSnapshot, ...]) -> list[str]:
        comprehension = [s.comprehension for s in snaps]
        patterns: list[str] = []

        if mean(comprehension) < 0.6:
            patterns.append("temporal_confusion")
        if mean([s.participation_rate for s in snaps]) < 0.5:
            patterns.append("engagement_difficulty")
        if mean([s.success_score for s in snaps]) < 0.7:
            patterns.append("spatial_reference")
        if variance(comprehension) > HIGH_VARIANCE:
            patterns.append("non_manual_markers")

        recent_slope = trend_slope([s.success_score for s in snaps[-3:]])
        if recent_slope < -0.1:
            patterns.append("learning_plateau")

        return patterns

    def _strength_areas(self, snaps: tuple[SessionSnapshot, ...]) -> list[str]:
        areas: list[str] = []

        if mean([s.comprehension for s in snaps]) > HIGH_ENGAGEMENT:
            areas.append("comprehension_speed")
        if mean([s.participation_rate for s in snaps]) > HIGH_ENGAGEMENT:
            areas.append("active_participation")
        if mean([s.teaching_effectiveness for s in snaps]) > HIGH_ENGAGEMENT:
            areas.append("teaching_adaptability")
        if mean([s.success_score for s in snaps]) > 0.85:
            areas.append("manual_precision")
        if self._emotional_stability(snaps) > 0.8:
            areas.append("emotional_regulation")
        if self._progress_consistency(snaps) > 0.8:
            areas.append("learning_consistency")

        # A session without engagement samples counts as zero
        evolution_means = [mean(s.engagement_evolution) for s in snaps]
        if mean(evolution_means) > 0.8:
            areas.append("facial_expressions")

        if trend_slope([s.success_score for s in snaps[-5:]]) > 0.1:
            areas.append("rapid_improvement")

        return areas

    # ------------------------------------------------------------------
    # Progression helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _acceleration(scores: list[float]) -> float:
        if len(scores) < 3:
            return 0.0
        midpoint = len(scores) // 2
        return trend_slope(scores[midpoint:]) - trend_slope(scores[:midpoint])

    @staticmethod
    def _plateau_risk(scores: list[float]) -> float:
        recent = scores[-5:]
        var = variance(recent)
        if var < TREND_THRESHOLD and trend_slope(recent) < TREND_THRESHOLD:
            return 0.8
        return min(var * 2, 0.6)

    @staticmethod
    def _next_milestone_eta(current: float, velocity: float) -> int:
        if velocity <= 0:
            return -1
        # Round to 9 places so 0.3 * 10 stays on its step
        next_step = math.ceil(round(current * 10, 9)) / 10
        return math.ceil((next_step - current) / velocity)
