"""CodaMentor: business logic orchestrator.

Single entry point for consolidated mentor insights.  Closed sessions are
harmonised once into read-only snapshots, then the base evaluator and the
three engines run independently::

    sessions -> harmonize -> +-- CECRLEvaluator.evaluate
                             +-- AnalyticsEngine (metrics, behaviour, progression)
                             +-- PredictiveEngine (insights, next level, plateau, adaptation)
                             +-- CompatibilityEngine.analyze_compatibility
                                          |
                                  merge -> InsightBundle -> InsightsCache

Bundles are cached per ``(mentor_id, student_name, session_ids)`` for
``Settings.insights_cache_ttl_minutes``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from config import get_settings, get_logger
from engines.analytics_engine import (
    AdvancedMetrics,
    AnalyticsEngine,
    BehavioralAnalysis,
    ProgressAnalysis,
)
from engines.compatibility_engine import CompatibilityAnalysis, CompatibilityEngine
from engines.predictive_engine import (
    AdaptationRecommendations,
    NextLevelAnalysis,
    PlateauRiskAnalysis,
    PredictiveEngine,
    PredictiveInsights,
)
from engines.stats import mean, unique
from integrations.evaluator import CECRLEvaluator
from integrations.profile_store import InMemoryProfileStore, ProfileStore
from integrations.session_store import InMemorySessionStore, SessionRecordStore
from models.mentor import MentorProfile
from models.session import MentorEvaluation, SessionSnapshot, TeachingSession, harmonize
from models.student import AIStudentState
from orchestrator.cache import InsightsCache, make_cache_key
from orchestrator.errors import NotFoundError, SessionNotFound

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------
@dataclass
class ProgressPredictions:
    next_level: NextLevelAnalysis = field(default_factory=NextLevelAnalysis)
    plateau: PlateauRiskAnalysis = field(default_factory=PlateauRiskAnalysis)
    next_milestone_eta: int = -1  # sessions; -1 when not estimable


@dataclass
class CulturalAnalysis:
    adaptation_score: float = 0.8
    needs: list[str] = field(default_factory=lambda: ["cultural_basics"])


@dataclass
class SystemMetrics:
    engagement: float = 0.7
    efficiency: float = 0.6
    emotional_stability: float = 0.7
    progress_consistency: float = 0.6


@dataclass
class TieredRecommendations:
    immediate: list[str] = field(default_factory=list)
    short_term: list[str] = field(default_factory=list)
    long_term: list[str] = field(default_factory=list)


@dataclass
class EnrichedEvaluation:
    """Base mentor evaluation plus predictions, culture and system metrics."""

    base: MentorEvaluation = field(default_factory=MentorEvaluation)
    progress_predictions: ProgressPredictions = field(default_factory=ProgressPredictions)
    cultural_analysis: CulturalAnalysis = field(default_factory=CulturalAnalysis)
    system_metrics: SystemMetrics = field(default_factory=SystemMetrics)
    recommendations: TieredRecommendations = field(default_factory=TieredRecommendations)
    is_default: bool = False


@dataclass
class AnalyticsBundle:
    metrics: AdvancedMetrics
    behavior: BehavioralAnalysis
    progression: ProgressAnalysis


@dataclass
class PredictionsBundle:
    insights: PredictiveInsights
    next_level: NextLevelAnalysis
    plateau: PlateauRiskAnalysis
    adaptation: AdaptationRecommendations


@dataclass
class ConsolidatedRecommendations:
    immediate: list[str] = field(default_factory=list)
    short_term: list[str] = field(default_factory=list)
    long_term: list[str] = field(default_factory=list)
    cultural: list[str] = field(default_factory=list)
    pedagogical: list[str] = field(default_factory=list)
    technical: list[str] = field(default_factory=list)
    compatibility: list[str] = field(default_factory=list)
    all: list[str] = field(default_factory=list)


@dataclass
class InsightBundle:
    """Everything known about one mentor/AI-student pair at a point in time."""

    mentor_id: str
    student_name: str
    evaluation: EnrichedEvaluation
    analytics: AnalyticsBundle
    predictions: PredictionsBundle
    compatibility: CompatibilityAnalysis
    recommendations: ConsolidatedRecommendations
    session_count: int
    confidence: float
    timestamp: datetime = field(default_factory=_utcnow)

    def summary(self) -> str:
        return (
            f"[{self.mentor_id}] {self.student_name} | sessions={self.session_count} | "
            f"compatibility={self.compatibility.overall_score:.2f} | "
            f"next_level={self.predictions.insights.next_level_probability:.0%} | "
            f"plateau={self.predictions.insights.plateau_risk:.2f} | "
            f"confidence={self.confidence:.2f}"
        )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------
class BusinessLogicOrchestrator:
    """Fuses evaluator and engine outputs into cached insight bundles.

    Parameters
    ----------
    store:
        Session record store, used by :meth:`generate_insights_for_mentor`
        and :meth:`evaluate_teaching_progress`.
    profiles:
        Mentor profile store.
    evaluator:
        Base CECRL evaluator.
    cache:
        Insight cache (defaults to a TTL cache built from settings).
    """

    def __init__(
        self,
        store: SessionRecordStore | None = None,
        profiles: ProfileStore | None = None,
        evaluator: CECRLEvaluator | None = None,
        cache: InsightsCache[InsightBundle] | None = None,
        analytics: AnalyticsEngine | None = None,
        predictive: PredictiveEngine | None = None,
        compatibility: CompatibilityEngine | None = None,
    ) -> None:
        self._settings = get_settings()
        self._store = store if store is not None else InMemorySessionStore()
        self._profiles = profiles if profiles is not None else InMemoryProfileStore()
        self._evaluator = evaluator or CECRLEvaluator()
        self._cache: InsightsCache[InsightBundle] = cache if cache is not None else InsightsCache()
        self._analytics = analytics or AnalyticsEngine()
        self._predictive = predictive or PredictiveEngine()
        self._compatibility = compatibility or CompatibilityEngine()
        logger.debug("BusinessLogicOrchestrator initialised (ttl=%s)", self._cache.ttl)

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------
    async def generate_insights(
        self,
        mentor: MentorProfile,
        student: AIStudentState,
        sessions: Iterable[TeachingSession | SessionSnapshot],
    ) -> InsightBundle:
        """Return the consolidated insight bundle, from cache when fresh."""
        snaps = harmonize(sessions)
        key = make_cache_key(mentor.id, student.name, (s.session_id for s in snaps))

        cached = self._cache.get(key)
        if cached is not None:
            logger.info("Insights cache hit for mentor=%s (%d sessions)", mentor.id, len(snaps))
            return cached.value
        logger.info("Insights cache miss for mentor=%s, computing (%d sessions)", mentor.id, len(snaps))

        try:
            (
                base, metrics, behavior, progression,
                insights, next_level_analysis, plateau, adaptation,
                compatibility,
            ) = await asyncio.gather(
                self._evaluator.evaluate(mentor.id, snaps),
                asyncio.to_thread(self._analytics.calculate_advanced_metrics, snaps),
                asyncio.to_thread(self._analytics.analyze_behavioral_patterns, snaps),
                asyncio.to_thread(self._analytics.analyze_progression_trends, snaps),
                asyncio.to_thread(self._predictive.generate_predictive_insights, mentor.id, student, snaps),
                asyncio.to_thread(self._predictive.analyze_next_level_progression, student, snaps),
                asyncio.to_thread(self._predictive.analyze_plateau_risk, snaps),
                asyncio.to_thread(self._predictive.generate_adaptation_recommendations, student, snaps),
                asyncio.to_thread(self._compatibility.analyze_compatibility, mentor, student, snaps),
            )
        except Exception as exc:
            logger.error("Insight generation failed for mentor=%s: %s", mentor.id, exc)
            raise

        analytics = AnalyticsBundle(metrics=metrics, behavior=behavior, progression=progression)
        predictions = PredictionsBundle(
            insights=insights,
            next_level=next_level_analysis,
            plateau=plateau,
            adaptation=adaptation,
        )
        evaluation = self._enrich(base, analytics, predictions, is_default=not snaps)
        bundle = InsightBundle(
            mentor_id=mentor.id,
            student_name=student.name,
            evaluation=evaluation,
            analytics=analytics,
            predictions=predictions,
            compatibility=compatibility,
            recommendations=self._consolidate(evaluation, predictions, compatibility),
            session_count=len(snaps),
            confidence=self.confidence(len(snaps), analytics, compatibility),
        )
        self._cache.put(key, bundle)
        logger.info("Insights ready: %s", bundle.summary())
        return bundle

    async def generate_insights_for_mentor(self, mentor_id: str) -> InsightBundle:
        """Load profile, AI-student and sessions for *mentor_id*, then fuse."""
        profile = await self._profiles.get(mentor_id)
        if profile is None:
            raise NotFoundError(f"No mentor profile for {mentor_id!r}")
        record = await self._store.get(mentor_id)
        if record is None:
            raise SessionNotFound(f"No AI-student for mentor {mentor_id!r}")
        sessions = await self._store.list_sessions(mentor_id)
        return await self.generate_insights(profile, record.student, sessions)

    async def evaluate_teaching_progress(
        self,
        mentor_id: str,
        sessions: Iterable[TeachingSession | SessionSnapshot] | None = None,
    ) -> EnrichedEvaluation:
        """Enriched evaluation of *mentor_id*; sessions default to the store's."""
        if sessions is None:
            sessions = await self._store.list_sessions(mentor_id)
        snaps = harmonize(sessions)
        if not snaps:
            logger.warning("No sessions to evaluate for mentor=%s, using defaults", mentor_id)
            return EnrichedEvaluation(is_default=True)

        record = await self._store.get(mentor_id)
        student = record.student if record else AIStudentState(name=self._settings.default_student_name)

        base, metrics, behavior, progression, insights, next_level_analysis, plateau, adaptation = (
            await asyncio.gather(
                self._evaluator.evaluate(mentor_id, snaps),
                asyncio.to_thread(self._analytics.calculate_advanced_metrics, snaps),
                asyncio.to_thread(self._analytics.analyze_behavioral_patterns, snaps),
                asyncio.to_thread(self._analytics.analyze_progression_trends, snaps),
                asyncio.to_thread(self._predictive.generate_predictive_insights, mentor_id, student, snaps),
                asyncio.to_thread(self._predictive.analyze_next_level_progression, student, snaps),
                asyncio.to_thread(self._predictive.analyze_plateau_risk, snaps),
                asyncio.to_thread(self._predictive.generate_adaptation_recommendations, student, snaps),
            )
        )
        return self._enrich(
            base,
            AnalyticsBundle(metrics=metrics, behavior=behavior, progression=progression),
            PredictionsBundle(
                insights=insights,
                next_level=next_level_analysis,
                plateau=plateau,
                adaptation=adaptation,
            ),
        )

    async def close(self) -> None:
        self._cache.clear()
        logger.info("BusinessLogicOrchestrator closed, cache cleared")

    # ------------------------------------------------------------------
    # Fusion
    # ------------------------------------------------------------------
    @staticmethod
    def confidence(
        session_count: int,
        analytics: AnalyticsBundle,
        compatibility: CompatibilityAnalysis,
    ) -> float:
        """``0.4*coverage + 0.3*consistency + 0.3*compatibility confidence``.

        Consistency is the mean of progress consistency and emotional
        stability.
        """
        consistency = mean([
            analytics.metrics.progress_consistency,
            analytics.metrics.emotional_stability,
        ])
        return (
            0.4 * min(1.0, session_count / 10)
            + 0.3 * consistency
            + 0.3 * compatibility.confidence
        )

    @staticmethod
    def _enrich(
        base: MentorEvaluation,
        analytics: AnalyticsBundle,
        predictions: PredictionsBundle,
        is_default: bool = False,
    ) -> EnrichedEvaluation:
        metrics = analytics.metrics
        next_level_analysis = predictions.next_level
        plateau = predictions.plateau

        immediate = list(base.improvement_tips)
        if plateau.risk_level > 0.6:
            immediate += plateau.mitigation_strategies
        immediate += predictions.adaptation.emotional

        short_term = [
            f"Focus on {area.replace('_', ' ')}"
            for area in predictions.insights.recommended_focus_areas
        ]
        short_term += predictions.adaptation.pedagogical

        long_term = [
            f"Prepare the move to level {next_level_analysis.next_level} "
            f"(~{next_level_analysis.estimated_weeks} weeks)"
        ]
        long_term += [f"Remove blocker: {b}" for b in next_level_analysis.blockers]

        return EnrichedEvaluation(
            base=base,
            progress_predictions=ProgressPredictions(
                next_level=next_level_analysis,
                plateau=plateau,
                next_milestone_eta=analytics.progression.next_milestone_eta,
            ),
            cultural_analysis=CulturalAnalysis(
                adaptation_score=metrics.cultural_adaptation,
                needs=list(predictions.insights.cultural_adaptation_needs),
            ),
            system_metrics=SystemMetrics(
                engagement=metrics.overall_engagement,
                efficiency=metrics.learning_efficiency,
                emotional_stability=metrics.emotional_stability,
                progress_consistency=metrics.progress_consistency,
            ),
            recommendations=TieredRecommendations(
                immediate=unique(immediate),
                short_term=unique(short_term),
                long_term=unique(long_term),
            ),
            is_default=is_default,
        )

    @staticmethod
    def _consolidate(
        evaluation: EnrichedEvaluation,
        predictions: PredictionsBundle,
        compatibility: CompatibilityAnalysis,
    ) -> ConsolidatedRecommendations:
        tiers = evaluation.recommendations
        adaptation = predictions.adaptation
        recs = ConsolidatedRecommendations(
            immediate=list(tiers.immediate),
            short_term=list(tiers.short_term),
            long_term=list(tiers.long_term),
            cultural=unique([*adaptation.cultural, *evaluation.cultural_analysis.needs]),
            pedagogical=list(adaptation.pedagogical),
            technical=list(adaptation.technical),
            compatibility=list(compatibility.recommendations),
        )
        recs.all = unique([
            *recs.immediate, *recs.short_term, *recs.long_term, *recs.cultural,
            *recs.pedagogical, *recs.technical, *recs.compatibility,
        ])
        return recs


# ---------------------------------------------------------------------------
# Demo entry point
# ---------------------------------------------------------------------------
async def _demo() -> None:
    """Minimal terminal demo: one mentor teaches four sessions, then insights."""
    from config import setup_logging
    from integrations.simulator import RandomLearningSimulator
    from models.concept_graph import ConceptGraph
    from orchestrator.session_orchestrator import SessionOrchestrator

    setup_logging("INFO")

    print("=" * 60)
    print("  CodaMentor Demo: reverse apprenticeship")
    print("=" * 60)

    mentor = MentorProfile(
        id="mentor_demo",
        name="Demo Mentor",
        personality="methodical-structured",
        teaching_style="methodical",
        cultural_background="deaf_family_home",
        adaptability_score=0.8,
        experience=4,
        preferred_methods=("visual_demonstration", "step_by_step_guidance"),
    )
    profiles = InMemoryProfileStore([mentor])
    graph = ConceptGraph.default()
    sessions = SessionOrchestrator(simulator=RandomLearningSimulator(seed=7), concept_graph=graph)

    status = await sessions.create_student(mentor.id, personality="analytical")
    print(f"\n[1/3] Student: {status.summary}")

    print("\n[2/3] Teaching...")
    for topic in ("basic_greetings", "numbers", "colors", "family"):
        session_id = await sessions.start_session(mentor.id, topic)
        state = sessions.get_state(mentor.id)
        print(f"  {topic}: {state.summary()}")
        for concept in graph.concepts_for(topic):
            result = await sessions.teach_concept(
                mentor.id, session_id, concept, f"Shape, place and move the sign for {concept}."
            )
            print(f"    {concept:<20} {result.comprehension:.2f} {result.emotion.value}")
        summary = await sessions.end_session(mentor.id, session_id)
        print(f"    success={summary.session.metrics.success_score:.2f} progress={summary.student.progress:.0%}")

    print("\n[3/3] Insights...")
    logic = BusinessLogicOrchestrator(store=sessions.store, profiles=profiles)
    bundle = await logic.generate_insights_for_mentor(mentor.id)
    print(f"  {bundle.summary()}")
    for rec in bundle.recommendations.all[:5]:
        print(f"  - {rec}")

    again = await logic.generate_insights_for_mentor(mentor.id)
    print(f"\n  Second call served from cache: {again is bundle}")

    await logic.close()
    await sessions.close()


if __name__ == "__main__":
    asyncio.run(_demo())
