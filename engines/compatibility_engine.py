"""CodaMentor: Compatibility Engine.

Scores how well a mentor fits an AI-student across five independent
dimensions (personality, culture, teaching style, experience alignment,
methodology), combines them with fixed weights into an overall score, and
turns the result into strengths, challenges, recommendations and an
improvement plan.  Also analyses a mentor's teaching style and relational
performance from session history.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable

from config import get_logger
from engines.stats import clamp01, mean, unique
from models.mentor import MentorPersonality, MentorProfile, TeachingStyle
from models.session import SessionSnapshot, TeachingSession, harmonize
from models.student import AIStudentState, CECRLLevel, StudentPersonality

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------
# (mentor personality, student personality) -> compatibility; unseen pairs 0.7
PERSONALITY_MATRIX: dict[tuple[MentorPersonality, StudentPersonality], float] = {
    (MentorPersonality.ANALYTICAL_LOGICAL, StudentPersonality.ANALYTICAL_LEARNER): 0.9,
    (MentorPersonality.CREATIVE_INTUITIVE, StudentPersonality.CREATIVE_THINKER): 0.8,
    (MentorPersonality.METHODICAL_STRUCTURED, StudentPersonality.ANALYTICAL_LEARNER): 0.95,
}
DEFAULT_PERSONALITY_SCORE = 0.7


@dataclass(frozen=True)
class StyleProfile:
    effectiveness: float
    adaptability: float


TEACHING_STYLES: dict[TeachingStyle, StyleProfile] = {
    TeachingStyle.DIRECTIVE: StyleProfile(0.8, 0.6),
    TeachingStyle.COLLABORATIVE: StyleProfile(0.9, 0.8),
    TeachingStyle.SUPPORTIVE: StyleProfile(0.85, 0.9),
    TeachingStyle.DELEGATIVE: StyleProfile(0.7, 0.7),
    TeachingStyle.ADAPTIVE: StyleProfile(0.95, 0.95),
    TeachingStyle.METHODICAL_STRUCTURED: StyleProfile(0.9, 0.7),
}

THRESHOLDS: dict[str, float] = {
    "excellent": 0.9,
    "good": 0.75,
    "adequate": 0.6,
    "needs_improvement": 0.45,
    "poor": 0.3,
}

# Sub-score weights; must sum to 1.0
WEIGHTS: dict[str, float] = {
    "personality": 0.25,
    "cultural": 0.20,
    "teaching_style": 0.25,
    "experience": 0.15,
    "methodology": 0.15,
}

_CHALLENGE_RECOMMENDATIONS: dict[str, str] = {
    "cultural": "Targeted cultural awareness to better understand the AI-student's context",
    "personality": "Adapt the communication style to the AI-student's personality",
    "experience": "Complementary training or co-mentoring with a more experienced expert",
    "methodology": "Diversify teaching methods to better meet specific needs",
}


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CompatibilityScores:
    """The five independent sub-scores, each in [0, 1]."""

    personality: float = 0.7
    cultural: float = 0.7
    teaching_style: float = 0.7
    experience: float = 0.7
    methodology: float = 0.7

    def weighted_overall(self) -> float:
        """Convex combination of the sub-scores under :data:`WEIGHTS`."""
        return sum(getattr(self, name) * weight for name, weight in WEIGHTS.items())


@dataclass
class Challenge:
    category: str  # personality | cultural | teaching_style | experience | methodology
    message: str


@dataclass
class CompatibilityAnalysis:
    """Detailed mentor/AI-student compatibility."""

    scores: CompatibilityScores = field(default_factory=CompatibilityScores)
    overall_score: float = 0.7
    strengths: list[str] = field(default_factory=list)
    challenges: list[Challenge] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    confidence: float = 0.6
    is_default: bool = False

    @property
    def rating(self) -> str:
        """Name of the highest threshold band the overall score reaches."""
        for band, threshold in THRESHOLDS.items():
            if self.overall_score >= threshold:
                return band
        return "critical"


@dataclass
class TeachingStyleAnalysis:
    primary_style: TeachingStyle
    secondary_styles: list[str] = field(default_factory=list)
    effectiveness: float = 0.7
    adaptability: float = 0.7
    interaction_modes: list[str] = field(default_factory=list)
    optimal_session_minutes: int = 45
    adjustments: list[str] = field(default_factory=list)


@dataclass
class Milestone:
    week: int
    goal: str
    metric: float


@dataclass
class ImprovementPlan:
    current_score: float
    target_score: float
    timeline_weeks: int
    priority_actions: list[str] = field(default_factory=list)
    training_recommendations: list[str] = field(default_factory=list)
    cultural_adaptation_steps: list[str] = field(default_factory=list)
    success_metrics: list[str] = field(default_factory=list)
    milestones: list[Milestone] = field(default_factory=list)


@dataclass
class RelationalMetrics:
    communication: float = 0.7
    empathy: float = 0.7
    adaptation_speed: float = 0.7
    feedback_quality: float = 0.7
    motivation_impact: float = 0.7
    conflict_resolution: float = 0.7
    trust_building: float = 0.7


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
class CompatibilityEngine:
    """Stateless mentor/AI-student compatibility scorer."""

    def __init__(self) -> None:
        logger.debug("CompatibilityEngine initialised")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def analyze_compatibility(
        self,
        mentor: MentorProfile,
        student: AIStudentState,
        sessions: Iterable[TeachingSession | SessionSnapshot] | None = None,
    ) -> CompatibilityAnalysis:
        """Score the pair and derive strengths, challenges and recommendations.

        Never raises: a failure while scoring degrades to the default
        analysis, flagged ``is_default``.
        """
        try:
            snaps = harmonize(sessions or ())
            scores = CompatibilityScores(
                personality=self.personality_score(mentor, student),
                cultural=self.cultural_score(mentor, student),
                teaching_style=self.teaching_style_score(mentor, student),
                experience=self.experience_score(mentor, student),
                methodology=self.methodology_score(mentor, snaps),
            )
            overall = scores.weighted_overall()
            challenges = self._challenges(mentor, student, scores)
            analysis = CompatibilityAnalysis(
                scores=scores,
                overall_score=overall,
                strengths=self._strengths(mentor, student, scores),
                challenges=challenges,
                recommendations=self._recommendations(student, overall, challenges),
                confidence=self._confidence(mentor, snaps),
            )
        except Exception as exc:
            logger.warning("Compatibility scoring failed for mentor=%s: %s", mentor.id, exc)
            return CompatibilityAnalysis(is_default=True)

        logger.info(
            "Compatibility mentor=%s student=%s: overall=%.2f (%s) strengths=%d challenges=%d",
            mentor.id, student.name, analysis.overall_score, analysis.rating,
            len(analysis.strengths), len(analysis.challenges),
        )
        return analysis

    def analyze_teaching_style(
        self,
        mentor: MentorProfile,
        sessions: Iterable[TeachingSession | SessionSnapshot],
    ) -> TeachingStyleAnalysis:
        """Describe the mentor's teaching style as observed over *sessions*."""
        snaps = harmonize(sessions)

        secondary: list[str] = []
        if mentor.adaptability_score > 0.8:
            secondary.append(TeachingStyle.SUPPORTIVE.value)
        if len(snaps) > 5:
            secondary.append(TeachingStyle.COLLABORATIVE.value)

        if snaps:
            effectiveness = min(
                1.0,
                mean([s.teaching_effectiveness for s in snaps]) + min(0.1, mentor.experience / 10),
            )
        else:
            effectiveness = 0.7

        modes = ["demonstration", "guided_practice", "feedback"]
        if mentor.teaching_style is TeachingStyle.COLLABORATIVE:
            modes.append("discussion")

        adjustments: list[str] = []
        if effectiveness < 0.7:
            adjustments += [
                "Increase interactivity",
                "Adapt the pace to the AI-student's reactions",
            ]
        if snaps and mean([s.engagement_level for s in snaps]) < 0.7:
            adjustments.append("Improve engagement techniques")

        analysis = TeachingStyleAnalysis(
            primary_style=mentor.teaching_style,
            secondary_styles=secondary[:2],
            effectiveness=effectiveness,
            adaptability=mentor.adaptability_score,
            interaction_modes=modes,
            optimal_session_minutes=round(mean([s.duration for s in snaps])) if snaps else 45,
            adjustments=adjustments,
        )
        logger.info(
            "Teaching style mentor=%s: %s effectiveness=%.2f adjustments=%d",
            mentor.id, analysis.primary_style.value, analysis.effectiveness,
            len(analysis.adjustments),
        )
        return analysis

    def generate_improvement_plan(
        self,
        mentor: MentorProfile,
        student: AIStudentState,
        current_score: float,
    ) -> ImprovementPlan:
        """Build a staged plan lifting *current_score* toward a target band."""
        current = clamp01(current_score)
        target = self.target_score(current)
        weeks = self.timeline_weeks(current, target)
        cultural_gap = mentor.cultural_background != student.cultural_context

        actions: list[str] = []
        if cultural_gap:
            actions.append("Improve culture-specific adaptation")
        if mentor.adaptability_score < 0.7:
            actions.append("Develop pedagogical adaptability skills")
        if current < 0.6:
            actions.append("Strengthen feedback and assessment techniques")
        actions.append("Hold regular calibration sessions with the AI-student")

        training = [
            "Adaptive pedagogy for AI learners",
            "Awareness of sign-language cultural specifics",
            "Advanced non-verbal communication techniques",
            "Continuous assessment and constructive feedback",
            "Handling personality differences in teaching",
        ]
        if mentor.experience < 3:
            training.append("In-depth training in mentoring advanced AI systems")
        if student.personality.is_analytical and mentor.personality is MentorPersonality.CREATIVE_INTUITIVE:
            training.append("Training in analytical and structured teaching approaches")
        if cultural_gap:
            training.append(f"Cultural immersion in the {student.cultural_context.value} context")

        steps = [
            "Study the AI-student's specific cultural context",
            "Adapt references and examples to that context",
            "Integrate cultural sign-language variants",
        ]
        if cultural_gap:
            steps += [
                "Consult a cultural expert of the target context",
                "Supervised practice with culture-specific cases",
            ]
        if student.current_level in (CECRLLevel.C1, CECRLLevel.C2):
            steps.append("Master advanced cultural nuances and regional subtleties")

        metrics = [
            "Overall compatibility score",
            "AI-student satisfaction and engagement",
            "Measured teaching-session effectiveness",
            "Observable learning progression",
            "Qualitative feedback on interactions",
        ]
        if target - current > 0.2:
            metrics += [
                "Measurable reduction of identified incompatibilities",
                "Smoother teaching exchanges",
            ]
        if current < 0.5:
            metrics.append("Removal of major communication blockers")

        step = (target - current) / 3
        plan = ImprovementPlan(
            current_score=current,
            target_score=target,
            timeline_weeks=weeks,
            priority_actions=actions,
            training_recommendations=training,
            cultural_adaptation_steps=steps,
            success_metrics=metrics,
            milestones=[
                Milestone(weeks // 3, "Initial measurable improvement", round(current + step, 2)),
                Milestone(2 * weeks // 3, "Consolidated significant progress", round(current + 2 * step, 2)),
                Milestone(weeks, "Compatibility target reached", round(target, 2)),
            ],
        )
        logger.info(
            "Improvement plan mentor=%s: %.2f -> %.2f over %d weeks",
            mentor.id, plan.current_score, plan.target_score, plan.timeline_weeks,
        )
        return plan

    def calculate_relational_metrics(
        self,
        mentor: MentorProfile,
        sessions: Iterable[TeachingSession | SessionSnapshot],
    ) -> RelationalMetrics:
        """Relational performance of the mentor over *sessions*."""
        snaps = harmonize(sessions)
        conflict = min(1.0, mentor.experience / 5 + mentor.adaptability_score * 0.3)
        if not snaps:
            return RelationalMetrics(conflict_resolution=conflict, adaptation_speed=0.8)

        participation = [s.participation_rate for s in snaps]
        effectiveness = [s.teaching_effectiveness for s in snaps]

        empathy = 0.7 + (0.2 if mentor.personality is MentorPersonality.EMPATHETIC_SOCIAL else 0.0)
        empathy = min(1.0, empathy * 0.8 + mean([s.engagement_level for s in snaps]) * 0.2)

        if len(snaps) < 3:
            adaptation_speed = 0.8
        else:
            recent = effectiveness[-3:]
            adaptation_speed = clamp01(0.7 + recent[-1] - recent[0])

        if len(snaps) < 2:
            trust = 0.7
        else:
            trust = 0.9 if mean(participation[-2:]) > mean(participation[:2]) else 0.7

        return RelationalMetrics(
            communication=mean(participation),
            empathy=empathy,
            adaptation_speed=adaptation_speed,
            feedback_quality=mean(effectiveness),
            motivation_impact=mean(participation[-3:]),
            conflict_resolution=conflict,
            trust_building=trust,
        )

    # ------------------------------------------------------------------
    # Sub-scores
    # ------------------------------------------------------------------
    @staticmethod
    def personality_score(mentor: MentorProfile, student: AIStudentState) -> float:
        return PERSONALITY_MATRIX.get(
            (mentor.personality, student.personality), DEFAULT_PERSONALITY_SCORE
        )

    @staticmethod
    def cultural_score(mentor: MentorProfile, student: AIStudentState) -> float:
        if mentor.cultural_background == student.cultural_context:
            return 0.95
        return min(0.95, 0.6 + mentor.adaptability_score * 0.3)

    @staticmethod
    def teaching_style_score(mentor: MentorProfile, student: AIStudentState) -> float:
        style = TEACHING_STYLES.get(mentor.teaching_style)
        if style is None:
            return 0.7
        bonus = 0.1 if (
            student.personality.is_analytical
            and mentor.teaching_style is TeachingStyle.METHODICAL_STRUCTURED
        ) else 0.0
        return min(1.0, style.effectiveness + bonus)

    @staticmethod
    def experience_score(mentor: MentorProfile, student: AIStudentState) -> float:
        base = min(1.0, mentor.experience / 5)
        if student.current_level is CECRLLevel.A1:
            return base
        if student.current_level is CECRLLevel.A2:
            return base * 0.9
        return base * 0.8

    @staticmethod
    def methodology_score(mentor: MentorProfile, snaps: tuple[SessionSnapshot, ...]) -> float:
        score = 0.8 if mentor.preferred_methods else 0.6
        if snaps:
            # Always divided by 3, so fewer than 3 sessions earn a partial bonus
            score += sum(s.teaching_effectiveness for s in snaps[-3:]) / 3 * 0.2
        return min(1.0, score)

    # ------------------------------------------------------------------
    # Improvement-plan helpers
    # ------------------------------------------------------------------
    @staticmethod
    def target_score(current: float) -> float:
        if current < 0.5:
            return min(0.75, current + 0.25)
        if current < 0.7:
            return min(0.85, current + 0.2)
        return min(0.95, current + 0.15)

    @staticmethod
    def timeline_weeks(current: float, target: float) -> int:
        weeks = math.ceil(round((target - current) * 40, 9))
        return max(4, min(16, weeks))

    # ------------------------------------------------------------------
    # Narrative
    # ------------------------------------------------------------------
    @staticmethod
    def _grade(score: float, top: str, high: str, base: str) -> str:
        return top if score > 0.9 else high if score > 0.8 else base

    def _strengths(
        self, mentor: MentorProfile, student: AIStudentState, scores: CompatibilityScores
    ) -> list[str]:
        good = THRESHOLDS["good"]
        strengths: list[str] = []

        if scores.personality > good:
            grade = self._grade(scores.personality, "Excellent", "Very good", "Good")
            note = " (exceptional score)" if scores.personality > 0.95 else ""
            strengths.append(
                f"{grade} personality compatibility "
                f"({mentor.personality.value} ↔ {student.personality.value}){note}"
            )
        if scores.cultural > good:
            if mentor.cultural_background == student.cultural_context:
                strengths.append(
                    f"Perfect cultural alignment, same reference environment "
                    f"(score: {scores.cultural:.2f})"
                )
            else:
                grade = self._grade(scores.cultural, "Exceptional", "Excellent", "Strong")
                strengths.append(
                    f"{grade} cultural compatibility thanks to mentor adaptability "
                    f"({scores.cultural:.2f})"
                )
        if scores.teaching_style > good:
            fit = self._grade(scores.teaching_style, "perfectly", "excellently", "well")
            strengths.append(
                f'Teaching style "{mentor.teaching_style.value}" {fit} suited to the '
                f"AI-student (effectiveness: {scores.teaching_style:.2f})"
            )
        if scores.experience > good:
            fit = self._grade(scores.experience, "perfectly", "very well", "well")
            strengths.append(
                f"Mentor experience ({mentor.experience:g} years) {fit} suited to level "
                f"{student.current_level.value} (fit: {scores.experience:.2f})"
            )
        if scores.methodology > good:
            fit = self._grade(scores.methodology, "exceptionally", "excellently", "well")
            strengths.append(
                f"Teaching methods ({len(mentor.preferred_methods)} approaches) {fit} "
                f"aligned with needs (score: {scores.methodology:.2f})"
            )
        return strengths

    @staticmethod
    def _severity(score: float, critical: str, important: str, notable: str) -> str:
        return critical if score < 0.3 else important if score < 0.5 else notable

    def _challenges(
        self, mentor: MentorProfile, student: AIStudentState, scores: CompatibilityScores
    ) -> list[Challenge]:
        adequate = THRESHOLDS["adequate"]
        challenges: list[Challenge] = []

        if scores.personality < adequate:
            severity = self._severity(scores.personality, "major", "important", "notable")
            challenges.append(Challenge(
                "personality",
                f"{severity.capitalize()} personality differences "
                f"({mentor.personality.value} vs {student.personality.value}), "
                f"adaptation needed (score: {scores.personality:.2f})",
            ))
        if scores.cultural < adequate:
            severity = self._severity(scores.cultural, "critical", "important", "significant")
            challenges.append(Challenge(
                "cultural",
                f"{severity.capitalize()} cultural gap between "
                f"{mentor.cultural_background.value} and {student.cultural_context.value} "
                f"(score: {scores.cultural:.2f})",
            ))
        if scores.teaching_style < adequate:
            severity = self._severity(scores.teaching_style, "major", "important", "significant")
            challenges.append(Challenge(
                "teaching_style",
                f'Teaching style "{mentor.teaching_style.value}" needs {severity} '
                f"adjustments (score: {scores.teaching_style:.2f})",
            ))
        if scores.experience < adequate:
            if mentor.experience < 2:
                message = (
                    f"Limited experience ({mentor.experience:g} years) for level "
                    f"{student.current_level.value}, extra mentoring recommended "
                    f"(score: {scores.experience:.2f})"
                )
            else:
                severity = self._severity(scores.experience, "critical", "important", "notable")
                message = (
                    f"{severity.capitalize()} experience mismatch for level "
                    f"{student.current_level.value} (score: {scores.experience:.2f})"
                )
            challenges.append(Challenge("experience", message))
        if scores.methodology < adequate:
            if not mentor.preferred_methods:
                message = (
                    "No specialised teaching methods defined, methodology training "
                    f"needed (score: {scores.methodology:.2f})"
                )
            else:
                severity = self._severity(scores.methodology, "severely", "considerably", "notably")
                message = (
                    f"Current methods {severity} unsuited to the AI-student's needs "
                    f"(score: {scores.methodology:.2f})"
                )
            challenges.append(Challenge("methodology", message))
        return challenges

    @staticmethod
    def _recommendations(
        student: AIStudentState, overall: float, challenges: list[Challenge]
    ) -> list[str]:
        recs: list[str] = []
        if overall < THRESHOLDS["good"]:
            recs.append("Adaptive-pedagogy training recommended to raise overall compatibility")

        for challenge in challenges:
            rec = _CHALLENGE_RECOMMENDATIONS.get(challenge.category)
            if rec:
                recs.append(rec)

        if student.personality.is_analytical:
            recs.append("Favour structured approaches and detailed logical explanations")
        elif student.personality.is_creative:
            recs.append("Bring in more creative elements and novel approaches")

        if student.current_level in (CECRLLevel.A1, CECRLLevel.A2):
            recs.append("Adapt the pace to support gradual assimilation")
        elif student.current_level in (CECRLLevel.C1, CECRLLevel.C2):
            recs.append("Offer stimulating intellectual challenges and advanced nuances")

        return unique(recs)

    @staticmethod
    def _confidence(mentor: MentorProfile, snaps: tuple[SessionSnapshot, ...]) -> float:
        confidence = 0.7 + min(0.2, mentor.experience / 10)
        if snaps:
            confidence += min(0.1, len(snaps) / 20)
        return min(1.0, confidence)
