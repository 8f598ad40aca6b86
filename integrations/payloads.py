"""CodaMentor: boundary payload parsing.

Legacy producers hand over loosely shaped dicts (camelCase keys, nested
``content`` / ``aiReactions`` blocks, free-form enum strings).  These
helpers validate such payloads once, at the boundary, and construct the
typed models the rest of the system works with.  Unknown enum strings
fall back to the default variant; structurally malformed payloads raise
:class:`PayloadError`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from config import get_settings, get_logger
from models.mentor import MentorProfile
from models.session import TeachingSession
from models.student import (
    AIStudentState,
    normalize_cultural_environment,
    normalize_level,
    normalize_mood,
    normalize_personality,
)

logger = get_logger(__name__)

_MS_PER_MINUTE = 60_000


class PayloadError(ValueError):
    """Raised when a boundary payload cannot be turned into a typed record."""


def _snake_keys(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {to_snake(str(k)): _snake_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_snake_keys(v) for v in value]
    return value


def _as_dict(payload: Any, kind: str) -> dict[str, Any]:
    if not isinstance(payload, Mapping):
        raise PayloadError(f"{kind} payload must be a mapping, got {type(payload).__name__}")
    return _snake_keys(payload)


def _rename(data: dict[str, Any], old: str, new: str) -> None:
    if old in data and new not in data:
        data[new] = data.pop(old)


def _validate(model: type, data: dict[str, Any], kind: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning("Rejected %s payload: %d validation errors", kind, exc.error_count())
        raise PayloadError(f"Invalid {kind} payload: {exc}") from exc


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------
def parse_teaching_session(payload: Any) -> TeachingSession:
    """Build a closed :class:`TeachingSession` from a (possibly legacy) dict."""
    data = _as_dict(payload, "session")

    content = data.pop("content", None) or {}
    if not isinstance(content, Mapping):
        raise PayloadError("session 'content' must be a mapping")
    for key in ("topic", "target_level", "teaching_method"):
        if key in content and key not in data:
            data[key] = content[key]

    _rename(data, "ai_student_id", "student_id")
    _rename(data, "ai_reactions", "reactions")
    _rename(data, "timestamp", "start_time")

    if "target_level" in data:
        data["target_level"] = normalize_level(data["target_level"])

    reactions = data.get("reactions")
    if isinstance(reactions, dict) and "emotion" in reactions:
        reactions["emotion"] = normalize_mood(reactions["emotion"])

    metrics = data.get("metrics")
    if isinstance(metrics, dict) and "actual_duration" in metrics:
        # Legacy durations are elapsed milliseconds
        elapsed = metrics.pop("actual_duration")
        if isinstance(elapsed, (int, float)) and not isinstance(elapsed, bool):
            elapsed = elapsed / _MS_PER_MINUTE
        metrics.setdefault("actual_duration_minutes", elapsed)

    return _validate(TeachingSession, data, "session")


def parse_mentor_profile(payload: Any) -> MentorProfile:
    """Build a :class:`MentorProfile`; enum fields normalise on validation."""
    data = _as_dict(payload, "mentor profile")
    _rename(data, "adaptability", "adaptability_score")
    _rename(data, "cultural_context", "cultural_background")
    _rename(data, "teaching_experience", "experience")
    return _validate(MentorProfile, data, "mentor profile")


def parse_student_state(payload: Any) -> AIStudentState:
    """Build an :class:`AIStudentState`, normalising every enum field."""
    data = _as_dict(payload, "student")
    settings = get_settings()

    data.setdefault("name", settings.default_student_name)
    data["personality"] = normalize_personality(
        data.get("personality"), normalize_personality(settings.default_personality)
    )
    data["cultural_context"] = normalize_cultural_environment(
        data.get("cultural_context"),
        normalize_cultural_environment(settings.default_cultural_environment),
    )
    data["current_level"] = normalize_level(data.get("current_level"))
    data["mood"] = normalize_mood(data.get("mood"))
    return _validate(AIStudentState, data, "student")
