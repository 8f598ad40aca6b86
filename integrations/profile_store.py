"""CodaMentor: mentor profile store."""

from __future__ import annotations

from typing import Any, Protocol

from config import get_logger
from models.mentor import MentorProfile

logger = get_logger(__name__)


class ProfileStore(Protocol):
    async def get(self, user_id: str) -> MentorProfile | None: ...

    async def update(self, user_id: str, **changes: Any) -> MentorProfile: ...


class InMemoryProfileStore:
    """Dict-backed :class:`ProfileStore`, seeded with optional profiles."""

    def __init__(self, profiles: list[MentorProfile] | None = None) -> None:
        self._profiles: dict[str, MentorProfile] = {p.id: p for p in profiles or []}
        logger.debug("InMemoryProfileStore initialised with %d profiles", len(self._profiles))

    async def get(self, user_id: str) -> MentorProfile | None:
        return self._profiles.get(user_id)

    async def put(self, profile: MentorProfile) -> None:
        self._profiles[profile.id] = profile

    async def update(self, user_id: str, **changes: Any) -> MentorProfile:
        """Return a re-validated copy of the profile with *changes* applied.

        Raises ``KeyError`` if no profile exists for *user_id*.
        """
        current = self._profiles[user_id]
        updated = MentorProfile.model_validate({**current.model_dump(), **changes, "id": user_id})
        self._profiles[user_id] = updated
        logger.info("Updated profile %s: %s", user_id, sorted(changes))
        return updated
