"""CodaMentor: time-boxed insights cache.

Entries are keyed by ``(mentor_id, student_name, session_ids)``.  A read
only returns an entry younger than the TTL; stale entries are dropped on
read.  There is no other eviction policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Generic, Iterable, TypeVar

from config import get_settings, get_logger

logger = get_logger(__name__)

T = TypeVar("T")

CacheKey = tuple[str, str, tuple[str, ...]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_cache_key(mentor_id: str, student_name: str, session_ids: Iterable[str]) -> CacheKey:
    return (mentor_id, student_name, tuple(session_ids))


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    created_at: datetime


class InsightsCache(Generic[T]):
    """TTL cache for consolidated insights.

    Parameters
    ----------
    ttl_minutes:
        Entry lifetime.  Defaults to ``Settings.insights_cache_ttl_minutes``.
    clock:
        Zero-argument callable returning the current aware ``datetime``.
    """

    def __init__(
        self,
        ttl_minutes: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        minutes = get_settings().insights_cache_ttl_minutes if ttl_minutes is None else ttl_minutes
        self._ttl = timedelta(minutes=minutes)
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry[T]] = {}

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def get(self, key: CacheKey) -> CacheEntry[T] | None:
        """Return the entry for *key* if it is younger than the TTL."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.created_at >= self._ttl:
            del self._entries[key]
            logger.info("Cache entry expired for mentor=%s", key[0])
            return None
        return entry

    def put(self, key: CacheKey, value: T) -> CacheEntry[T]:
        entry = CacheEntry(value=value, created_at=self._clock())
        self._entries[key] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
