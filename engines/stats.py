"""Small numeric helpers shared by the engines."""

from __future__ import annotations

from typing import Iterable, Sequence, TypeVar

T = TypeVar("T")


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def mean(values: Sequence[float], default: float = 0.0) -> float:
    if not values:
        return default
    return sum(values) / len(values)


def variance(values: Sequence[float]) -> float:
    """Population variance; ``0.0`` for an empty sequence."""
    if not values:
        return 0.0
    m = sum(values) / len(values)
    return sum((v - m) ** 2 for v in values) / len(values)


def trend_slope(values: Sequence[float]) -> float:
    """Ordinary least-squares slope of *values* against their index.

    Returns ``0.0`` for fewer than two points.
    """
    n = len(values)
    if n < 2:
        return 0.0
    mean_x = (n - 1) / 2
    mean_y = sum(values) / n
    num = sum((i - mean_x) * (y - mean_y) for i, y in enumerate(values))
    den = sum((i - mean_x) ** 2 for i in range(n))
    # Rounded so a flat series has a slope of exactly zero
    return round(num / den, 12)


def unique(items: Iterable[T]) -> list[T]:
    """Deduplicate *items*, keeping first-seen order."""
    return list(dict.fromkeys(items))
