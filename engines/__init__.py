"""CodaMentor engines package."""

from engines.analytics_engine import AnalyticsEngine
from engines.compatibility_engine import CompatibilityEngine
from engines.predictive_engine import PredictiveEngine

__all__ = [
    "AnalyticsEngine",
    "CompatibilityEngine",
    "PredictiveEngine",
]
