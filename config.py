"""CodaMentor: centralized configuration module.

Loads environment variables from .env, defines project-wide constants,
and sets up structured logging for the entire application.
"""

import logging
import sys
from pathlib import Path
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent
ENV_FILE = PROJECT_ROOT / ".env"


# ---------------------------------------------------------------------------
# Settings (loaded once via pydantic-settings)
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Application settings sourced from environment / .env file."""

    # AI-student defaults
    default_personality: str = Field(
        default="curious_student",
        description="Personality given to a new AI-student when none is supplied",
    )
    default_cultural_environment: str = Field(
        default="deaf_family_home",
        description="Cultural environment given to a new AI-student",
    )
    default_student_name: str = "IA-Eleve"

    # Analytics / insights
    insights_cache_ttl_minutes: int = Field(default=30, ge=0)
    min_sessions_for_prediction: int = Field(default=3, ge=1)

    # Session record store
    session_timeout_minutes: int = Field(default=60, ge=1)

    # Default learning simulator
    simulator_noise: float = Field(default=0.2, ge=0.0, le=1.0)

    # Application defaults
    log_level: str = "INFO"

    model_config = {
        "env_file": str(ENV_FILE),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton."""
    return Settings()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
_LOG_FORMAT = "%(asctime)s | %(name)-34s | %(levelname)-7s | %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str | None = None) -> None:
    """Configure root logger for the CodaMentor application.

    Parameters
    ----------
    level:
        Override log level (e.g. ``"DEBUG"``).  Falls back to
        ``Settings.log_level`` when *None*.
    """
    effective_level = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, effective_level, logging.INFO),
        format=_LOG_FORMAT,
        datefmt=_LOG_DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    """Return a namespaced logger for *name* (typically ``__name__``)."""
    return logging.getLogger(f"coda.{name}")


# ---------------------------------------------------------------------------
# Convenience: run setup on first import so logging is always ready
# ---------------------------------------------------------------------------
setup_logging()
