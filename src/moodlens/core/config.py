"""
Tuning knobs for the analysis pipeline.

Defaults match the reference behaviour (60-day window, 20-sample noise
guard) and can be overridden per instance or through environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_WINDOW_DAYS = 60
DEFAULT_MIN_SAMPLES = 20

DATABASE_PATH_ENV = "MOODLENS_DATABASE_PATH"
DEFAULT_DATABASE_PATH = "moodlens.db"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_database_path() -> str:
    """Database path from MOODLENS_DATABASE_PATH, or the local default."""
    return os.environ.get(DATABASE_PATH_ENV, DEFAULT_DATABASE_PATH)


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Configuration for one analysis run.

    Attributes:
        window_days: Trailing window of listening history to read.
        min_samples: Noise guard. Buckets with fewer events are ignored
            by pattern detection.
        prune_stale_patterns: When True, a run deletes the user's pattern
            rows it did not emit. Off by default, so a bucket that stops
            qualifying keeps its last pattern row.
    """

    window_days: int = field(
        default_factory=lambda: _env_int("MOODLENS_WINDOW_DAYS", DEFAULT_WINDOW_DAYS)
    )
    min_samples: int = field(
        default_factory=lambda: _env_int("MOODLENS_MIN_SAMPLES", DEFAULT_MIN_SAMPLES)
    )
    prune_stale_patterns: bool = field(
        default_factory=lambda: _env_bool("MOODLENS_PRUNE_STALE_PATTERNS")
    )

    def __post_init__(self) -> None:
        if self.window_days <= 0:
            raise ValueError(f"window_days must be positive, got {self.window_days}")
        if self.min_samples < 0:
            raise ValueError(f"min_samples must be non-negative, got {self.min_samples}")

    def to_dict(self) -> dict:
        return {
            "window_days": self.window_days,
            "min_samples": self.min_samples,
            "prune_stale_patterns": self.prune_stale_patterns,
        }
