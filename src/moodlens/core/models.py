"""
Data model for the mood analytics pipeline.

Listening events come in, per-day averages and weekday/time-of-day
pattern records come out. Buckets only exist for the duration of a run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, NamedTuple, Optional


class Weekday(str, Enum):
    """Day of week, in datetime.weekday() order (Monday first)."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_datetime(cls, dt: datetime) -> "Weekday":
        return _WEEKDAYS[dt.weekday()]

    @property
    def position(self) -> int:
        return _WEEKDAYS.index(self)


_WEEKDAYS = list(Weekday)


class TimeSegment(str, Enum):
    """Time-of-day segment.

    morning: hour < 12, afternoon: 12 <= hour < 18, evening: hour >= 18.
    """

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @property
    def position(self) -> int:
        return _SEGMENTS.index(self)


_SEGMENTS = list(TimeSegment)


class PatternKind(str, Enum):
    """Kinds of recurring pattern the selector can emit."""

    HIGH_ENERGY = "high_energy"
    LOW_VALENCE = "low_valence"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class BucketKey(NamedTuple):
    """(weekday, segment) grouping key."""

    weekday: Weekday
    segment: TimeSegment

    @property
    def sort_key(self) -> tuple[int, int]:
        """Canonical order: Monday..Sunday, then morning..evening."""
        return (self.weekday.position, self.segment.position)

    def __str__(self) -> str:
        return f"{self.weekday.value}:{self.segment.value}"


def _coerce_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    raise TypeError(f"played_at must be a datetime or ISO string, got {type(value).__name__}")


def _check_unit_interval(name: str, value: Any) -> float:
    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {value}")
    return value


@dataclass(frozen=True)
class ListeningEvent:
    """A single play, scored for valence and energy.

    Attributes:
        user_id: Owner of the event.
        played_at: When the track was played. The weekday and hour are read
            from this value as-is, no timezone conversion is applied.
        valence: Emotional positivity in [0, 1].
        energy: Audio intensity in [0, 1].
        track_name: Optional, informational only.
        artist_name: Optional, informational only.
    """

    user_id: int
    played_at: datetime
    valence: float
    energy: float
    track_name: Optional[str] = None
    artist_name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "played_at", _coerce_datetime(self.played_at))
        object.__setattr__(self, "valence", _check_unit_interval("valence", self.valence))
        object.__setattr__(self, "energy", _check_unit_interval("energy", self.energy))

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "played_at": self.played_at.isoformat(),
            "valence": self.valence,
            "energy": self.energy,
            "track_name": self.track_name,
            "artist_name": self.artist_name,
        }


@dataclass(frozen=True)
class DailyAggregate:
    """Mood averages for one user on one calendar day."""

    user_id: int
    day: date
    avg_valence: float
    avg_energy: float
    events_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "day": self.day.isoformat(),
            "avg_valence": self.avg_valence,
            "avg_energy": self.avg_energy,
            "events_count": self.events_count,
        }


@dataclass
class BucketStats:
    """Running sums for one (weekday, segment) bucket."""

    valence_sum: float = 0.0
    energy_sum: float = 0.0
    count: int = 0

    def add(self, valence: float, energy: float) -> None:
        self.valence_sum += valence
        self.energy_sum += energy
        self.count += 1

    @property
    def avg_valence(self) -> float:
        return self.valence_sum / self.count

    @property
    def avg_energy(self) -> float:
        return self.energy_sum / self.count


@dataclass(frozen=True)
class Pattern:
    """An explainable recurring trend tied to one bucket.

    ``meta`` holds the bucket's ``avg_energy`` and ``avg_valence``.
    """

    user_id: int
    pattern_key: str
    title: str
    summary: str
    meta: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "pattern_key": self.pattern_key,
            "title": self.title,
            "summary": self.summary,
            "meta": dict(self.meta),
        }


@dataclass
class AnalysisResult:
    """Outcome of one pipeline run for one user."""

    user_id: int
    window_start: datetime
    events_read: int = 0
    daily: list[DailyAggregate] = field(default_factory=list)
    patterns: list[Pattern] = field(default_factory=list)
    pruned_patterns: int = 0

    @property
    def is_noop(self) -> bool:
        """True when the window was empty and nothing was written."""
        return self.events_read == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "window_start": self.window_start.isoformat(),
            "events_read": self.events_read,
            "daily_written": len(self.daily),
            "patterns_written": len(self.patterns),
            "pattern_keys": [p.pattern_key for p in self.patterns],
            "pruned_patterns": self.pruned_patterns,
        }
