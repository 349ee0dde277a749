"""Tests for configuration, errors and model validation."""

from __future__ import annotations

from datetime import datetime

import pytest

from moodlens.core.config import AnalysisConfig, get_database_path
from moodlens.core.errors import MoodAnalyticsError, StorageError
from moodlens.core.models import AnalysisResult, ListeningEvent, PatternKind, Weekday

from .conftest import NOW, SUNDAY


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "MOODLENS_WINDOW_DAYS",
        "MOODLENS_MIN_SAMPLES",
        "MOODLENS_PRUNE_STALE_PATTERNS",
        "MOODLENS_DATABASE_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# AnalysisConfig
# ---------------------------------------------------------------------------


class TestAnalysisConfig:
    def test_defaults(self) -> None:
        config = AnalysisConfig()
        assert config.to_dict() == {
            "window_days": 60,
            "min_samples": 20,
            "prune_stale_patterns": False,
        }

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MOODLENS_WINDOW_DAYS", "30")
        monkeypatch.setenv("MOODLENS_MIN_SAMPLES", "5")
        monkeypatch.setenv("MOODLENS_PRUNE_STALE_PATTERNS", "yes")

        config = AnalysisConfig()

        assert (config.window_days, config.min_samples, config.prune_stale_patterns) == (30, 5, True)

    def test_explicit_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MOODLENS_WINDOW_DAYS", "30")
        assert AnalysisConfig(window_days=90).window_days == 90

    def test_bad_env_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MOODLENS_MIN_SAMPLES", "lots")
        with pytest.raises(ValueError, match="MOODLENS_MIN_SAMPLES"):
            AnalysisConfig()

    @pytest.mark.parametrize("kwargs", [{"window_days": 0}, {"min_samples": -1}])
    def test_invalid_values(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            AnalysisConfig(**kwargs)

    def test_database_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        assert get_database_path() == "moodlens.db"
        monkeypatch.setenv("MOODLENS_DATABASE_PATH", "/tmp/other.db")
        assert get_database_path() == "/tmp/other.db"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_storage_error_dict(self) -> None:
        err = StorageError("disk full", details={"user_id": 7})
        assert isinstance(err, MoodAnalyticsError)
        assert err.to_dict() == {
            "code": "STORAGE_FAILURE",
            "message": "disk full",
            "details": {"user_id": 7},
        }


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TestListeningEvent:
    def test_iso_string_parsed(self) -> None:
        event = ListeningEvent(user_id=1, played_at="2026-10-18T19:30:00", valence=0.2, energy=0.5)
        assert event.played_at == SUNDAY.replace(hour=19, minute=30)

    def test_bounds_inclusive(self) -> None:
        event = ListeningEvent(user_id=1, played_at=NOW, valence=0, energy=1)
        assert (event.valence, event.energy) == (0.0, 1.0)

    @pytest.mark.parametrize("valence,energy", [(-0.1, 0.5), (0.5, 1.01)])
    def test_out_of_range(self, valence: float, energy: float) -> None:
        with pytest.raises(ValueError):
            ListeningEvent(user_id=1, played_at=NOW, valence=valence, energy=energy)

    def test_bad_played_at(self) -> None:
        with pytest.raises(TypeError):
            ListeningEvent(user_id=1, played_at=1760000000, valence=0.5, energy=0.5)


class TestEnums:
    def test_weekday_from_datetime(self) -> None:
        assert Weekday.from_datetime(SUNDAY) is Weekday.SUNDAY
        assert Weekday.from_datetime(NOW) is Weekday.TUESDAY

    def test_kind_label(self) -> None:
        assert PatternKind.LOW_VALENCE.label == "Low Valence"
        assert PatternKind.HIGH_ENERGY.label == "High Energy"


class TestAnalysisResult:
    def test_noop_dict(self) -> None:
        result = AnalysisResult(user_id=3, window_start=datetime(2026, 8, 21, 12))
        assert result.is_noop
        assert result.to_dict() == {
            "user_id": 3,
            "window_start": "2026-08-21T12:00:00",
            "events_read": 0,
            "daily_written": 0,
            "patterns_written": 0,
            "pattern_keys": [],
            "pruned_patterns": 0,
        }
