"""
Shared fixtures for the test suite.

Every test gets its own SQLite file under ``tmp_path`` with the mood
tables created, plus a factory for synthetic listening events.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterator, Sequence, Union

import pytest

from moodlens.core import ListeningEvent, MoodStore, create_mood_tables, get_connection

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NOW = datetime(2026, 10, 20, 12, 0, 0)
"""Fixed reference time for the analysis window (a Tuesday)."""

SUNDAY = datetime(2026, 10, 18)
MONDAY = datetime(2026, 10, 12)
TUESDAY = datetime(2026, 10, 13)

Values = Union[float, Sequence[float]]
EventFactory = Callable[..., list[ListeningEvent]]


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    path = tmp_path / "moodlens_test.db"
    conn = get_connection(path)
    try:
        create_mood_tables(conn)
    finally:
        conn.close()
    return path


@pytest.fixture()
def conn(db_path: Path) -> Iterator[sqlite3.Connection]:
    connection = get_connection(db_path)
    yield connection
    connection.close()


@pytest.fixture()
def store(conn: sqlite3.Connection) -> MoodStore:
    return MoodStore(conn)


# ---------------------------------------------------------------------------
# Event factory
# ---------------------------------------------------------------------------


def _value_at(values: Values, i: int) -> float:
    if isinstance(values, (int, float)):
        return float(values)
    return float(values[i % len(values)])


@pytest.fixture()
def make_events() -> EventFactory:
    """Build ``count`` events starting at ``start``, ``step_minutes`` apart.

    ``valence`` / ``energy`` may be a constant or a sequence that is cycled.
    """

    def factory(
        start: datetime,
        count: int,
        valence: Values = 0.5,
        energy: Values = 0.5,
        user_id: int = 1,
        step_minutes: int = 10,
    ) -> list[ListeningEvent]:
        return [
            ListeningEvent(
                user_id=user_id,
                played_at=start + timedelta(minutes=step_minutes * i),
                valence=_value_at(valence, i),
                energy=_value_at(energy, i),
                track_name=f"Track {i}",
                artist_name="Test Artist",
            )
            for i in range(count)
        ]

    return factory
