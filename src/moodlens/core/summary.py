"""
Read-side summaries of stored daily aggregates.

Feeds dashboards: the daily series as a DataFrame, plus headline stats
(days covered, total events, mean of the daily averages).
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

import pandas as pd

from .errors import StorageError

SUMMARY_DECIMALS = 3


@dataclass
class MoodSummary:
    user_id: int
    days_count: int = 0
    events_count: int = 0
    avg_valence: float = 0.0
    avg_energy: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "days_count": self.days_count,
            "events_count": self.events_count,
            "avg_valence": self.avg_valence,
            "avg_energy": self.avg_energy,
        }


def load_daily_df(connection: sqlite3.Connection, user_id: int) -> pd.DataFrame:
    """Load a user's daily aggregates ordered by day.

    Returns
    -------
    pd.DataFrame
        Columns ``day`` (datetime.date), ``avg_valence``, ``avg_energy``,
        ``events_count``. Empty when the user has no rows.
    """
    sql = """
        SELECT day, avg_valence, avg_energy, events_count
        FROM mood_daily
        WHERE user_id = :user_id
        ORDER BY day
    """
    try:
        df = pd.read_sql_query(sql, connection, params={"user_id": user_id})
    except (sqlite3.Error, pd.errors.DatabaseError) as e:
        raise StorageError(f"Storage failure while loading daily series: {e}", details={"user_id": user_id}) from e

    if not df.empty:
        df["day"] = pd.to_datetime(df["day"]).dt.date
    return df


def summarize_user(connection: sqlite3.Connection, user_id: int) -> MoodSummary:
    """Headline stats over all stored days for a user."""
    df = load_daily_df(connection, user_id)
    if df.empty:
        return MoodSummary(user_id=user_id)

    return MoodSummary(
        user_id=user_id,
        days_count=int(len(df)),
        events_count=int(df["events_count"].sum()),
        avg_valence=round(float(df["avg_valence"].mean()), SUMMARY_DECIMALS),
        avg_energy=round(float(df["avg_energy"].mean()), SUMMARY_DECIMALS),
    )
