"""
Mood Data Schema

Table definitions for the listening-event store and the two derived tables
the pipeline writes. The derived tables carry the uniqueness the upserts
rely on: one mood_daily row per (user_id, day) and one mood_patterns row
per (user_id, pattern_key).
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from .db_adapter import get_connection

logger = logging.getLogger(__name__)


MOOD_TABLES = {
    "listening_events": """
        CREATE TABLE IF NOT EXISTS listening_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            played_at TEXT NOT NULL,
            valence REAL NOT NULL CHECK (valence BETWEEN 0 AND 1),
            energy REAL NOT NULL CHECK (energy BETWEEN 0 AND 1),
            track_name TEXT,
            artist_name TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """,

    "mood_daily": """
        CREATE TABLE IF NOT EXISTS mood_daily (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            day TEXT NOT NULL,
            avg_valence REAL NOT NULL,
            avg_energy REAL NOT NULL,
            events_count INTEGER NOT NULL CHECK (events_count > 0),
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(user_id, day)
        )
    """,

    "mood_patterns": """
        CREATE TABLE IF NOT EXISTS mood_patterns (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            pattern_key TEXT NOT NULL,
            title TEXT NOT NULL,
            summary TEXT NOT NULL,
            meta TEXT NOT NULL,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(user_id, pattern_key)
        )
    """,
}

MOOD_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_listening_events_user_played ON listening_events(user_id, played_at)",
    "CREATE INDEX IF NOT EXISTS idx_mood_daily_user_day ON mood_daily(user_id, day)",
    "CREATE INDEX IF NOT EXISTS idx_mood_patterns_user ON mood_patterns(user_id)",
]


def create_mood_tables(conn: sqlite3.Connection) -> None:
    """Create all mood tables and indexes on an open connection.

    Safe to call repeatedly.
    """
    try:
        for table_name, create_sql in MOOD_TABLES.items():
            logger.debug(f"Creating table: {table_name}")
            conn.execute(create_sql)
        for index_sql in MOOD_INDEXES:
            conn.execute(index_sql)
        conn.commit()
    except sqlite3.Error as e:
        logger.error(f"Error initializing mood tables: {e}")
        conn.rollback()
        raise


def init_mood_tables(db_path: str | Path) -> None:
    """
    Initialize all mood tables in the database file.

    Args:
        db_path: Path to the SQLite database file.
    """
    db_path = Path(db_path)
    logger.info(f"Initializing mood tables in {db_path}")

    conn = get_connection(db_path)
    try:
        create_mood_tables(conn)
        logger.info(f"Mood tables initialized successfully ({len(MOOD_TABLES)} tables)")
    finally:
        conn.close()


def get_mood_table_stats(db_path: str | Path) -> dict[str, Optional[int]]:
    """
    Row counts for all mood tables.

    Returns:
        Dictionary of table_name -> row_count (None if the table is missing).
    """
    conn = get_connection(db_path)
    stats: dict[str, Optional[int]] = {}
    try:
        for table_name in MOOD_TABLES:
            try:
                row = conn.execute(f"SELECT COUNT(*) FROM {table_name}").fetchone()
                stats[table_name] = row[0]
            except sqlite3.OperationalError:
                stats[table_name] = None
    finally:
        conn.close()
    return stats


if __name__ == "__main__":
    import sys

    logging.basicConfig(level=logging.INFO)

    db_path = sys.argv[1] if len(sys.argv) > 1 else "moodlens.db"

    init_mood_tables(db_path)
    print("\nMood table stats:")
    for table, count in get_mood_table_stats(db_path).items():
        print(f"  {table}: {count} rows")
