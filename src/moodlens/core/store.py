"""
Mood Store

Persistence for the pipeline: reads the listening-event window and
idempotently upserts daily aggregates and patterns.

Uniqueness lives in the schema (``UNIQUE(user_id, day)`` and
``UNIQUE(user_id, pattern_key)``); the store never reads before writing.
Calling an upsert twice with the same arguments leaves the same stored
state as calling it once. ``created_at`` is only set on insert, so a
re-run does not change any stored value.

Every database error is re-raised as StorageError.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterable, Iterator, Mapping, Optional

from .db_adapter import DBAdapter, wrap_connection
from .errors import StorageError
from .models import DailyAggregate, ListeningEvent, Pattern

logger = logging.getLogger(__name__)


UPSERT_DAILY_SQL = """
    INSERT INTO mood_daily (user_id, day, avg_valence, avg_energy, events_count)
    VALUES (?, ?, ?, ?, ?)
    ON CONFLICT(user_id, day) DO UPDATE SET
        avg_valence = excluded.avg_valence,
        avg_energy = excluded.avg_energy,
        events_count = excluded.events_count
"""

UPSERT_PATTERN_SQL = """
    INSERT INTO mood_patterns (user_id, pattern_key, title, summary, meta)
    VALUES (?, ?, ?, ?, ?)
    ON CONFLICT(user_id, pattern_key) DO UPDATE SET
        title = excluded.title,
        summary = excluded.summary,
        meta = excluded.meta
"""


def encode_meta(meta: Mapping[str, float]) -> str:
    """Serialize pattern meta. JSON float repr round-trips doubles exactly."""
    return json.dumps({k: float(v) for k, v in meta.items()}, sort_keys=True)


def decode_meta(raw: Optional[str]) -> dict[str, float]:
    if not raw:
        return {}
    return {k: float(v) for k, v in json.loads(raw).items()}


class MoodStore:
    """
    Storage operations for one database connection.

    The event-store methods (add_events, delete_user_data) exist for the
    caller that owns listening events; the pipeline itself only reads them.
    """

    def __init__(self, conn: Any):
        self.db: DBAdapter = wrap_connection(conn)

    @contextmanager
    def _storage_errors(self, action: str, **details: Any) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as e:
            logger.error(f"Storage failure while {action}: {e}")
            raise StorageError(f"Storage failure while {action}: {e}", details=details) from e

    @contextmanager
    def transaction(self) -> Iterator["MoodStore"]:
        """All writes inside the block commit together or not at all."""
        with self._storage_errors("committing transaction"):
            with self.db.transaction():
                yield self

    def _write(self, sql: str, params: tuple) -> int:
        self.db.execute(sql, params)
        count = self.db.rowcount
        if not self.db.in_transaction:
            self.db.commit()
        return count

    # ------------------------------------------------------------------
    # Event store (read window + caller-owned writes)
    # ------------------------------------------------------------------

    def load_events(
        self,
        user_id: int,
        since: Optional[datetime] = None,
    ) -> list[ListeningEvent]:
        """Events for a user played at or after ``since``, oldest first.

        ``played_at`` is compared as an instant through julianday(), so rows
        written as ``YYYY-MM-DD HH:MM:SS`` by other writers match the same
        window as isoformat() rows. Rows whose timestamp SQLite cannot parse
        are not filtered out; they fail decoding and raise StorageError.
        """
        sql = """
            SELECT user_id, played_at, valence, energy, track_name, artist_name
            FROM listening_events
            WHERE user_id = ?
        """
        params: list[Any] = [user_id]
        if since is not None:
            sql += " AND (julianday(played_at) >= julianday(?) OR julianday(played_at) IS NULL)"
            params.append(since.isoformat())
        sql += " ORDER BY julianday(played_at), id"

        with self._storage_errors("reading listening events", user_id=user_id):
            rows = self.db.execute(sql, tuple(params)).fetchall()

        events = []
        for row in rows:
            try:
                events.append(
                    ListeningEvent(
                        user_id=row[0],
                        played_at=datetime.fromisoformat(row[1]),
                        valence=row[2],
                        energy=row[3],
                        track_name=row[4],
                        artist_name=row[5],
                    )
                )
            except (TypeError, ValueError) as e:
                logger.error(f"Malformed listening event for user {user_id}: {e}")
                raise StorageError(
                    f"Malformed listening event row: {e}",
                    details={"user_id": user_id, "played_at": row[1]},
                ) from e
        return events

    def add_events(self, events: Iterable[ListeningEvent]) -> int:
        """Append listening events. Returns the number inserted."""
        params = [
            (
                e.user_id,
                e.played_at.isoformat(),
                e.valence,
                e.energy,
                e.track_name,
                e.artist_name,
            )
            for e in events
        ]
        if not params:
            return 0
        with self._storage_errors("inserting listening events"):
            self.db.executemany(
                """
                INSERT INTO listening_events
                (user_id, played_at, valence, energy, track_name, artist_name)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                params,
            )
            if not self.db.in_transaction:
                self.db.commit()
        logger.info(f"Stored {len(params)} listening events")
        return len(params)

    def delete_user_data(self, user_id: int) -> dict[str, int]:
        """Remove a user's events, daily rows and patterns in one transaction."""
        deleted: dict[str, int] = {}
        with self.transaction():
            for table in ("listening_events", "mood_daily", "mood_patterns"):
                with self._storage_errors(f"deleting from {table}", user_id=user_id):
                    deleted[table] = self._write(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))
        logger.info(f"Deleted data for user {user_id}: {deleted}")
        return deleted

    def list_user_ids(self) -> list[int]:
        """Users that have at least one listening event."""
        with self._storage_errors("listing users"):
            rows = self.db.execute(
                "SELECT DISTINCT user_id FROM listening_events ORDER BY user_id"
            ).fetchall()
        return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Sink: idempotent upserts
    # ------------------------------------------------------------------

    def upsert_daily(
        self,
        user_id: int,
        day: date,
        avg_valence: float,
        avg_energy: float,
        events_count: int,
    ) -> None:
        """Insert or overwrite the (user_id, day) aggregate."""
        if events_count <= 0:
            raise ValueError(f"events_count must be positive, got {events_count}")
        with self._storage_errors("upserting daily aggregate", user_id=user_id, day=day.isoformat()):
            self._write(
                UPSERT_DAILY_SQL,
                (user_id, day.isoformat(), float(avg_valence), float(avg_energy), int(events_count)),
            )

    def upsert_pattern(
        self,
        user_id: int,
        pattern_key: str,
        title: str,
        summary: str,
        meta: Mapping[str, float],
    ) -> None:
        """Insert or overwrite the (user_id, pattern_key) pattern."""
        with self._storage_errors("upserting pattern", user_id=user_id, pattern_key=pattern_key):
            self._write(
                UPSERT_PATTERN_SQL,
                (user_id, pattern_key, title, summary, encode_meta(meta)),
            )

    def save_daily(self, aggregate: DailyAggregate) -> None:
        self.upsert_daily(
            aggregate.user_id,
            aggregate.day,
            aggregate.avg_valence,
            aggregate.avg_energy,
            aggregate.events_count,
        )

    def save_pattern(self, pattern: Pattern) -> None:
        self.upsert_pattern(
            pattern.user_id,
            pattern.pattern_key,
            pattern.title,
            pattern.summary,
            pattern.meta,
        )

    def delete_patterns_except(self, user_id: int, keep_keys: Iterable[str]) -> int:
        """Delete the user's patterns whose key is not in ``keep_keys``.

        Only used by the opt-in stale-pattern reconciliation.
        """
        keep = sorted(set(keep_keys))
        sql = "DELETE FROM mood_patterns WHERE user_id = ?"
        params: list[Any] = [user_id]
        if keep:
            sql += f" AND pattern_key NOT IN ({', '.join('?' for _ in keep)})"
            params.extend(keep)
        with self._storage_errors("pruning stale patterns", user_id=user_id):
            return self._write(sql, tuple(params))

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def list_daily(self, user_id: int) -> list[DailyAggregate]:
        """Daily aggregates for a user ordered by day."""
        with self._storage_errors("reading daily aggregates", user_id=user_id):
            rows = self.db.execute(
                """
                SELECT user_id, day, avg_valence, avg_energy, events_count
                FROM mood_daily
                WHERE user_id = ?
                ORDER BY day
                """,
                (user_id,),
            ).fetchall()
        return [
            DailyAggregate(
                user_id=row[0],
                day=date.fromisoformat(row[1]),
                avg_valence=row[2],
                avg_energy=row[3],
                events_count=row[4],
            )
            for row in rows
        ]

    def list_patterns(self, user_id: int) -> list[Pattern]:
        """Patterns for a user, newest first."""
        with self._storage_errors("reading patterns", user_id=user_id):
            rows = self.db.execute(
                """
                SELECT user_id, pattern_key, title, summary, meta
                FROM mood_patterns
                WHERE user_id = ?
                ORDER BY created_at DESC, pattern_key
                """,
                (user_id,),
            ).fetchall()
        return [
            Pattern(
                user_id=row[0],
                pattern_key=row[1],
                title=row[2],
                summary=row[3],
                meta=decode_meta(row[4]),
            )
            for row in rows
        ]
