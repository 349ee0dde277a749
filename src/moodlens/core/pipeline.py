"""
Mood Analysis Pipeline

One synchronous batch run per user:

    read window -> aggregate days + bucket (one pass) -> select patterns -> upsert

An empty window is a successful no-op with no writes. All writes of a run
share one transaction, so a storage failure leaves nothing half-written and
surfaces as StorageError. Every write is an upsert, which makes the whole
run safe to retry from scratch.

The pipeline does no queuing or locking of its own. Callers that may run
it concurrently must keep to one run per user at a time (see
``moodlens.jobs.scheduler``); different users are independent.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

from .aggregator import DailyAccumulator
from .bucketer import BucketAccumulator
from .config import AnalysisConfig, get_database_path
from .db_adapter import get_connection
from .models import AnalysisResult
from .patterns import select_patterns
from .schema import create_mood_tables
from .store import MoodStore

logger = logging.getLogger(__name__)


def run_analysis(
    user_id: int,
    conn: Any,
    config: Optional[AnalysisConfig] = None,
    now: Optional[datetime] = None,
) -> AnalysisResult:
    """
    Recompute daily aggregates and patterns for one user.

    Args:
        user_id: User whose listening window is analysed.
        conn: Database connection (or DBAdapter / MoodStore's adapter).
        config: Window size, noise guard and stale-pattern policy.
        now: Reference time for the trailing window. Must follow the same
            timezone convention as the stored ``played_at`` values.

    Returns:
        AnalysisResult describing what was written.

    Raises:
        StorageError: Reading events or writing results failed. Nothing
            from this run was committed.
    """
    config = config or AnalysisConfig()
    now = now or datetime.now()
    window_start = now - timedelta(days=config.window_days)
    store = MoodStore(conn)

    logger.info(f"Analyzing user {user_id} (window from {window_start.isoformat()})")
    events = store.load_events(user_id, since=window_start)

    result = AnalysisResult(user_id=user_id, window_start=window_start, events_read=len(events))
    if not events:
        logger.info(f"No listening events for user {user_id} in window; nothing to do")
        return result

    daily_acc = DailyAccumulator()
    bucket_acc = BucketAccumulator()
    for event in events:
        daily_acc.add(event)
        bucket_acc.add(event)

    result.daily = daily_acc.finalize(user_id)
    result.patterns = select_patterns(user_id, bucket_acc.buckets, config.min_samples)

    with store.transaction():
        for aggregate in result.daily:
            store.save_daily(aggregate)
        for pattern in result.patterns:
            store.save_pattern(pattern)
        if config.prune_stale_patterns:
            result.pruned_patterns = store.delete_patterns_except(
                user_id, [p.pattern_key for p in result.patterns]
            )

    logger.info(
        f"User {user_id}: {len(events)} events -> {len(result.daily)} daily rows, "
        f"{len(result.patterns)} patterns"
        + (f", {result.pruned_patterns} stale patterns pruned" if result.pruned_patterns else "")
    )
    return result


class MoodAnalyzer:
    """
    Runs the pipeline against a database file, opening a fresh connection
    per run so it can be used from worker threads.
    """

    def __init__(
        self,
        db_path: Optional[str | Path] = None,
        config: Optional[AnalysisConfig] = None,
    ):
        self.db_path = Path(db_path or get_database_path())
        self.config = config or AnalysisConfig()

    def ensure_schema(self) -> None:
        conn = get_connection(self.db_path)
        try:
            create_mood_tables(conn)
        finally:
            conn.close()

    def analyze(self, user_id: int, now: Optional[datetime] = None) -> AnalysisResult:
        conn = get_connection(self.db_path)
        try:
            return run_analysis(user_id, conn, config=self.config, now=now)
        finally:
            conn.close()
