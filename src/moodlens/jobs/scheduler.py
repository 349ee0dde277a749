"""
MoodLens Scheduled Jobs

Caller-side wrappers around the analysis pipeline:
1. On ingest: analyze one user (inline or on a background worker)
2. Nightly: re-analyze every user with listening history

The pipeline must never run twice at once for the same user, since two
overlapping runs over different event snapshots could interleave their
upserts. Every entry point here takes the user's run lock first.
Different users run in parallel.

Can be run as:
- Cloud Run Jobs (JOB_TYPE environment variable)
- Cron jobs
- Manual CLI invocation
"""

from __future__ import annotations

import logging
import os
import sys
import threading
import weakref
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from moodlens.core.config import AnalysisConfig
from moodlens.core.db_adapter import get_connection
from moodlens.core.pipeline import MoodAnalyzer
from moodlens.core.store import MoodStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


# =============================================================================
# PER-USER RUN LOCKS
# =============================================================================

# Entries vanish once no caller holds the lock, so the registry only
# tracks users with a run in progress or about to start.
_user_locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()
_registry_lock = threading.Lock()


def get_user_lock(user_id: int) -> threading.Lock:
    """The run lock for a user.

    Callers must keep the returned lock referenced for as long as they use it;
    concurrent callers for the same user get the same lock.
    """
    with _registry_lock:
        lock = _user_locks.get(user_id)
        if lock is None:
            lock = _user_locks[user_id] = threading.Lock()
        return lock


# =============================================================================
# JOB DEFINITIONS
# =============================================================================

def job_analyze_user(
    user_id: int,
    db_path: Optional[str | Path] = None,
    config: Optional[AnalysisConfig] = None,
    wait: bool = True,
    now: Optional[datetime] = None,
) -> dict:
    """
    Recompute daily aggregates and patterns for one user.

    Run: after new events are ingested, or on a schedule
    Args:
        wait: Block until a run already in progress for this user finishes.
            With wait=False the job is skipped instead.
    """
    lock = get_user_lock(user_id)
    if not lock.acquire(blocking=wait):
        logger.info(f"Analysis already running for user {user_id}; skipping")
        return {"status": "skipped", "user_id": user_id, "reason": "already_running"}

    try:
        logger.info(f"Starting analysis job for user {user_id}")
        result = MoodAnalyzer(db_path=db_path, config=config).analyze(user_id, now=now)
        logger.info(f"Analysis job complete for user {user_id}: {result.to_dict()}")
        return {"status": "success", "user_id": user_id, "result": result.to_dict()}

    except Exception as e:
        logger.error(f"Analysis job failed for user {user_id}: {e}")
        return {
            "status": "error",
            "user_id": user_id,
            "error": str(e),
            "code": getattr(e, "code", "UNKNOWN"),
        }

    finally:
        lock.release()


def job_analyze_all_users(
    db_path: Optional[str | Path] = None,
    config: Optional[AnalysisConfig] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Re-analyze every user that has listening events.

    Run: Nightly
    Purpose: keep aggregates fresh as the trailing window moves
    """
    analyzer = MoodAnalyzer(db_path=db_path, config=config)
    logger.info(f"Starting full analysis job ({analyzer.db_path})")

    try:
        conn = get_connection(analyzer.db_path)
        try:
            user_ids = MoodStore(conn).list_user_ids()
        finally:
            conn.close()
    except Exception as e:
        logger.error(f"Could not list users: {e}")
        return {"status": "error", "error": str(e)}

    results = {
        user_id: job_analyze_user(user_id, db_path=analyzer.db_path, config=analyzer.config, now=now)
        for user_id in user_ids
    }
    failed = [uid for uid, r in results.items() if r["status"] == "error"]

    logger.info(f"Full analysis complete: {len(user_ids)} users, {len(failed)} failed")
    return {
        "status": "error" if failed else "success",
        "users": len(user_ids),
        "failed": failed,
        "results": results,
    }


# =============================================================================
# BACKGROUND DISPATCH
# =============================================================================

class AnalysisDispatcher:
    """
    Runs analysis jobs on a thread pool.

    ``submit`` returns immediately with a Future; ``run_sync`` does the same
    work on the calling thread. Both go through job_analyze_user, so both
    respect the per-user run lock.
    """

    def __init__(
        self,
        db_path: Optional[str | Path] = None,
        config: Optional[AnalysisConfig] = None,
        max_workers: Optional[int] = None,
    ):
        self.db_path = db_path
        self.config = config
        self.max_workers = max_workers or int(os.getenv("MOODLENS_MAX_WORKERS", DEFAULT_MAX_WORKERS))
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="moodlens-analysis",
        )
        self._lock = threading.Lock()
        self._submitted = 0
        self._completed = 0

    def _run(self, user_id: int) -> dict:
        try:
            return job_analyze_user(user_id, db_path=self.db_path, config=self.config)
        finally:
            with self._lock:
                self._completed += 1

    def submit(self, user_id: int) -> Future:
        with self._lock:
            self._submitted += 1
        logger.debug(f"Queued analysis for user {user_id}")
        return self._executor.submit(self._run, user_id)

    def run_sync(self, user_id: int) -> dict:
        return job_analyze_user(user_id, db_path=self.db_path, config=self.config)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "max_workers": self.max_workers,
                "submitted": self._submitted,
                "completed": self._completed,
                "pending": self._submitted - self._completed,
            }

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        logger.info("Analysis dispatcher shut down")

    def __enter__(self) -> "AnalysisDispatcher":
        return self

    def __exit__(self, *args: Any) -> None:
        self.shutdown(wait=True)


# =============================================================================
# CLOUD RUN JOB ENTRY POINT
# =============================================================================

def cloud_run_handler(
    job_type: str,
    user_id: Optional[int] = None,
    db_path: Optional[str | Path] = None,
    config: Optional[AnalysisConfig] = None,
) -> dict:
    """
    Entry point for Cloud Run Jobs.

    Set JOB_TYPE environment variable to:
    - analyze (requires USER_ID or --user-id)
    - analyze_all
    """
    logger.info(f"Cloud Run job starting: {job_type}")

    if job_type == "analyze":
        if user_id is None:
            return {"status": "error", "error": "analyze requires a user id"}
        return job_analyze_user(user_id, db_path=db_path, config=config)
    elif job_type == "analyze_all":
        return job_analyze_all_users(db_path=db_path, config=config)
    else:
        return {"status": "error", "error": f"Unknown job type: {job_type}"}


# =============================================================================
# CLI
# =============================================================================

def main(argv: Optional[list[str]] = None) -> int:
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    parser = argparse.ArgumentParser(description="MoodLens Scheduled Jobs")
    parser.add_argument("job", choices=["analyze", "analyze_all"], help="Job to run")
    parser.add_argument("--user-id", type=int, default=None, help="User to analyze")
    parser.add_argument("--db", default=None, help="Path to database file")
    parser.add_argument("--window-days", type=int, default=None, help="Trailing window in days")
    parser.add_argument("--min-samples", type=int, default=None, help="Noise guard threshold")
    parser.add_argument("--prune-stale", action="store_true", help="Delete patterns a run no longer emits")

    args = parser.parse_args(argv)

    overrides: dict[str, Any] = {}
    if args.window_days is not None:
        overrides["window_days"] = args.window_days
    if args.min_samples is not None:
        overrides["min_samples"] = args.min_samples
    if args.prune_stale:
        overrides["prune_stale_patterns"] = True
    config = AnalysisConfig(**overrides)

    job_type = os.environ.get("JOB_TYPE", args.job)
    user_id = args.user_id
    if user_id is None and os.environ.get("USER_ID"):
        user_id = int(os.environ["USER_ID"])

    result = cloud_run_handler(job_type, user_id=user_id, db_path=args.db, config=config)

    print(f"\n{'='*60}")
    print(f"Job: {job_type}")
    print(f"Result: {result}")
    print(f"{'='*60}")

    return 1 if result.get("status") == "error" else 0


if __name__ == "__main__":
    sys.exit(main())
