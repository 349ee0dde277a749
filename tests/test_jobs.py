"""Tests for jobs/scheduler.py"""

from __future__ import annotations

import gc
import sqlite3
from datetime import datetime, timedelta

import pytest

from moodlens.core import AnalysisConfig
from moodlens.jobs.scheduler import (
    _user_locks,
    AnalysisDispatcher,
    cloud_run_handler,
    get_user_lock,
    job_analyze_all_users,
    job_analyze_user,
    main,
)

from .conftest import NOW, SUNDAY

CONFIG = AnalysisConfig(window_days=60, min_samples=20, prune_stale_patterns=False)


@pytest.fixture()
def recent_events(store, make_events):
    """Events for users 1 and 2 a couple of days before the real clock."""
    start = (datetime.now() - timedelta(days=2)).replace(hour=18, minute=0, second=0, microsecond=0)
    store.add_events(make_events(start, 20, user_id=1))
    store.add_events(make_events(start, 3, user_id=2))


class TestJobAnalyzeUser:
    def test_success(self, db_path, store, make_events) -> None:
        store.add_events(make_events(SUNDAY.replace(hour=18), 25))

        result = job_analyze_user(1, db_path=db_path, config=CONFIG, now=NOW)

        assert result["status"] == "success"
        assert result["result"]["pattern_keys"] == [
            "sunday_evening_high_energy",
            "sunday_evening_low_valence",
        ]

    def test_storage_failure_reported(self, db_path) -> None:
        conn = sqlite3.connect(db_path)
        conn.execute("DROP TABLE listening_events")
        conn.commit()
        conn.close()

        result = job_analyze_user(1, db_path=db_path, config=CONFIG, now=NOW)

        assert result["status"] == "error"
        assert result["code"] == "STORAGE_FAILURE"

    def test_skipped_while_running(self, db_path) -> None:
        lock = get_user_lock(41)
        lock.acquire()
        try:
            result = job_analyze_user(41, db_path=db_path, config=CONFIG, wait=False)
        finally:
            lock.release()

        assert result == {"status": "skipped", "user_id": 41, "reason": "already_running"}

    def test_lock_released_after_run(self, db_path) -> None:
        job_analyze_user(42, db_path=db_path, config=CONFIG, now=NOW)
        assert not get_user_lock(42).locked()

    def test_same_lock_per_user(self) -> None:
        assert get_user_lock(5) is get_user_lock(5)
        assert get_user_lock(5) is not get_user_lock(6)

    def test_unused_locks_are_evicted(self) -> None:
        lock = get_user_lock(77)
        assert 77 in _user_locks

        del lock
        gc.collect()

        assert 77 not in _user_locks

    def test_held_lock_is_shared(self) -> None:
        lock = get_user_lock(78)
        gc.collect()
        assert get_user_lock(78) is lock

    def test_registry_empty_after_job(self, db_path) -> None:
        job_analyze_user(79, db_path=db_path, config=CONFIG, now=NOW)
        gc.collect()
        assert 79 not in _user_locks


class TestJobAnalyzeAll:
    def test_every_user_analyzed(self, db_path, store, make_events) -> None:
        store.add_events(make_events(SUNDAY.replace(hour=18), 25, user_id=1))
        store.add_events(make_events(SUNDAY.replace(hour=9), 2, user_id=2))

        result = job_analyze_all_users(db_path=db_path, config=CONFIG, now=NOW)

        assert result["status"] == "success"
        assert result["users"] == 2
        assert result["failed"] == []
        assert result["results"][2]["result"]["daily_written"] == 1
        assert result["results"][2]["result"]["patterns_written"] == 0

    def test_missing_event_table(self, db_path) -> None:
        conn = sqlite3.connect(db_path)
        conn.execute("DROP TABLE listening_events")
        conn.commit()
        conn.close()

        assert job_analyze_all_users(db_path=db_path, config=CONFIG)["status"] == "error"


class TestDispatcher:
    def test_submit(self, db_path, recent_events) -> None:
        with AnalysisDispatcher(db_path=db_path, config=CONFIG, max_workers=2) as dispatcher:
            futures = [dispatcher.submit(uid) for uid in (1, 2)]
            results = [f.result(timeout=30) for f in futures]

        assert [r["status"] for r in results] == ["success", "success"]
        assert results[0]["result"]["patterns_written"] == 2
        assert dispatcher.stats()["completed"] == 2
        assert dispatcher.stats()["pending"] == 0

    def test_run_sync(self, db_path, recent_events) -> None:
        dispatcher = AnalysisDispatcher(db_path=db_path, config=CONFIG, max_workers=1)
        try:
            result = dispatcher.run_sync(2)
        finally:
            dispatcher.shutdown()
        assert result["result"]["events_read"] == 3

    def test_max_workers_from_env(self, db_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MOODLENS_MAX_WORKERS", "3")
        dispatcher = AnalysisDispatcher(db_path=db_path, config=CONFIG)
        dispatcher.shutdown()
        assert dispatcher.max_workers == 3


class TestEntryPoints:
    def test_unknown_job(self, db_path) -> None:
        assert cloud_run_handler("vacuum", db_path=db_path)["status"] == "error"

    def test_analyze_needs_user(self, db_path) -> None:
        assert cloud_run_handler("analyze", db_path=db_path, config=CONFIG)["status"] == "error"

    def test_main_success(self, db_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("JOB_TYPE", raising=False)
        monkeypatch.delenv("USER_ID", raising=False)
        assert main(["analyze", "--user-id", "1", "--db", str(db_path), "--window-days", "30"]) == 0

    def test_main_user_from_env(self, db_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("JOB_TYPE", raising=False)
        monkeypatch.setenv("USER_ID", "9")
        assert main(["analyze", "--db", str(db_path)]) == 0

    def test_main_error_exit_code(self, db_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("JOB_TYPE", raising=False)
        monkeypatch.delenv("USER_ID", raising=False)
        assert main(["analyze", "--db", str(db_path)]) == 1
