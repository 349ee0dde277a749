"""
Database Adapter

Thin wrapper over a SQLite connection used by the mood store. It keeps the
result of the last statement for fetch/rowcount chaining and owns the
commit/rollback boundary used by the pipeline, so one run is one
transaction.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence


def get_connection(db_path: str | Path, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open a SQLite connection configured for the mood store.

    Rows come back as ``sqlite3.Row`` so callers can index by column name.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    return conn


class DBAdapter:
    """
    Statement and transaction helper over one sqlite3 connection.

    Usage:
        adapter = DBAdapter(conn)
        rows = adapter.execute("SELECT * FROM mood_daily WHERE user_id = ?", (7,)).fetchall()
        with adapter.transaction():
            adapter.execute("INSERT INTO ...", params)
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._result: Optional[sqlite3.Cursor] = None
        self._in_transaction = False

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def execute(self, sql: str, params: Sequence[Any] = ()) -> 'DBAdapter':
        """Execute one statement; returns self so fetch calls can chain."""
        self._result = self.conn.execute(sql, tuple(params))
        return self

    def executemany(self, sql: str, params_list: list) -> 'DBAdapter':
        self._result = self.conn.executemany(sql, params_list)
        return self

    def fetchall(self) -> list:
        if self._result is None:
            return []
        return self._result.fetchall()

    @property
    def rowcount(self) -> int:
        if self._result is None:
            return 0
        return self._result.rowcount

    def commit(self):
        self.conn.commit()

    def rollback(self):
        self.conn.rollback()

    @contextmanager
    def transaction(self) -> Iterator['DBAdapter']:
        """Commit everything done inside the block, or nothing.

        Nested use joins the outer transaction.
        """
        if self._in_transaction:
            yield self
            return
        self._in_transaction = True
        try:
            yield self
            self.commit()
        except BaseException:
            self.rollback()
            raise
        finally:
            self._in_transaction = False


def wrap_connection(conn: Any) -> DBAdapter:
    """Wrap a raw connection, passing an existing adapter through untouched."""
    if isinstance(conn, DBAdapter):
        return conn
    return DBAdapter(conn)
