from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

from llm_trace_replay.errors import PersistenceError


@contextmanager
def _wrap_errors() -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as ex:
        raise PersistenceError(str(ex)) from ex


class TraceStore:
    """sqlite-backed persistence for sessions, records and replay data.

    One connection is shared by every request thread. All access goes through
    a re-entrant lock, and ``transaction()`` holds that lock for the whole unit,
    so two atomic units never interleave.
    """

    def __init__(self, db_path: str):
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db_path = db_path
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode = WAL")
        self._initialize_schema()

    @property
    def db_path(self) -> str:
        return self._db_path

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def execute(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        with self._lock, _wrap_errors():
            return self._conn.execute(query, params)

    def fetchone(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        with self._lock, _wrap_errors():
            return self._conn.execute(query, params).fetchone()

    def fetchall(self, query: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._lock, _wrap_errors():
            return self._conn.execute(query, params).fetchall()

    @contextmanager
    def transaction(self) -> Iterator[TraceStore]:
        """Run a block as one atomic unit.

        Any exception rolls the unit back and propagates; ``sqlite3.Error`` is
        re-raised as ``PersistenceError``.
        """
        with self._lock:
            with _wrap_errors():
                self._conn.execute("BEGIN IMMEDIATE")
            try:
                with _wrap_errors():
                    yield self
                    self._conn.commit()
            except PersistenceError as ex:
                self._conn.rollback()
                logger.error(f"Transaction rolled back: {ex}")
                raise
            except BaseException:
                self._conn.rollback()
                raise

    def _initialize_schema(self) -> None:
        with self._lock:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS records (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL REFERENCES sessions(id),
                    turn_number INTEGER NOT NULL,
                    request TEXT NOT NULL,
                    response TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL CHECK (status IN ('success', 'error', 'pending')),
                    error_msg TEXT NOT NULL DEFAULT '',
                    metadata TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS replay_sessions (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    original_session_id TEXT NOT NULL REFERENCES sessions(id),
                    start_turn_number INTEGER NOT NULL,
                    status TEXT NOT NULL CHECK (status IN ('active', 'completed')),
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS replay_records (
                    id TEXT PRIMARY KEY,
                    replay_session_id TEXT NOT NULL REFERENCES replay_sessions(id),
                    turn_number INTEGER NOT NULL,
                    request TEXT NOT NULL,
                    response TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL CHECK (status IN ('success', 'error', 'pending')),
                    error_msg TEXT NOT NULL DEFAULT '',
                    provider TEXT NOT NULL DEFAULT '',
                    model TEXT NOT NULL DEFAULT '',
                    config TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_sessions_created
                    ON sessions(created_at);
                CREATE INDEX IF NOT EXISTS idx_records_session_turn
                    ON records(session_id, turn_number, created_at);
                CREATE INDEX IF NOT EXISTS idx_replay_sessions_created
                    ON replay_sessions(created_at);
                CREATE INDEX IF NOT EXISTS idx_replay_records_session_turn
                    ON replay_records(replay_session_id, turn_number, created_at);
                """
            )
