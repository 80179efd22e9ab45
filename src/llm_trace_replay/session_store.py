from __future__ import annotations

from llm_trace_replay.errors import NotFoundError
from llm_trace_replay.models import (
    RECORD_PAGE_SIZE,
    SESSION_PAGE_SIZE,
    Page,
    ReplayRecord,
    ReplaySession,
    Session,
    TraceRecord,
    normalize_page,
)
from llm_trace_replay.store import TraceStore


class SessionStore:
    """Paginated reads and deletes over sessions, records and replay data."""

    def __init__(self, store: TraceStore):
        self._store = store

    def list_sessions(self, page: int | None = None, size: int | None = None) -> Page:
        page, size = normalize_page(page, size, default_size=SESSION_PAGE_SIZE)
        total = self._count("SELECT COUNT(*) AS c FROM sessions")
        rows = self._store.fetchall(
            "SELECT * FROM sessions ORDER BY created_at DESC, id ASC LIMIT ? OFFSET ?",
            (size, (page - 1) * size),
        )
        return Page([Session.from_row(r) for r in rows], total=total, page=page, size=size)

    def get_session(self, session_id: str) -> Session | None:
        row = self._store.fetchone("SELECT * FROM sessions WHERE id = ? LIMIT 1", (session_id,))
        return Session.from_row(row) if row is not None else None

    def list_session_records(self, session_id: str, page: int | None = None, size: int | None = None) -> Page:
        page, size = normalize_page(page, size, default_size=RECORD_PAGE_SIZE)
        total = self._count("SELECT COUNT(*) AS c FROM records WHERE session_id = ?", (session_id,))
        rows = self._store.fetchall(
            """
            SELECT * FROM records
            WHERE session_id = ?
            ORDER BY turn_number ASC, created_at ASC
            LIMIT ? OFFSET ?
            """,
            (session_id, size, (page - 1) * size),
        )
        return Page([TraceRecord.from_row(r) for r in rows], total=total, page=page, size=size)

    def get_record(self, record_id: str) -> TraceRecord | None:
        row = self._store.fetchone("SELECT * FROM records WHERE id = ? LIMIT 1", (record_id,))
        return TraceRecord.from_row(row) if row is not None else None

    def delete_record(self, record_id: str) -> None:
        cur = self._store.execute("DELETE FROM records WHERE id = ?", (record_id,))
        if cur.rowcount == 0:
            raise NotFoundError("Record", record_id)

    def list_replay_sessions(self, page: int | None = None, size: int | None = None) -> Page:
        page, size = normalize_page(page, size, default_size=SESSION_PAGE_SIZE)
        total = self._count("SELECT COUNT(*) AS c FROM replay_sessions")
        rows = self._store.fetchall(
            "SELECT * FROM replay_sessions ORDER BY created_at DESC, id ASC LIMIT ? OFFSET ?",
            (size, (page - 1) * size),
        )
        return Page([ReplaySession.from_row(r) for r in rows], total=total, page=page, size=size)

    def get_replay_session(self, replay_session_id: str) -> ReplaySession | None:
        row = self._store.fetchone("SELECT * FROM replay_sessions WHERE id = ? LIMIT 1", (replay_session_id,))
        return ReplaySession.from_row(row) if row is not None else None

    def list_replay_records(
        self,
        replay_session_id: str,
        page: int | None = None,
        size: int | None = None,
    ) -> Page:
        page, size = normalize_page(page, size, default_size=RECORD_PAGE_SIZE)
        total = self._count(
            "SELECT COUNT(*) AS c FROM replay_records WHERE replay_session_id = ?",
            (replay_session_id,),
        )
        rows = self._store.fetchall(
            """
            SELECT * FROM replay_records
            WHERE replay_session_id = ?
            ORDER BY turn_number ASC, created_at ASC
            LIMIT ? OFFSET ?
            """,
            (replay_session_id, size, (page - 1) * size),
        )
        return Page([ReplayRecord.from_row(r) for r in rows], total=total, page=page, size=size)

    def _count(self, query: str, params: tuple = ()) -> int:
        row = self._store.fetchone(query, params)
        return int(row["c"]) if row is not None else 0
