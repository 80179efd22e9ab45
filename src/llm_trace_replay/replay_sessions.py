from __future__ import annotations

from uuid import uuid4

from loguru import logger

from llm_trace_replay.errors import NotFoundError, ValidationError
from llm_trace_replay.models import REPLAY_SESSION_STATUSES, ReplaySession, utc_now
from llm_trace_replay.store import TraceStore


class ReplaySessionManager:
    """Lifecycle of forked debug sessions anchored at a turn of an original session."""

    def __init__(self, store: TraceStore):
        self._store = store

    def create_replay_session(
        self,
        original_session_id: str,
        start_turn_number: int,
        name: str | None = None,
    ) -> ReplaySession:
        with self._store.transaction() as tx:
            row = tx.fetchone("SELECT name FROM sessions WHERE id = ? LIMIT 1", (original_session_id,))
            if row is None:
                raise NotFoundError("Session", original_session_id)

            now = utc_now()
            session = ReplaySession(
                id=str(uuid4()),
                name=(name or "").strip() or f"debug-{row['name']}-turn{start_turn_number}",
                original_session_id=original_session_id,
                start_turn_number=start_turn_number,
                status="active",
                created_at=now,
                updated_at=now,
            )
            tx.execute(
                """
                INSERT INTO replay_sessions (id, name, original_session_id, start_turn_number, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.id,
                    session.name,
                    session.original_session_id,
                    session.start_turn_number,
                    session.status,
                    session.created_at,
                    session.updated_at,
                ),
            )
        logger.info(f"Created replay session {session.id} from {original_session_id} at turn {start_turn_number}")
        return session

    def update_replay_session_status(self, replay_session_id: str, status: str) -> None:
        if status not in REPLAY_SESSION_STATUSES:
            raise ValidationError(
                f"Invalid replay session status {status!r}; expected one of {', '.join(REPLAY_SESSION_STATUSES)}"
            )
        cur = self._store.execute(
            "UPDATE replay_sessions SET status = ?, updated_at = ? WHERE id = ?",
            (status, utc_now(), replay_session_id),
        )
        if cur.rowcount == 0:
            raise NotFoundError("Replay session", replay_session_id)

    def delete_replay_session(self, replay_session_id: str) -> int:
        """Delete a replay session and all of its replay records atomically.

        Returns the number of replay records removed.
        """
        with self._store.transaction() as tx:
            deleted = tx.execute(
                "DELETE FROM replay_records WHERE replay_session_id = ?",
                (replay_session_id,),
            ).rowcount
            cur = tx.execute("DELETE FROM replay_sessions WHERE id = ?", (replay_session_id,))
            if cur.rowcount == 0:
                raise NotFoundError("Replay session", replay_session_id)
        logger.info(f"Deleted replay session {replay_session_id} ({deleted} records)")
        return deleted
