from __future__ import annotations

import json
from typing import Any
from uuid import uuid4

from loguru import logger

from llm_trace_replay.errors import NotFoundError, PersistenceError, ValidationError
from llm_trace_replay.models import RECORD_STATUSES, ReplayRecord, TraceRecord, utc_now
from llm_trace_replay.store import TraceStore


def to_json_text(value: Any) -> str:
    """Canonical JSON text for stored payloads; ``None`` is stored as an empty string."""
    if value is None:
        return ""
    try:
        text = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as ex:
        raise PersistenceError(f"failed to serialize payload: {ex}") from ex
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        # Lone surrogates cannot be stored as UTF-8; \u escapes keep them intact.
        return json.dumps(value, separators=(",", ":"))
    return text


def default_session_name(iso_timestamp: str) -> str:
    return f"Session {iso_timestamp[:19].replace('T', ' ')}"


def _check_status(status: str) -> None:
    if status not in RECORD_STATUSES:
        raise ValidationError(f"Invalid status {status!r}; expected one of {', '.join(RECORD_STATUSES)}")


class TraceRecorder:
    def __init__(self, store: TraceStore):
        self._store = store

    def save_trace(
        self,
        session_id: str,
        turn_number: int,
        request: Any,
        response: Any = None,
        status: str = "success",
        error_message: str = "",
        metadata: Any = None,
    ) -> TraceRecord:
        """Persist one captured turn, creating its session on first sight.

        Session creation and record insert commit together or not at all.
        """
        if not session_id:
            raise ValidationError("session_id is required")
        _check_status(status)

        with self._store.transaction() as tx:
            now = utc_now()
            # INSERT OR IGNORE keeps concurrent first writes to one id from duplicating the row.
            cur = tx.execute(
                "INSERT OR IGNORE INTO sessions (id, name, created_at) VALUES (?, ?, ?)",
                (session_id, default_session_name(now), now),
            )
            if cur.rowcount:
                logger.debug(f"Created session {session_id}")
            record = TraceRecord(
                id=str(uuid4()),
                session_id=session_id,
                turn_number=turn_number,
                request=to_json_text(request),
                response=to_json_text(response),
                status=status,
                error_msg=error_message or "",
                metadata=to_json_text(metadata),
                created_at=now,
            )
            tx.execute(
                """
                INSERT INTO records (id, session_id, turn_number, request, response, status, error_msg, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.session_id,
                    record.turn_number,
                    record.request,
                    record.response,
                    record.status,
                    record.error_msg,
                    record.metadata,
                    record.created_at,
                ),
            )
        return record

    def save_replay_record(
        self,
        replay_session_id: str,
        turn_number: int,
        request: Any,
        response: Any,
        status: str,
        error_message: str,
        provider: str,
        model: str,
        config: Any,
    ) -> ReplayRecord:
        _check_status(status)
        with self._store.transaction() as tx:
            exists = tx.fetchone("SELECT 1 FROM replay_sessions WHERE id = ? LIMIT 1", (replay_session_id,))
            if exists is None:
                raise NotFoundError("Replay session", replay_session_id)
            record = ReplayRecord(
                id=str(uuid4()),
                replay_session_id=replay_session_id,
                turn_number=turn_number,
                request=to_json_text(request),
                response=to_json_text(response),
                status=status,
                error_msg=error_message or "",
                provider=provider,
                model=model,
                config=to_json_text(config),
                created_at=utc_now(),
            )
            tx.execute(
                """
                INSERT INTO replay_records (
                    id, replay_session_id, turn_number, request, response, status,
                    error_msg, provider, model, config, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.replay_session_id,
                    record.turn_number,
                    record.request,
                    record.response,
                    record.status,
                    record.error_msg,
                    record.provider,
                    record.model,
                    record.config,
                    record.created_at,
                ),
            )
        return record
