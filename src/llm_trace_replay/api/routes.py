"""HTTP routes for trace capture, browsing and replay.

Every response uses the envelope ``{success, data?, message?}``; paginated
lists carry ``{data, total, page, size, total_pages}`` inside ``data``.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, Request

from llm_trace_replay.api.schemas import (
    CreateReplaySessionBody,
    ReplayBody,
    ReplayDebugBody,
    TraceBody,
    UpdateReplaySessionBody,
)
from llm_trace_replay.bootstrap import AppRuntime
from llm_trace_replay.errors import NotFoundError

router = APIRouter(prefix="/api")


def envelope(data: Any = None, message: str | None = None, *, success: bool = True) -> dict[str, Any]:
    body: dict[str, Any] = {"success": success}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body


def get_runtime(request: Request) -> AppRuntime:
    return request.app.state.runtime


@router.post("/trace")
def submit_trace(body: TraceBody, runtime: AppRuntime = Depends(get_runtime)):
    record = runtime.recorder.save_trace(
        body.session_id,
        body.turn_number,
        body.request,
        body.response,
        body.status,
        body.error_message,
        body.metadata,
    )
    return envelope({"id": record.id}, "Trace data saved successfully")


@router.get("/sessions")
def list_sessions(page: int | None = None, size: int | None = None, runtime: AppRuntime = Depends(get_runtime)):
    return envelope(runtime.sessions.list_sessions(page, size).to_dict())


@router.get("/sessions/{session_id}/records")
def list_session_records(
    session_id: str,
    page: int | None = None,
    size: int | None = None,
    runtime: AppRuntime = Depends(get_runtime),
):
    return envelope(runtime.sessions.list_session_records(session_id, page, size).to_dict())


@router.post("/records/{record_id}/replay")
async def replay_record(record_id: str, body: ReplayBody, runtime: AppRuntime = Depends(get_runtime)):
    if await asyncio.to_thread(runtime.sessions.get_record, record_id) is None:
        raise NotFoundError("Record", record_id)
    record = await runtime.engine.execute_replay(
        body.session_id,
        body.turn_number,
        body.request,
        body.provider,
        body.model,
    )
    return envelope(record.to_dict())


@router.delete("/records/{record_id}")
def delete_record(record_id: str, runtime: AppRuntime = Depends(get_runtime)):
    runtime.sessions.delete_record(record_id)
    return envelope(message="Record deleted successfully")


@router.get("/providers")
def list_providers(runtime: AppRuntime = Depends(get_runtime)):
    return envelope(runtime.registry.list_providers())


@router.post("/replay-sessions")
def create_replay_session(body: CreateReplaySessionBody, runtime: AppRuntime = Depends(get_runtime)):
    session = runtime.replay_sessions.create_replay_session(
        body.original_session_id,
        body.start_turn_number,
        body.name,
    )
    return envelope(session.to_dict())


@router.get("/replay-sessions")
def list_replay_sessions(
    page: int | None = None,
    size: int | None = None,
    runtime: AppRuntime = Depends(get_runtime),
):
    return envelope(runtime.sessions.list_replay_sessions(page, size).to_dict())


@router.get("/replay-sessions/{replay_session_id}")
def get_replay_session(replay_session_id: str, runtime: AppRuntime = Depends(get_runtime)):
    session = runtime.sessions.get_replay_session(replay_session_id)
    if session is None:
        raise NotFoundError("Replay session", replay_session_id)
    return envelope(session.to_dict())


@router.patch("/replay-sessions/{replay_session_id}")
def update_replay_session(
    replay_session_id: str,
    body: UpdateReplaySessionBody,
    runtime: AppRuntime = Depends(get_runtime),
):
    runtime.replay_sessions.update_replay_session_status(replay_session_id, body.status)
    return envelope(message="Replay session updated successfully")


@router.get("/replay-sessions/{replay_session_id}/records")
def list_replay_records(
    replay_session_id: str,
    page: int | None = None,
    size: int | None = None,
    runtime: AppRuntime = Depends(get_runtime),
):
    return envelope(runtime.sessions.list_replay_records(replay_session_id, page, size).to_dict())


@router.post("/replay-debug")
async def replay_debug(body: ReplayDebugBody, runtime: AppRuntime = Depends(get_runtime)):
    record = await runtime.engine.execute_replay_debug(
        body.replay_session_id,
        body.turn_number,
        body.request,
        body.provider,
        body.model,
        body.config,
    )
    return envelope(record.to_dict())


@router.delete("/replay-sessions/{replay_session_id}")
def delete_replay_session(replay_session_id: str, runtime: AppRuntime = Depends(get_runtime)):
    runtime.replay_sessions.delete_replay_session(replay_session_id)
    return envelope(message="Replay session deleted successfully")
