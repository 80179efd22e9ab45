from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

from loguru import logger

from llm_trace_replay.app_config import AppConfig
from llm_trace_replay.chat_client import ChatClient, build_chat_request
from llm_trace_replay.debug_config import DebugConfig
from llm_trace_replay.errors import (
    ErrorRecordingError,
    NotFoundError,
    ProviderCallError,
    ProviderConfigError,
    TraceReplayError,
)
from llm_trace_replay.models import ReplayRecord, TraceRecord
from llm_trace_replay.provider_registry import ProviderRegistry, ResolvedProvider
from llm_trace_replay.recorder import TraceRecorder
from llm_trace_replay.session_store import SessionStore


class ReplayEngine:
    """Re-executes stored requests against a resolved provider and records the outcome.

    One call to ``execute_replay`` or ``execute_replay_debug`` issues exactly one
    outbound request; failures are recorded and raised, never retried.
    """

    def __init__(
        self,
        config: AppConfig,
        registry: ProviderRegistry,
        recorder: TraceRecorder,
        sessions: SessionStore,
        chat_client: ChatClient | None = None,
    ):
        self._timeout_seconds = config.replay_timeout_seconds
        self._registry = registry
        self._recorder = recorder
        self._sessions = sessions
        self._chat = chat_client or ChatClient()

    async def execute_replay(
        self,
        session_id: str,
        turn_number: int,
        request: Any,
        provider: str,
        model: str = "",
    ) -> TraceRecord:
        resolved = self._resolve(provider)
        payload = build_chat_request(request, model)

        started = time.perf_counter()
        try:
            response = await self._chat.create_chat_completion(provider, resolved, payload, self._timeout_seconds)
        except ProviderCallError as ex:
            logger.warning(
                f"Replay failed: session={session_id}, turn={turn_number}, provider={provider}, "
                f"model={payload['model']}, duration={time.perf_counter() - started:.2f}s, error={ex}"
            )
            await self._record_failure(
                ex,
                lambda: self._recorder.save_trace(
                    session_id, turn_number, request, None, "error", str(ex)
                ),
            )
            raise

        record = await asyncio.to_thread(
            self._recorder.save_trace, session_id, turn_number, request, response, "success"
        )
        logger.info(
            f"Replay finished: session={session_id}, turn={turn_number}, provider={provider}, "
            f"model={payload['model']}, duration={time.perf_counter() - started:.2f}s"
        )
        return record

    async def execute_replay_debug(
        self,
        replay_session_id: str,
        turn_number: int,
        request: Any,
        provider: str,
        model: str = "",
        debug_config: Any = None,
    ) -> ReplayRecord:
        if await asyncio.to_thread(self._sessions.get_replay_session, replay_session_id) is None:
            raise NotFoundError("Replay session", replay_session_id)

        resolved = self._resolve(provider)
        overrides = DebugConfig.from_payload(debug_config)
        payload = overrides.apply(build_chat_request(request, model))
        provider_key = resolved.entry.key if resolved.entry is not None else provider
        used_model = payload["model"]
        used_config = overrides.to_dict() if debug_config is not None else None

        started = time.perf_counter()
        try:
            response = await self._chat.create_chat_completion(provider, resolved, payload, self._timeout_seconds)
        except ProviderCallError as ex:
            logger.warning(
                f"Replay debug failed: replay_session={replay_session_id}, turn={turn_number}, "
                f"provider={provider_key}, model={used_model}, "
                f"duration={time.perf_counter() - started:.2f}s, error={ex}"
            )
            await self._record_failure(
                ex,
                lambda: self._recorder.save_replay_record(
                    replay_session_id, turn_number, request, None, "error", str(ex),
                    provider_key, used_model, used_config,
                ),
            )
            raise

        record = await asyncio.to_thread(
            self._recorder.save_replay_record,
            replay_session_id,
            turn_number,
            request,
            response,
            "success",
            "",
            provider_key,
            used_model,
            used_config,
        )
        logger.info(
            f"Replay debug finished: replay_session={replay_session_id}, turn={turn_number}, "
            f"provider={provider_key}, model={used_model}, overrides={used_config}, "
            f"duration={time.perf_counter() - started:.2f}s"
        )
        return record

    def _resolve(self, provider: str) -> ResolvedProvider:
        resolved = self._registry.resolve(provider or "")
        if not resolved.found or not resolved.api_key:
            raise ProviderConfigError(provider)
        return resolved

    async def _record_failure(self, provider_error: ProviderCallError, save: Callable[[], object]) -> None:
        try:
            await asyncio.to_thread(save)
        except TraceReplayError as ex:
            logger.error(f"Failed to record error outcome: {ex} (provider error: {provider_error})")
            raise ErrorRecordingError(f"failed to record error outcome: {ex}", provider_error) from ex
