from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from llm_trace_replay.app_config import AppConfig
from llm_trace_replay.chat_client import ChatClient
from llm_trace_replay.provider_registry import ProviderRegistry
from llm_trace_replay.recorder import TraceRecorder
from llm_trace_replay.replay_engine import ReplayEngine
from llm_trace_replay.replay_sessions import ReplaySessionManager
from llm_trace_replay.session_store import SessionStore
from llm_trace_replay.store import TraceStore


@dataclass
class AppRuntime:
    config: AppConfig
    store: TraceStore
    registry: ProviderRegistry
    recorder: TraceRecorder
    sessions: SessionStore
    replay_sessions: ReplaySessionManager
    engine: ReplayEngine

    def close(self) -> None:
        self.store.close()


def bootstrap_runtime(app: AppConfig, *, chat_client: ChatClient | None = None) -> AppRuntime:
    """Open the store and wire every component against one immutable config."""
    db_path = app.database_path
    if db_path != ":memory:" and not Path(db_path).is_absolute():
        db_path = str(Path.cwd() / db_path)
    store = TraceStore(db_path)

    registry = ProviderRegistry.from_config(app)
    recorder = TraceRecorder(store)
    sessions = SessionStore(store)
    engine = ReplayEngine(app, registry, recorder, sessions, chat_client=chat_client)

    return AppRuntime(
        config=app,
        store=store,
        registry=registry,
        recorder=recorder,
        sessions=sessions,
        replay_sessions=ReplaySessionManager(store),
        engine=engine,
    )
