import asyncio
import json

import httpx
import openai

from llm_trace_replay.errors import (
    ErrorRecordingError,
    NotFoundError,
    ProviderCallError,
    ProviderConfigError,
    ValidationError,
)
from llm_trace_replay.provider_registry import ProviderRegistry
from llm_trace_replay.replay_engine import ReplayEngine
from tests.base import StoreTestCase, make_config
from tests.fakes import COMPLETION, FakeSdk

REQUEST = {"model": "gpt-4o", "messages": [{"role": "user", "content": "hi"}], "temperature": 1.0}


def _connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=httpx.Request("POST", "https://llm.example/v1/chat/completions"))


class ReplayEngineTests(StoreTestCase):
    def _engine(self, sdk: FakeSdk) -> ReplayEngine:
        config = make_config(ReplayTimeoutSeconds=5)
        return ReplayEngine(
            config,
            ProviderRegistry.from_config(config),
            self._recorder,
            self._sessions,
            chat_client=sdk.chat_client(),
        )

    def _block_inserts(self, table: str) -> None:
        self._store.execute(
            f"""
            CREATE TRIGGER block_{table}_insert BEFORE INSERT ON {table}
            BEGIN SELECT RAISE(ABORT, 'disk full'); END
            """
        )

    def _replay_session(self) -> str:
        self._recorder.save_trace("s1", 1, REQUEST, COMPLETION)
        return self._replay_sessions.create_replay_session("s1", 1).id

    def test_replay_success_records_response(self) -> None:
        sdk = FakeSdk()
        record = asyncio.run(self._engine(sdk).execute_replay("s1", 2, REQUEST, "OpenAI", "gpt-4o-mini"))

        self.assertEqual("success", record.status)
        self.assertEqual(COMPLETION, json.loads(record.response))
        self.assertEqual(REQUEST, json.loads(record.request))
        self.assertEqual("gpt-4o-mini", sdk.calls[0]["model"])
        self.assertEqual([("sk-openai", "https://api.openai.example/v1", 5.0)], sdk.clients)
        self.assertEqual(1, self.count("records", "session_id = 's1'"))

    def test_replay_uses_request_model_when_none_given(self) -> None:
        sdk = FakeSdk()
        asyncio.run(self._engine(sdk).execute_replay("s1", 1, REQUEST, "openai"))
        self.assertEqual("gpt-4o", sdk.calls[0]["model"])

    def test_provider_failure_records_one_error_and_raises(self) -> None:
        sdk = FakeSdk(error=_connection_error())

        with self.assertRaises(ProviderCallError):
            asyncio.run(self._engine(sdk).execute_replay("s1", 1, REQUEST, "openai"))

        self.assertEqual(1, len(sdk.calls))
        rows = self._store.fetchall("SELECT status, response, error_msg FROM records")
        self.assertEqual(1, len(rows))
        self.assertEqual("error", rows[0]["status"])
        self.assertEqual("", rows[0]["response"])
        self.assertIn("Connection error", rows[0]["error_msg"])

    def test_timed_out_call_is_recorded_as_error(self) -> None:
        sdk = FakeSdk(delay=1.0)
        config = make_config(ReplayTimeoutSeconds=0.01)
        engine = ReplayEngine(
            config,
            ProviderRegistry.from_config(config),
            self._recorder,
            self._sessions,
            chat_client=sdk.chat_client(),
        )

        with self.assertRaises(ProviderCallError):
            asyncio.run(engine.execute_replay("s1", 1, REQUEST, "openai"))

        rows = self._store.fetchall("SELECT status, error_msg FROM records")
        self.assertEqual(1, len(rows))
        self.assertEqual("error", rows[0]["status"])
        self.assertIn("timed out", rows[0]["error_msg"])
        self.assertEqual(1, sdk.closed)

    def test_failure_to_record_error_reports_both(self) -> None:
        self._block_inserts("records")
        sdk = FakeSdk(error=_connection_error())

        with self.assertRaises(ErrorRecordingError) as ctx:
            asyncio.run(self._engine(sdk).execute_replay("s1", 1, REQUEST, "openai"))

        self.assertIsInstance(ctx.exception.provider_error, ProviderCallError)
        self.assertIn("disk full", str(ctx.exception))
        self.assertEqual(1, len(sdk.calls))
        self.assertEqual(0, self.count("sessions"))

    def test_unknown_provider_makes_no_call(self) -> None:
        sdk = FakeSdk()
        for provider in ("mistral", "", "nokey"):
            with self.assertRaises(ProviderConfigError, msg=provider):
                asyncio.run(self._engine(sdk).execute_replay("s1", 1, REQUEST, provider))
        self.assertEqual([], sdk.calls)
        self.assertEqual(0, self.count("records"))

    def test_invalid_request_makes_no_call(self) -> None:
        sdk = FakeSdk()
        with self.assertRaises(ValidationError):
            asyncio.run(self._engine(sdk).execute_replay("s1", 1, "plain text", "openai", "gpt-4o"))
        self.assertEqual([], sdk.calls)

    def test_debug_overrides_reach_call_and_record(self) -> None:
        replay_session_id = self._replay_session()
        sdk = FakeSdk()

        record = asyncio.run(self._engine(sdk).execute_replay_debug(
            replay_session_id, 1, REQUEST, "OpenAI", "", {"temperature": 0.2, "max_tokens": "oops"}
        ))

        self.assertEqual(0.2, sdk.calls[0]["temperature"])
        self.assertNotIn("max_tokens", sdk.calls[0])
        self.assertEqual("success", record.status)
        self.assertEqual("openai", record.provider)
        self.assertEqual("gpt-4o", record.model)
        self.assertEqual({"temperature": 0.2}, json.loads(record.config))
        self.assertEqual(1.0, json.loads(record.request)["temperature"])

    def test_debug_without_config_stores_empty_config(self) -> None:
        replay_session_id = self._replay_session()
        record = asyncio.run(self._engine(FakeSdk()).execute_replay_debug(
            replay_session_id, 1, REQUEST, "openai", "gpt-4o-mini"
        ))
        self.assertEqual("", record.config)
        self.assertEqual("gpt-4o-mini", record.model)

    def test_debug_failure_records_error(self) -> None:
        replay_session_id = self._replay_session()
        sdk = FakeSdk(error=_connection_error())

        with self.assertRaises(ProviderCallError):
            asyncio.run(self._engine(sdk).execute_replay_debug(replay_session_id, 1, REQUEST, "openai"))

        rows = self._store.fetchall("SELECT status, provider, model FROM replay_records")
        self.assertEqual([("error", "openai", "gpt-4o")], [tuple(r) for r in rows])

    def test_debug_failure_to_record_error_reports_both(self) -> None:
        replay_session_id = self._replay_session()
        self._block_inserts("replay_records")
        sdk = FakeSdk(error=_connection_error())

        with self.assertRaises(ErrorRecordingError) as ctx:
            asyncio.run(self._engine(sdk).execute_replay_debug(replay_session_id, 1, REQUEST, "openai"))

        self.assertIn("Connection error", str(ctx.exception.provider_error))

    def test_debug_unknown_replay_session(self) -> None:
        sdk = FakeSdk()
        with self.assertRaises(NotFoundError):
            asyncio.run(self._engine(sdk).execute_replay_debug("missing", 1, REQUEST, "openai"))
        self.assertEqual([], sdk.calls)
