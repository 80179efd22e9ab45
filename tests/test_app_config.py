import json
import shutil
import unittest
from dataclasses import FrozenInstanceError
from uuid import uuid4

from llm_trace_replay.app_config import (
    DEFAULT_REPLAY_TIMEOUT_SECONDS,
    _to_bool,
    load_json_config,
    parse_app_config,
)
from tests.base import PROJECT_ROOT


class ParseAppConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        config = parse_app_config({}, environ={})
        self.assertEqual("0.0.0.0", config.server.host)
        self.assertEqual(10081, config.server.port)
        self.assertEqual("./data/llmtrace.db", config.database_path)
        self.assertEqual(DEFAULT_REPLAY_TIMEOUT_SECONDS, config.replay_timeout_seconds)
        self.assertEqual(60.0, config.replay_timeout_seconds)
        self.assertEqual("INFO", config.log_level)
        self.assertIsNone(config.log_consumers)
        self.assertEqual({}, dict(config.providers))

    def test_overrides(self) -> None:
        config = parse_app_config(
            {
                "Server": {"Host": "127.0.0.1", "Port": "9000"},
                "DatabasePath": ":memory:",
                "ReplayTimeoutSeconds": 30,
                "LogLevel": "DEBUG",
                "LogConsumers": [{"type": "console"}],
            },
            environ={},
        )
        self.assertEqual("127.0.0.1", config.server.host)
        self.assertEqual(9000, config.server.port)
        self.assertEqual(30.0, config.replay_timeout_seconds)
        self.assertEqual(({"type": "console"},), config.log_consumers)

    def test_provider_key_from_environment(self) -> None:
        config = parse_app_config(
            {"Providers": {
                "openai": {"Name": "OpenAI"},
                "azure": {"ApiKeyEnv": "AZURE_OPENAI_KEY", "BaseUrl": " https://azure.example/v1 "},
                "literal": {"ApiKey": "sk-literal", "ApiKeyEnv": "IGNORED"},
            }},
            environ={"OPENAI_API_KEY": "sk-env", "AZURE_OPENAI_KEY": "az-key", "IGNORED": "nope"},
        )
        self.assertEqual("sk-env", config.providers["openai"].api_key)
        self.assertEqual("az-key", config.providers["azure"].api_key)
        self.assertEqual("https://azure.example/v1", config.providers["azure"].base_url)
        self.assertEqual("azure", config.providers["azure"].display_name)
        self.assertEqual("sk-literal", config.providers["literal"].api_key)

    def test_provider_order_and_enabled_flag(self) -> None:
        config = parse_app_config(
            {"Providers": {"b": {"Enabled": "off"}, "a": {}, "c": {"Enabled": "yes"}}},
            environ={},
        )
        self.assertEqual(["b", "a", "c"], list(config.providers))
        self.assertFalse(config.providers["b"].enabled)
        self.assertTrue(config.providers["a"].enabled)
        self.assertTrue(config.providers["c"].enabled)

    def test_model_catalog_mapping_with_details(self) -> None:
        config = parse_app_config(
            {"Providers": {"x": {"Models": {"fast": {"Model": "x-small", "Enabled": False}}}}},
            environ={},
        )
        model = config.providers["x"].models[0]
        self.assertEqual(("fast", "x-small", False), (model.name, model.model, model.enabled))

    def test_config_is_immutable(self) -> None:
        config = parse_app_config({"Providers": {"a": {}}}, environ={})
        with self.assertRaises(FrozenInstanceError):
            config.database_path = "other.db"
        with self.assertRaises(TypeError):
            config.providers["b"] = config.providers["a"]

    def test_to_bool(self) -> None:
        self.assertTrue(_to_bool("on"))
        self.assertFalse(_to_bool("0", default=True))
        self.assertTrue(_to_bool(None, default=True))


class LoadJsonConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp_dir = PROJECT_ROOT / ".test-artifacts" / f"config-{uuid4().hex}"
        self._tmp_dir.mkdir(parents=True, exist_ok=True)

    def tearDown(self) -> None:
        shutil.rmtree(self._tmp_dir, ignore_errors=True)

    def test_reads_explicit_path(self) -> None:
        path = self._tmp_dir / "config.json"
        path.write_text(json.dumps({"LogLevel": "DEBUG"}), encoding="utf-8")
        self.assertEqual({"LogLevel": "DEBUG"}, load_json_config(str(path)))

    def test_missing_file_is_empty(self) -> None:
        self.assertEqual({}, load_json_config(str(self._tmp_dir / "absent.json")))
