import unittest

from llm_trace_replay.debug_config import DebugConfig


class DebugConfigTests(unittest.TestCase):
    def test_valid_overrides_are_kept(self) -> None:
        config = DebugConfig.from_payload({
            "temperature": 0.2,
            "max_tokens": 256,
            "top_p": 1,
            "frequency_penalty": -0.5,
            "presence_penalty": 0.0,
        })
        self.assertEqual(
            {"temperature": 0.2, "max_tokens": 256, "top_p": 1.0, "frequency_penalty": -0.5, "presence_penalty": 0.0},
            config.to_dict(),
        )

    def test_wrong_types_are_skipped(self) -> None:
        config = DebugConfig.from_payload({"temperature": 0.2, "max_tokens": "oops", "top_p": True})
        self.assertEqual({"temperature": 0.2}, config.to_dict())

    def test_integral_float_max_tokens_accepted(self) -> None:
        self.assertEqual(512, DebugConfig.from_payload({"max_tokens": 512.0}).max_tokens)
        self.assertIsNone(DebugConfig.from_payload({"max_tokens": 12.5}).max_tokens)

    def test_unknown_keys_and_non_dict_ignored(self) -> None:
        self.assertEqual({}, DebugConfig.from_payload({"seed": 7}).to_dict())
        self.assertEqual({}, DebugConfig.from_payload(["temperature", 1]).to_dict())
        self.assertEqual({}, DebugConfig.from_payload(None).to_dict())

    def test_apply_overrides_without_mutating(self) -> None:
        payload = {"model": "gpt-4o", "messages": [], "temperature": 1.0, "max_tokens": 100}
        merged = DebugConfig(temperature=0.3).apply(payload)
        self.assertEqual(0.3, merged["temperature"])
        self.assertEqual(100, merged["max_tokens"])
        self.assertEqual(1.0, payload["temperature"])
