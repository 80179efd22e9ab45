from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

from loguru import logger


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    # JSON numbers such as 256.0 are accepted when integral.
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


_PARSERS = {
    "temperature": _as_float,
    "max_tokens": _as_int,
    "top_p": _as_float,
    "frequency_penalty": _as_float,
    "presence_penalty": _as_float,
}


@dataclass(frozen=True)
class DebugConfig:
    """Optional sampling overrides applied to a debug replay.

    Each field is independent. A field given with the wrong type is dropped
    by ``from_payload`` and never reaches the outbound call.
    """

    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None

    @classmethod
    def from_payload(cls, raw: Any) -> DebugConfig:
        if not isinstance(raw, dict):
            if raw is not None:
                logger.warning(f"Ignoring debug config of type {type(raw).__name__}")
            return cls()
        values: dict[str, Any] = {}
        for name, parse in _PARSERS.items():
            if name not in raw:
                continue
            parsed = parse(raw[name])
            if parsed is None:
                logger.warning(f"Ignoring debug override {name}={raw[name]!r}: not a valid number")
                continue
            values[name] = parsed
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Only the overrides that are set."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    def apply(self, payload: dict[str, Any]) -> dict[str, Any]:
        merged = dict(payload)
        merged.update(self.to_dict())
        return merged
