from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

DEFAULT_REPLAY_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class ModelEntry:
    name: str
    model: str
    enabled: bool = True


@dataclass(frozen=True)
class ProviderEntry:
    key: str
    display_name: str
    api_key: str
    base_url: str
    enabled: bool
    models: tuple[ModelEntry, ...] = ()


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 10081


@dataclass(frozen=True)
class AppConfig:
    server: ServerConfig
    database_path: str
    replay_timeout_seconds: float
    log_level: str
    log_consumers: tuple[dict, ...] | None
    # Registration order is the order of the "Providers" object in config.json.
    providers: Mapping[str, ProviderEntry] = field(default_factory=lambda: MappingProxyType({}))


def load_json_config(path: str | None = None) -> dict:
    config_path = Path(path or os.environ.get("LLM_TRACE_CONFIG") or Path.cwd() / "config.json")
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def _parse_models(raw: Any) -> tuple[ModelEntry, ...]:
    if isinstance(raw, dict):
        models = []
        for alias, value in raw.items():
            if isinstance(value, dict):
                models.append(ModelEntry(
                    name=str(value.get("Name", alias)),
                    model=str(value.get("Model", alias)),
                    enabled=_to_bool(value.get("Enabled", True), default=True),
                ))
            else:
                models.append(ModelEntry(name=str(alias), model=str(value)))
        return tuple(models)
    if isinstance(raw, list):
        return tuple(ModelEntry(name=str(m), model=str(m)) for m in raw)
    return ()


def _parse_provider(key: str, raw: dict, environ: Mapping[str, str]) -> ProviderEntry:
    api_key = str(raw.get("ApiKey", "") or "").strip()
    if not api_key:
        env_var = str(raw.get("ApiKeyEnv", "") or f"{key.upper()}_API_KEY")
        api_key = environ.get(env_var, "").strip()
    return ProviderEntry(
        key=key,
        display_name=str(raw.get("Name", "") or key),
        api_key=api_key,
        base_url=str(raw.get("BaseUrl", "") or "").strip(),
        enabled=_to_bool(raw.get("Enabled", True), default=True),
        models=_parse_models(raw.get("Models")),
    )


def parse_app_config(config: dict, environ: Mapping[str, str] | None = None) -> AppConfig:
    environ = os.environ if environ is None else environ
    server = config.get("Server", {})
    providers = {
        str(key): _parse_provider(str(key), raw or {}, environ)
        for key, raw in config.get("Providers", {}).items()
    }
    consumers = config.get("LogConsumers")
    return AppConfig(
        server=ServerConfig(
            host=str(server.get("Host", "0.0.0.0")),
            port=int(server.get("Port", 10081)),
        ),
        database_path=str(config.get("DatabasePath", "./data/llmtrace.db")),
        replay_timeout_seconds=float(config.get("ReplayTimeoutSeconds", DEFAULT_REPLAY_TIMEOUT_SECONDS)),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=tuple(consumers) if consumers is not None else None,
        providers=MappingProxyType(providers),
    )
