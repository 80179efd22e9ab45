from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from llm_trace_replay.app_config import AppConfig, ProviderEntry


@dataclass(frozen=True)
class ResolvedProvider:
    api_key: str
    base_url: str
    found: bool
    entry: ProviderEntry | None = None


_NOT_FOUND = ResolvedProvider(api_key="", base_url="", found=False)


class ProviderRegistry:
    """Read-only lookup of configured providers by key or display name."""

    def __init__(self, providers: Mapping[str, ProviderEntry]):
        self._providers = providers

    @classmethod
    def from_config(cls, config: AppConfig) -> ProviderRegistry:
        return cls(config.providers)

    def resolve(self, name: str) -> ResolvedProvider:
        """Find a provider by name.

        Precedence: exact key, then case-insensitive key, then case-insensitive
        display name. Within each tier the first entry in registration order
        wins. A miss returns ``found=False`` rather than raising.
        """
        entry = self._match(name.strip())
        if entry is None:
            return _NOT_FOUND
        return ResolvedProvider(api_key=entry.api_key, base_url=entry.base_url, found=True, entry=entry)

    def _match(self, name: str) -> ProviderEntry | None:
        if not name:
            return None
        if name in self._providers:
            return self._providers[name]
        folded = name.casefold()
        for key, entry in self._providers.items():
            if key.casefold() == folded:
                return entry
        for entry in self._providers.values():
            if entry.display_name.casefold() == folded:
                return entry
        return None

    def list_providers(self) -> list[dict]:
        return [
            {
                "name": entry.display_name,
                "type": entry.display_name,
                "enabled": entry.enabled,
                "models": [
                    {"name": m.name, "model": m.model, "enabled": m.enabled}
                    for m in entry.models
                ],
            }
            for entry in self._providers.values()
        ]
