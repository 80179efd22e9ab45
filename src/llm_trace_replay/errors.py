from __future__ import annotations


class TraceReplayError(Exception):
    """Base class for every error raised by the trace/replay core."""


class ValidationError(TraceReplayError):
    pass


class NotFoundError(TraceReplayError):
    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class ProviderConfigError(TraceReplayError):
    def __init__(self, provider: str):
        super().__init__(f"API key not configured for provider: {provider}")
        self.provider = provider


class ProviderCallError(TraceReplayError):
    def __init__(self, provider: str, model: str, message: str):
        super().__init__(f"Provider call failed ({provider}/{model}): {message}")
        self.provider = provider
        self.model = model


class PersistenceError(TraceReplayError):
    pass


class ErrorRecordingError(PersistenceError):
    """Persisting an error outcome failed after the provider call itself failed.

    The provider failure is kept on ``provider_error`` so callers can report
    both without the two messages being merged.
    """

    def __init__(self, message: str, provider_error: ProviderCallError):
        super().__init__(message)
        self.provider_error = provider_error
