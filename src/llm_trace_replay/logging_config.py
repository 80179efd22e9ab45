import secrets
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Iterable, Iterator, Protocol, runtime_checkable

from loguru import logger

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level:<8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>{extra[context]}"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}{extra[context]}"


def _patch(record: dict) -> None:
    req = _request_id.get()
    record["extra"]["request_id"] = req
    record["extra"]["context"] = f" [req={req}]" if req else ""


@contextmanager
def request_context(request_id: str | None = None) -> Iterator[str]:
    """Tag every log line emitted inside the block with a request id."""
    req = request_id or secrets.token_hex(4)
    token = _request_id.set(req)
    try:
        yield req
    finally:
        _request_id.reset(token)


@runtime_checkable
class LogConsumer(Protocol):
    def register(self, level: str) -> None: ...
    def describe(self, level: str) -> str: ...


class ConsoleLogConsumer:
    def register(self, level: str) -> None:
        logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT, diagnose=False)

    def describe(self, level: str) -> str:
        return f"console (stderr, {level})"


class FileLogConsumer:
    """Rotating text log; with ``serialize`` set each line is a JSON object."""

    def __init__(
        self,
        path: str = "logs/llm-trace.log",
        rotation: str = "10 MB",
        retention: int = 3,
        serialize: bool = False,
    ):
        self._path = path
        self._rotation = rotation
        self._retention = retention
        self._serialize = serialize

    def register(self, level: str) -> None:
        Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            self._path,
            level=level,
            format=_FILE_FORMAT,
            rotation=self._rotation,
            retention=self._retention,
            serialize=self._serialize,
            enqueue=True,
            diagnose=False,
        )

    def describe(self, level: str) -> str:
        kind = "json" if self._serialize else "file"
        return f"{kind} ({self._path}, {level})"


def _json_consumer(path: str = "logs/llm-trace.json", **kwargs: Any) -> FileLogConsumer:
    return FileLogConsumer(path=path, serialize=True, **kwargs)


_CONSUMER_TYPES: dict[str, Any] = {
    "console": ConsoleLogConsumer,
    "file": FileLogConsumer,
    "json": _json_consumer,
}

_DEFAULT_CONSUMERS = (
    {"type": "console"},
    {"type": "file"},
)


def setup_logging(
    level: str = "INFO",
    consumers: Iterable[dict[str, Any]] | None = None,
) -> list[str]:
    """Replace all loguru sinks with the configured consumers.

    ``consumers=None`` means console plus a rotating file; an empty list
    registers nothing. Returns a description of each registered consumer.
    """
    logger.remove()
    logger.configure(patcher=_patch)

    if consumers is None:
        consumers = _DEFAULT_CONSUMERS

    descriptions: list[str] = []
    for config in consumers:
        sink_type = config.get("type", "")
        factory = _CONSUMER_TYPES.get(sink_type)
        if factory is None:
            logger.warning(f"Unknown log consumer type: {sink_type!r}")
            continue

        kwargs = {k: v for k, v in config.items() if k not in ("type", "level")}
        sink_level = str(config.get("level", level)).upper()
        consumer = factory(**kwargs)
        consumer.register(sink_level)
        descriptions.append(consumer.describe(sink_level))

    return descriptions
