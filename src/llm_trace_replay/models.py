from __future__ import annotations

import math
import sqlite3
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

RECORD_STATUSES = ("success", "error", "pending")
REPLAY_SESSION_STATUSES = ("active", "completed")

SESSION_PAGE_SIZE = 20
RECORD_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
# Keeps (page - 1) * size within sqlite's signed 64-bit INTEGER.
MAX_PAGE = (2**63 - 1) // MAX_PAGE_SIZE


def utc_now() -> str:
    # Microsecond precision keeps (turn_number, created_at) ordering stable within a second.
    return datetime.now(UTC).isoformat(timespec="microseconds")


@dataclass(frozen=True)
class Session:
    id: str
    name: str
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Session:
        return cls(id=row["id"], name=row["name"], created_at=row["created_at"])

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TraceRecord:
    id: str
    session_id: str
    turn_number: int
    request: str
    response: str
    status: str
    error_msg: str
    metadata: str
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> TraceRecord:
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            turn_number=int(row["turn_number"]),
            request=row["request"],
            response=row["response"],
            status=row["status"],
            error_msg=row["error_msg"],
            metadata=row["metadata"],
            created_at=row["created_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReplaySession:
    id: str
    name: str
    original_session_id: str
    start_turn_number: int
    status: str
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ReplaySession:
        return cls(
            id=row["id"],
            name=row["name"],
            original_session_id=row["original_session_id"],
            start_turn_number=int(row["start_turn_number"]),
            status=row["status"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReplayRecord:
    id: str
    replay_session_id: str
    turn_number: int
    request: str
    response: str
    status: str
    error_msg: str
    provider: str
    model: str
    config: str
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ReplayRecord:
        return cls(
            id=row["id"],
            replay_session_id=row["replay_session_id"],
            turn_number=int(row["turn_number"]),
            request=row["request"],
            response=row["response"],
            status=row["status"],
            error_msg=row["error_msg"],
            provider=row["provider"],
            model=row["model"],
            config=row["config"],
            created_at=row["created_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Page:
    data: list[Any]
    total: int
    page: int
    size: int
    total_pages: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "total_pages", math.ceil(self.total / self.size) if self.size else 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [item.to_dict() if hasattr(item, "to_dict") else item for item in self.data],
            "total": self.total,
            "page": self.page,
            "size": self.size,
            "total_pages": self.total_pages,
        }


def normalize_page(page: int | None, size: int | None, *, default_size: int) -> tuple[int, int]:
    """Clamp pagination input: page in [1, MAX_PAGE], size in [1, MAX_PAGE_SIZE], non-positive size -> default."""
    page = min(page, MAX_PAGE) if page is not None and page >= 1 else 1
    if size is None or size < 1:
        size = default_size
    return page, min(size, MAX_PAGE_SIZE)
