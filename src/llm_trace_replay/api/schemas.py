from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

SQLITE_MAX_INT = 2**63 - 1


class _RequestPayload(BaseModel):
    request: Any

    @field_validator("request")
    @classmethod
    def _request_present(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("request is required")
        return value


class TraceBody(_RequestPayload):
    session_id: str = Field(min_length=1)
    turn_number: int = Field(ge=0, le=SQLITE_MAX_INT)
    response: Any = None
    status: Literal["success", "error", "pending"]
    error_message: str = ""
    metadata: Any = None


class ReplayBody(_RequestPayload):
    session_id: str = Field(min_length=1)
    turn_number: int = Field(ge=0, le=SQLITE_MAX_INT)
    provider: str = ""
    model: str = ""


class ReplayDebugBody(_RequestPayload):
    replay_session_id: str = Field(min_length=1)
    turn_number: int = Field(ge=0, le=SQLITE_MAX_INT)
    provider: str = ""
    model: str = ""
    config: Any = None


class CreateReplaySessionBody(BaseModel):
    original_session_id: str = Field(min_length=1)
    start_turn_number: int = Field(ge=0, le=SQLITE_MAX_INT)
    name: str | None = None


class UpdateReplaySessionBody(BaseModel):
    status: Literal["active", "completed"]
