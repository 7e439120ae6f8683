"""Normalized source events and store enums.

Watcher backends convert their native notifications into :class:`SourceEvent`
so the tracker never depends on a particular filesystem API.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceMode(StrEnum):
    WATCHED = "watched"
    PUSH_ONLY = "push_only"


class SourceEventKind(StrEnum):
    CREATED = "created"
    MODIFIED = "modified"
    MOVED = "moved"
    DELETED = "deleted"


class Directive(StrEnum):
    """What the coordinator should do in response to a source event."""

    RELOAD = "reload"
    RETARGET = "retarget"
    HOLD = "hold"
    IGNORE = "ignore"


class ReloadOutcome(StrEnum):
    APPLIED = "applied"
    REJECTED_INVALID_FORMAT = "rejected_invalid_format"
    REJECTED_IO_ERROR = "rejected_io_error"


class StoreState(StrEnum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FAILED = "failed"


class SourceEvent(BaseModel):
    """A lifecycle notification about a file in a watched directory."""

    model_config = ConfigDict(frozen=True)

    kind: SourceEventKind
    path: str = Field(..., description="Path the event refers to (the old name for moves)")
    dest_path: str | None = Field(default=None, description="New name, for moves only")
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("path")
    @classmethod
    def _require_path(cls, value: str) -> str:
        if not value:
            raise ValueError("path must be non-empty")
        return value
