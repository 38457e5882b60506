"""Activity log entries and user-facing notices."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ActivityKind(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def format_locale_time(value: datetime) -> str:
    """Render *value* as a short local wall-clock time, e.g. ``"09:05 PM"``."""
    return value.astimezone().strftime("%I:%M %p")


class ActivityEntry(BaseModel):
    """One immutable line in the activity log."""

    model_config = ConfigDict(frozen=True)

    text: str
    kind: ActivityKind = ActivityKind.INFO
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def timestamp(self) -> str:
        return format_locale_time(self.created_at)


class Notice(BaseModel):
    """Transient user-visible notification (toast)."""

    model_config = ConfigDict(frozen=True)

    message: str
    is_error: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
