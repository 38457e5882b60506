"""Normalized state events.

Inbound status messages, optimistic command effects and predicted
door transitions are all converted into these events. Only the
state store is allowed to merge them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pybreakerbot.models.device import STATUS_FIELDS


class StateSource(StrEnum):
    MQTT = "mqtt"
    OPTIMISTIC = "optimistic"
    PREDICTED = "predicted"

    @property
    def is_authoritative(self) -> bool:
        return self is StateSource.MQTT


class StateEvent(BaseModel):
    """A normalized update to apply to the state store."""

    model_config = ConfigDict(frozen=True)

    source: StateSource
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = Field(default_factory=dict, description="Patch of DeviceState fields")
    raw: dict[str, Any] = Field(default_factory=dict, description="Original payload (as received)")

    @field_validator("data")
    @classmethod
    def _known_fields_only(cls, value: dict[str, Any]) -> dict[str, Any]:
        return {key: val for key, val in value.items() if key in STATUS_FIELDS}

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
