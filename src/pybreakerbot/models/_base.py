"""Base model and coercion helpers for BreakerBot payloads.

Every inbound payload model inherits from :class:`BreakerBotBaseModel`
which provides:

* ``extra="ignore"`` so firmware additions never break parsing.
* A ``model_validator(mode="before")`` that drops ``None`` values and
  stashes the original payload in ``raw``.

Device enums inherit from :class:`BreakerBotEnum`, a ``StrEnum`` that
matches case-insensitively and tolerates the trailing ellipsis the
firmware puts on transient states (``"OPENING..."``).
"""

from __future__ import annotations

import enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

_TRUE_STRINGS = frozenset({"1", "true", "on", "yes"})
_FALSE_STRINGS = frozenset({"0", "false", "off", "no"})


def coerce_bool(value: Any) -> Any:
    """Coerce the boolean spellings seen from device firmware.

    Unrecognised values are passed through for pydantic to reject.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUE_STRINGS:
            return True
        if normalized in _FALSE_STRINGS:
            return False
    return value


DeviceBool = Annotated[bool, BeforeValidator(coerce_bool)]
"""Annotated bool accepting ``true``/``1``/``"on"`` style values."""


class BreakerBotEnum(enum.StrEnum):
    """Base for device state enums."""

    @classmethod
    def _missing_(cls, value: object) -> BreakerBotEnum | None:
        if not isinstance(value, str):
            return None
        normalized = value.strip().rstrip(".").strip().upper()
        for member in cls:
            if member.value == normalized:
                return member
        return None


class BreakerBotBaseModel(BaseModel):
    """Base for inbound device payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original payload dict."""

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Drop ``None`` values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = {key: value for key, value in values.items() if value is not None}
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
