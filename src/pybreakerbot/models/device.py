"""Device state and inbound status/log payload models."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, ValidationInfo, ValidatorFunctionWrapHandler, field_validator

from pybreakerbot.models._base import BreakerBotBaseModel, BreakerBotEnum, DeviceBool

_logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------


class DoorState(BreakerBotEnum):
    """Door position. ``OPENING`` and ``OPEN`` are transient."""

    CLOSED = "CLOSED"
    OPENING = "OPENING"
    OPEN = "OPEN"


class CardState(BreakerBotEnum):
    """RFID access card state."""

    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"


class LockoutMode(BreakerBotEnum):
    """Security lockout overlay derived from ``DeviceState.lockout``."""

    NORMAL = "NORMAL"
    LOCKED = "LOCKED"


#: Fields carried by ``<ns>/status`` payloads.
STATUS_FIELDS: tuple[str, ...] = ("door", "card", "fan", "lights", "lockout")

#: Shown in place of the card state while the device is locked out.
LOCKOUT_INDICATOR = "LOCKOUT"


# ------------------------------------------------------------------
# Local view
# ------------------------------------------------------------------


class DeviceState(BaseModel):
    """Canonical local view of the device.

    Every field starts at its safe default until the first authoritative
    status message arrives.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    door: DoorState = DoorState.CLOSED
    card: CardState = CardState.ACTIVE
    fan: DeviceBool = False
    lights: DeviceBool = False
    lockout: DeviceBool = False

    @property
    def lockout_mode(self) -> LockoutMode:
        return LockoutMode.LOCKED if self.lockout else LockoutMode.NORMAL

    @property
    def card_indicator(self) -> str:
        """Card status as displayed; the lockout overlay wins while locked."""
        if self.lockout:
            return LOCKOUT_INDICATOR
        return self.card.value


# ------------------------------------------------------------------
# Inbound payloads
# ------------------------------------------------------------------


class StatusUpdate(BreakerBotBaseModel):
    """Partial ``<ns>/status`` payload. Any subset of fields may be present."""

    door: DoorState | None = None
    card: CardState | None = None
    fan: DeviceBool | None = None
    lights: DeviceBool | None = None
    lockout: DeviceBool | None = None

    @field_validator(*STATUS_FIELDS, mode="wrap")
    @classmethod
    def _skip_uncoercible(cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        # A bad value drops only its own field; the rest of the payload still applies.
        try:
            return handler(value)
        except ValidationError:
            _logger.debug("Ignoring uncoercible status field %s=%r", info.field_name, value)
            return None

    def to_patch(self) -> dict[str, Any]:
        """Return only the fields the payload actually carried."""
        return self.model_dump(include=set(STATUS_FIELDS), exclude_unset=True, exclude_none=True)


class LogEvent(BreakerBotBaseModel):
    """``<ns>/log`` payload emitted by the device."""

    action: str = "Event"
    success: bool = True
    source: str | None = None

    @field_validator("action", mode="before")
    @classmethod
    def _normalize_action(cls, value: Any) -> str:
        text = str(value).strip() if value is not None else ""
        return text or "Event"

    @field_validator("success", mode="before")
    @classmethod
    def _only_explicit_false_fails(cls, value: Any) -> bool:
        # Only a JSON false fails; "false" or 0 still count as success.
        return value is not False

    @property
    def text(self) -> str:
        if self.source:
            return f"{self.action} ({self.source})"
        return self.action

