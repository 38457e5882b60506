"""Command identifiers, challenge descriptors and outbound payloads."""

from __future__ import annotations

import enum
import json
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

# ------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------


class Action(enum.StrEnum):
    """``action`` values understood by the device on ``<ns>/cmd``."""

    OPEN_DOOR = "open_door"
    DISABLE_CARD = "disable_card"
    ENABLE_CARD = "enable_card"
    CLEAR_LOCKOUT = "clear_lockout"
    TOGGLE_FAN = "toggle_fan"
    TOGGLE_LIGHTS = "toggle_lights"
    GET_STATUS = "get_status"


class SecretClass(enum.StrEnum):
    """Which configured secret a challenge is verified against."""

    STANDARD = "standard"
    PRIVILEGED = "privileged"


class GateClass(enum.StrEnum):
    """How an action is admitted by the command gate."""

    DIRECT = "direct"
    CONFIRM = "confirm"
    STANDARD = "standard"
    PRIVILEGED = "privileged"

    @property
    def secret_class(self) -> SecretClass | None:
        if self is GateClass.STANDARD:
            return SecretClass.STANDARD
        if self is GateClass.PRIVILEGED:
            return SecretClass.PRIVILEGED
        return None


class Toggleable(enum.StrEnum):
    """Devices that can be flipped without a challenge."""

    FAN = "fan"
    LIGHTS = "lights"

    @property
    def action(self) -> Action:
        return Action.TOGGLE_FAN if self is Toggleable.FAN else Action.TOGGLE_LIGHTS


# Activity-log text written when an action goes out.
SUCCESS_TEXT: dict[Action, str] = {
    Action.OPEN_DOOR: "Door Opened",
    Action.DISABLE_CARD: "RFID Card Disabled",
    Action.ENABLE_CARD: "RFID Card Reactivated",
    Action.CLEAR_LOCKOUT: "Security Lockout Cleared",
    Action.TOGGLE_FAN: "Fan Toggled",
    Action.TOGGLE_LIGHTS: "Lights Toggled",
    Action.GET_STATUS: "Status Requested",
}


# ------------------------------------------------------------------
# Challenge
# ------------------------------------------------------------------


class PendingChallenge(BaseModel):
    """The single outstanding gated action.

    ``required_secret_class`` is ``None`` for actions that only need a
    local confirmation (``disable_card``).
    """

    model_config = ConfigDict(frozen=True)

    action: Action
    required_secret_class: SecretClass | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def needs_secret(self) -> bool:
        return self.required_secret_class is not None


# ------------------------------------------------------------------
# Wire payloads and results
# ------------------------------------------------------------------


class CommandPayload(BaseModel):
    """Body published on ``<ns>/cmd``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    action: Action

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), separators=(",", ":"))


class CommandResult(BaseModel):
    """Outcome of a command-surface call."""

    model_config = ConfigDict(frozen=True)

    action: Action
    published: bool
    message: str = ""
