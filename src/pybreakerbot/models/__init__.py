"""Data models for BreakerBot devices."""

from pybreakerbot.models.activity import ActivityEntry, ActivityKind, Notice
from pybreakerbot.models.commands import (
    Action,
    CommandPayload,
    CommandResult,
    GateClass,
    PendingChallenge,
    SecretClass,
    Toggleable,
)
from pybreakerbot.models.device import (
    CardState,
    DeviceState,
    DoorState,
    LockoutMode,
    LogEvent,
    StatusUpdate,
)

__all__ = [
    "Action",
    "ActivityEntry",
    "ActivityKind",
    "CardState",
    "CommandPayload",
    "CommandResult",
    "DeviceState",
    "DoorState",
    "GateClass",
    "LockoutMode",
    "LogEvent",
    "Notice",
    "PendingChallenge",
    "SecretClass",
    "StatusUpdate",
    "Toggleable",
]
