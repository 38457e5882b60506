"""Custom exception hierarchy for pybreakerbot."""

from __future__ import annotations


class BreakerBotError(Exception):
    """Base exception for all pybreakerbot errors."""


class ConfigError(BreakerBotError):
    """Invalid or missing configuration."""


class TransportUnavailableError(BreakerBotError):
    """Publish attempted while the broker connection is down.

    The command is not sent. The client surfaces this as an
    "offline" notice rather than propagating it to callers.
    """

    def __init__(self, message: str = "Not connected to device", *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class MalformedMessageError(BreakerBotError):
    """Inbound payload is not JSON or does not have the expected shape."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class WrongSecretError(BreakerBotError):
    """Supplied secret does not match the pending challenge.

    The pending challenge is preserved so the user may retry or cancel.
    """

    def __init__(self, message: str = "Wrong PIN! Access denied", *, action: str = "") -> None:
        self.action = action
        super().__init__(message)


class NoPendingChallengeError(BreakerBotError):
    """A secret or confirmation was submitted with nothing pending."""


class UnsupportedFeatureError(BreakerBotError):
    """Feature unavailable in the current environment (e.g. voice input)."""


class NotAuthenticatedError(BreakerBotError):
    """Session guard has not admitted the user."""
