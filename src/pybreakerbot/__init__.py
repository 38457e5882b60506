"""pybreakerbot - Async state sync and secure command dispatch for BreakerBot devices."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pybreakerbot")
except PackageNotFoundError:
    __version__ = "0+local"
from pybreakerbot.client import BreakerBotClient
from pybreakerbot.config import BreakerBotConfig, Timings
from pybreakerbot.exceptions import (
    BreakerBotError,
    ConfigError,
    MalformedMessageError,
    NoPendingChallengeError,
    NotAuthenticatedError,
    TransportUnavailableError,
    UnsupportedFeatureError,
    WrongSecretError,
)
from pybreakerbot.models import (
    Action,
    ActivityEntry,
    ActivityKind,
    CardState,
    CommandResult,
    DeviceState,
    DoorState,
    LockoutMode,
    Notice,
    PendingChallenge,
    SecretClass,
    Toggleable,
)
from pybreakerbot.session import AppContext, SessionGuard
from pybreakerbot.transport import ConnectionState

__all__ = [
    "__version__",
    "Action",
    "ActivityEntry",
    "ActivityKind",
    "AppContext",
    "BreakerBotClient",
    "BreakerBotConfig",
    "BreakerBotError",
    "CardState",
    "CommandResult",
    "ConfigError",
    "ConnectionState",
    "DeviceState",
    "DoorState",
    "LockoutMode",
    "MalformedMessageError",
    "NoPendingChallengeError",
    "NotAuthenticatedError",
    "Notice",
    "PendingChallenge",
    "SecretClass",
    "SessionGuard",
    "Timings",
    "Toggleable",
    "TransportUnavailableError",
    "UnsupportedFeatureError",
    "WrongSecretError",
]
