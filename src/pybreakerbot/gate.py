"""Command gate: classifies actions and holds the single pending challenge.

Secret verification is a plain string comparison against the two
configured secrets. The verifier lives in the same trust boundary as the
requester, so this only guards against casual misuse of an unlocked
dashboard; it is not an authorization boundary.
"""

from __future__ import annotations

import logging

from pybreakerbot.exceptions import ConfigError, NoPendingChallengeError, WrongSecretError
from pybreakerbot.models.commands import Action, GateClass, PendingChallenge, SecretClass

_logger = logging.getLogger(__name__)

ACTION_GATES: dict[Action, GateClass] = {
    Action.OPEN_DOOR: GateClass.STANDARD,
    Action.ENABLE_CARD: GateClass.PRIVILEGED,
    Action.CLEAR_LOCKOUT: GateClass.PRIVILEGED,
    # Reporting a lost card only needs a local "are you sure?".
    Action.DISABLE_CARD: GateClass.CONFIRM,
    Action.TOGGLE_FAN: GateClass.DIRECT,
    Action.TOGGLE_LIGHTS: GateClass.DIRECT,
    Action.GET_STATUS: GateClass.DIRECT,
}


def classify(action: Action) -> GateClass:
    return ACTION_GATES[Action(action)]


class CommandGate:
    """Holds at most one :class:`PendingChallenge`; the latest request wins."""

    def __init__(self, *, standard_secret: str | None, privileged_secret: str | None) -> None:
        self._secrets: dict[SecretClass, str | None] = {
            SecretClass.STANDARD: standard_secret,
            SecretClass.PRIVILEGED: privileged_secret,
        }
        self._pending: PendingChallenge | None = None

    @property
    def pending(self) -> PendingChallenge | None:
        return self._pending

    def request_action(self, action: Action) -> PendingChallenge | None:
        """Open a challenge for *action*; returns ``None`` for direct actions.

        Any previously pending challenge is discarded.
        """
        gate = classify(action)
        if gate is GateClass.DIRECT:
            return None
        if self._pending is not None and self._pending.action != action:
            _logger.debug("Challenge for %s superseded by %s", self._pending.action.value, Action(action).value)
        self._pending = PendingChallenge(action=Action(action), required_secret_class=gate.secret_class)
        return self._pending

    def verify(self, secret: str) -> PendingChallenge:
        """Check *secret* against the pending challenge's class.

        On success the challenge is cleared and returned. On mismatch
        :class:`WrongSecretError` is raised and the challenge is kept.
        """
        pending = self._require_pending()
        secret_class = pending.required_secret_class
        if secret_class is None:
            raise NoPendingChallengeError(f"{pending.action.value} needs confirmation, not a secret")

        expected = self._secrets[secret_class]
        if not expected:
            raise ConfigError(f"No {secret_class.value} secret configured")
        if secret != expected:
            _logger.debug("Secret mismatch for %s (%s)", pending.action.value, secret_class.value)
            raise WrongSecretError(action=pending.action.value)

        self._pending = None
        return pending

    def confirm(self) -> PendingChallenge:
        """Accept a pending confirmation-only challenge."""
        pending = self._require_pending()
        if pending.required_secret_class is not None:
            raise NoPendingChallengeError(f"{pending.action.value} requires a secret")
        self._pending = None
        return pending

    def cancel(self) -> PendingChallenge | None:
        pending = self._pending
        self._pending = None
        return pending

    def _require_pending(self) -> PendingChallenge:
        if self._pending is None:
            raise NoPendingChallengeError("No action is awaiting verification")
        return self._pending
