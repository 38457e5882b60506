from __future__ import annotations

import pytest

from pybreakerbot.exceptions import ConfigError, NoPendingChallengeError, WrongSecretError
from pybreakerbot.gate import CommandGate, classify
from pybreakerbot.models.commands import Action, GateClass, SecretClass

STANDARD = "1234"
PRIVILEGED = "ADMIN-7781"


def _gate() -> CommandGate:
    return CommandGate(standard_secret=STANDARD, privileged_secret=PRIVILEGED)


@pytest.mark.parametrize(
    ("action", "expected"),
    [
        (Action.OPEN_DOOR, GateClass.STANDARD),
        (Action.ENABLE_CARD, GateClass.PRIVILEGED),
        (Action.CLEAR_LOCKOUT, GateClass.PRIVILEGED),
        (Action.DISABLE_CARD, GateClass.CONFIRM),
        (Action.TOGGLE_FAN, GateClass.DIRECT),
        (Action.TOGGLE_LIGHTS, GateClass.DIRECT),
        (Action.GET_STATUS, GateClass.DIRECT),
    ],
)
def test_classification(action: Action, expected: GateClass) -> None:
    assert classify(action) is expected


def test_direct_actions_create_no_challenge() -> None:
    gate = _gate()

    assert gate.request_action(Action.TOGGLE_FAN) is None
    assert gate.pending is None


def test_open_door_requires_standard_secret() -> None:
    gate = _gate()
    challenge = gate.request_action(Action.OPEN_DOOR)

    assert challenge is not None
    assert challenge.required_secret_class is SecretClass.STANDARD
    assert gate.verify(STANDARD) == challenge
    assert gate.pending is None


def test_last_request_wins() -> None:
    gate = _gate()
    gate.request_action(Action.OPEN_DOOR)
    gate.request_action(Action.ENABLE_CARD)

    pending = gate.pending
    assert pending is not None
    assert pending.action is Action.ENABLE_CARD
    assert pending.required_secret_class is SecretClass.PRIVILEGED


def test_wrong_secret_keeps_challenge() -> None:
    gate = _gate()
    challenge = gate.request_action(Action.OPEN_DOOR)

    with pytest.raises(WrongSecretError):
        gate.verify("0000")

    assert gate.pending == challenge


@pytest.mark.parametrize("action", [Action.ENABLE_CARD, Action.CLEAR_LOCKOUT])
def test_privileged_actions_reject_standard_secret(action: Action) -> None:
    gate = _gate()
    gate.request_action(action)

    with pytest.raises(WrongSecretError):
        gate.verify(STANDARD)

    assert gate.verify(PRIVILEGED).action is action


def test_open_door_rejects_privileged_secret() -> None:
    gate = _gate()
    gate.request_action(Action.OPEN_DOOR)

    with pytest.raises(WrongSecretError):
        gate.verify(PRIVILEGED)


def test_class_separation_with_secrets_differing_only_in_case() -> None:
    gate = CommandGate(standard_secret="admin", privileged_secret="ADMIN")
    gate.request_action(Action.CLEAR_LOCKOUT)

    with pytest.raises(WrongSecretError):
        gate.verify("admin")
    assert gate.verify("ADMIN").action is Action.CLEAR_LOCKOUT


def test_disable_card_needs_confirmation_not_secret() -> None:
    gate = _gate()
    challenge = gate.request_action(Action.DISABLE_CARD)

    assert challenge is not None
    assert challenge.needs_secret is False
    with pytest.raises(NoPendingChallengeError):
        gate.verify(STANDARD)
    assert gate.confirm().action is Action.DISABLE_CARD
    assert gate.pending is None


def test_confirm_rejects_secret_challenges() -> None:
    gate = _gate()
    gate.request_action(Action.OPEN_DOOR)

    with pytest.raises(NoPendingChallengeError):
        gate.confirm()
    assert gate.pending is not None


def test_verify_without_pending_challenge() -> None:
    with pytest.raises(NoPendingChallengeError):
        _gate().verify(STANDARD)


def test_cancel_drops_pending() -> None:
    gate = _gate()
    gate.request_action(Action.ENABLE_CARD)

    cancelled = gate.cancel()

    assert cancelled is not None
    assert cancelled.action is Action.ENABLE_CARD
    assert gate.pending is None
    assert gate.cancel() is None


def test_missing_secret_is_a_config_error() -> None:
    gate = CommandGate(standard_secret=STANDARD, privileged_secret=None)
    gate.request_action(Action.ENABLE_CARD)

    with pytest.raises(ConfigError):
        gate.verify("")
