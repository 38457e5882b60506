from __future__ import annotations

from pybreakerbot._redact import redact_for_log
from pybreakerbot.config import BreakerBotConfig


def test_redact_for_log_masks_config_secrets() -> None:
    config = BreakerBotConfig(
        broker_url="mqtt://broker.local",
        standard_secret="1234",
        privileged_secret="ADMIN-7781",
        access_code="CBMA",
        username="dash",
        password="pw",
    )

    redacted = redact_for_log(config)
    assert redacted["broker_url"] == "mqtt://broker.local"
    assert redacted["username"] == "dash"
    assert redacted["standard_secret"] == "<redacted>"
    assert redacted["privileged_secret"] == "<redacted>"
    assert redacted["access_code"] == "<redacted>"
    assert redacted["password"] == "<redacted>"
    assert redacted["timings"]["door_close_after"] == 5.0


def test_unset_secrets_stay_visible() -> None:
    redacted = redact_for_log(BreakerBotConfig(broker_url="mqtt://broker.local"))

    assert redacted["standard_secret"] is None
    assert redacted["password"] is None


def test_nested_mappings_are_walked() -> None:
    redacted = redact_for_log({"action": "open_door", "extra": {"PIN": "1234"}})

    assert redacted == {"action": "open_door", "extra": {"PIN": "<redacted>"}}


def test_plain_values_pass_through() -> None:
    assert redact_for_log("open_door") == "open_door"
    assert redact_for_log(None) is None
