from __future__ import annotations

import pytest
from helpers import PRIVILEGED, STANDARD, FakeRuntime

from pybreakerbot.config import BreakerBotConfig, Timings


@pytest.fixture(autouse=True)
def _reset_fake_runtimes() -> None:
    FakeRuntime.instances.clear()


@pytest.fixture
def fast_timings() -> Timings:
    return Timings(door_open_after=0.05, door_close_after=0.25, toggle_debounce=0.1, notice_ttl=3.0)


@pytest.fixture
def config(fast_timings: Timings) -> BreakerBotConfig:
    return BreakerBotConfig(
        broker_url="wss://broker.example.test:8884/mqtt",
        namespace="breakerbot",
        standard_secret=STANDARD,
        privileged_secret=PRIVILEGED,
        access_code="CBMA",
        timings=fast_timings,
    )
